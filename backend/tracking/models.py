from __future__ import annotations

from django.db import models
from django.utils import timezone

from distribution.errors import ImmutableRecord
from distribution.models import Schedule


class FoodType(models.TextChoices):
    HOT = "HOT", "Hot food"
    COLD = "COLD", "Cold food"


class Delivery(models.Model):
    """
    One leg of a schedule: the kitchen to one destination.

    Status writes go through tracking.services with a compare-and-swap on
    (status, version). actual_arrival is write-once.
    """

    class Status(models.TextChoices):
        ASSIGNED = "ASSIGNED", "Assigned"
        DEPARTED = "DEPARTED", "Departed"
        DELIVERED = "DELIVERED", "Delivered"
        FAILED = "FAILED", "Failed"

    class TargetType(models.TextChoices):
        SCHOOL = "SCHOOL", "School"
        OTHER = "OTHER", "Other address"

    TRANSITIONS = {
        Status.ASSIGNED: frozenset({Status.DEPARTED, Status.DELIVERED, Status.FAILED}),
        Status.DEPARTED: frozenset({Status.DELIVERED, Status.FAILED}),
        Status.DELIVERED: frozenset(),
        Status.FAILED: frozenset(),
    }
    TERMINAL = frozenset({Status.DELIVERED, Status.FAILED})
    # GPS pushes are accepted only for a leg on the road or just handed over
    TRACKABLE = frozenset({Status.DEPARTED, Status.DELIVERED})

    schedule = models.ForeignKey(Schedule, on_delete=models.PROTECT, related_name="deliveries")

    target_type = models.CharField(max_length=16, choices=TargetType.choices, default=TargetType.SCHOOL)
    target_name = models.CharField(max_length=255)
    target_address = models.TextField(blank=True)

    estimated_arrival = models.DateTimeField(null=True, blank=True)
    departure_time = models.DateTimeField(null=True, blank=True)
    actual_arrival = models.DateTimeField(null=True, blank=True)
    delivery_completed_at = models.DateTimeField(null=True, blank=True)

    portions_planned = models.PositiveIntegerField()
    portions_delivered = models.PositiveIntegerField(null=True, blank=True)

    driver_name = models.CharField(max_length=128, blank=True)
    helper_names = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ASSIGNED, db_index=True)

    food_type = models.CharField(max_length=8, choices=FoodType.choices, default=FoodType.HOT)
    departure_temp = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    arrival_temp = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    serving_temp = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    # denormalized "lat,lon" of the last accepted GPS push and the trail of all of them
    current_location = models.CharField(max_length=64, blank=True)
    route_trail = models.JSONField(default=list, blank=True)

    recipient_name = models.CharField(max_length=128, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("estimated_arrival", "id")
        verbose_name_plural = "deliveries"
        indexes = [models.Index(fields=["schedule", "status"], name="delivery_sched_status_idx")]

    def __str__(self) -> str:
        return f"Delivery {self.id} – {self.target_name} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL

    @property
    def is_late(self) -> bool:
        if not self.actual_arrival or not self.estimated_arrival:
            return False
        return self.actual_arrival > self.estimated_arrival

    @property
    def portions_shortfall(self) -> int:
        if self.portions_delivered is None:
            return 0
        return max(self.portions_planned - self.portions_delivered, 0)


class TrackingPointQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ImmutableRecord("Tracking points are append-only.")

    def delete(self):
        raise ImmutableRecord("Tracking points are append-only.")


class TrackingPoint(models.Model):
    """One GPS observation. Append-only: rows are never updated or deleted."""

    delivery = models.ForeignKey(Delivery, on_delete=models.PROTECT, related_name="tracking_points")
    latitude = models.DecimalField(max_digits=9, decimal_places=6)
    longitude = models.DecimalField(max_digits=9, decimal_places=6)
    accuracy = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True, help_text="Metres")
    status = models.CharField(max_length=16, choices=Delivery.Status.choices)
    notes = models.CharField(max_length=255, blank=True)
    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)
    received_at = models.DateTimeField(default=timezone.now)

    objects = TrackingPointQuerySet.as_manager()

    class Meta:
        ordering = ("recorded_at", "id")
        indexes = [models.Index(fields=["delivery", "recorded_at"], name="trackpoint_delivery_rec_idx")]

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude} @ {self.recorded_at:%H:%M:%S}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecord("Tracking points are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecord("Tracking points are append-only.")

    def as_coordinates(self) -> tuple[float, float]:
        return float(self.latitude), float(self.longitude)
