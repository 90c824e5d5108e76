from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounts.models import Organization, User
from fleet.models import Vehicle


class Schedule(models.Model):
    """
    One distribution event for one production batch on a date + wave.

    Status only moves forward along TRANSITIONS; distribution.services is the
    only writer of `status` and it always writes with a compare-and-swap on
    (status, version).
    """

    class Status(models.TextChoices):
        PLANNED = "PLANNED", "Planned"
        PREPARED = "PREPARED", "Prepared"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    class Wave(models.TextChoices):
        MORNING = "MORNING", "Morning"
        MIDDAY = "MIDDAY", "Midday"
        AFTERNOON = "AFTERNOON", "Afternoon"

    TRANSITIONS = {
        Status.PLANNED: frozenset({Status.PREPARED, Status.CANCELLED}),
        Status.PREPARED: frozenset({Status.IN_PROGRESS, Status.CANCELLED}),
        Status.IN_PROGRESS: frozenset({Status.COMPLETED, Status.CANCELLED}),
        Status.COMPLETED: frozenset(),
        Status.CANCELLED: frozenset(),
    }
    TERMINAL = frozenset({Status.COMPLETED, Status.CANCELLED})
    # vehicle assignments may be added/removed only here
    ASSIGNABLE = frozenset({Status.PLANNED, Status.PREPARED})
    # core fields are frozen from here on
    LOCKED = frozenset({Status.IN_PROGRESS, Status.COMPLETED, Status.CANCELLED})

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="schedules")
    production_batch = models.CharField(max_length=64, help_text="Batch number of the prepared food")
    distribution_date = models.DateField(db_index=True)
    wave = models.CharField(max_length=16, choices=Wave.choices, default=Wave.MORNING)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PLANNED, db_index=True)

    estimated_beneficiaries = models.PositiveIntegerField(default=0)
    total_portions = models.PositiveIntegerField(default=0)

    packaging_type = models.CharField(max_length=32, blank=True)
    packaging_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    fuel_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)

    version = models.PositiveIntegerField(default=0)

    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_schedules")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-distribution_date", "wave", "id")
        indexes = [
            models.Index(fields=["organization", "distribution_date"], name="sched_org_date_idx"),
            models.Index(fields=["organization", "status"], name="sched_org_status_idx"),
            models.Index(fields=["distribution_date", "wave"], name="sched_date_wave_idx"),
        ]

    def __str__(self) -> str:
        return f"Schedule {self.id} – {self.production_batch} – {self.distribution_date} {self.wave} ({self.status})"

    @classmethod
    def allowed_targets(cls, status: str) -> frozenset:
        return cls.TRANSITIONS.get(status, frozenset())

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL

    @property
    def is_editable(self) -> bool:
        return self.status not in self.LOCKED

    @property
    def estimated_cost(self) -> Decimal:
        return (self.packaging_cost or Decimal("0")) + (self.fuel_cost or Decimal("0"))


class VehicleAssignment(models.Model):
    """
    One vehicle + driver bound to one schedule.

    distribution_date / wave are copied from the schedule and is_active turns
    False once the schedule is COMPLETED or CANCELLED, so the partial unique
    constraint below keeps a vehicle from being double booked in a slot.
    MySQL does not support conditional unique constraints (models.W036), so
    there the vehicle row lock taken by distribution.services.assign_vehicle
    is the only guard; PostgreSQL and SQLite enforce both.
    Assignments are never edited: reassign means delete and create again.
    """
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="vehicle_assignments")
    schedule = models.ForeignKey(Schedule, on_delete=models.CASCADE, related_name="vehicle_assignments")
    vehicle = models.ForeignKey(Vehicle, on_delete=models.PROTECT, related_name="assignments")
    driver = models.ForeignKey(User, on_delete=models.PROTECT, related_name="driving_assignments")
    helpers = models.JSONField(default=list, blank=True)

    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)
    start_location = models.CharField(max_length=255, blank=True)
    end_location = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    distribution_date = models.DateField()
    wave = models.CharField(max_length=16, choices=Schedule.Wave.choices)
    is_active = models.BooleanField(default=True)

    assigned_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["schedule", "vehicle"], name="uniq_vehicle_per_schedule"),
            models.UniqueConstraint(
                fields=["vehicle", "distribution_date", "wave"],
                condition=Q(is_active=True),
                name="uniq_active_vehicle_slot",
            ),
        ]
        indexes = [models.Index(fields=["vehicle", "distribution_date", "wave"], name="assign_vehicle_slot_idx")]

    def __str__(self) -> str:
        return f"{self.vehicle} → schedule {self.schedule_id}"
