from __future__ import annotations

from django.db import models
from django.utils import timezone

from accounts.models import Organization


class Vehicle(models.Model):
    """
    Kitchen-owned vehicle. Maintained through the admin; the distribution
    engine only reads it.
    """

    class VehicleType(models.TextChoices):
        MOTORCYCLE = "MOTORCYCLE", "Motorcycle"
        CAR = "CAR", "Car"
        PICKUP = "PICKUP", "Pickup"
        VAN = "VAN", "Van"
        TRUCK = "TRUCK", "Truck"

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="vehicles")
    license_plate = models.CharField(max_length=32)
    vehicle_type = models.CharField(max_length=16, choices=VehicleType.choices, default=VehicleType.PICKUP)
    brand = models.CharField(max_length=64, blank=True)
    capacity_portions = models.PositiveIntegerField(default=0, help_text="Meal boxes per trip")
    has_insulated_box = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = (("organization", "license_plate"),)
        indexes = [models.Index(fields=["organization", "is_active"], name="fleet_vehicle_org_active_idx")]

    def __str__(self) -> str:
        return f"{self.license_plate} ({self.get_vehicle_type_display()})"
