from __future__ import annotations

from typing import Optional

from accounts.models import Organization

from .models import Vehicle


def get_vehicle(vehicle_id, org: Organization, *, for_update: bool = False) -> Optional[Vehicle]:
    """
    Tenant-scoped vehicle lookup. Returns None when the id is unknown,
    belongs to another kitchen or the vehicle is retired.

    for_update=True takes a row lock; the assignment resolver uses it so that
    concurrent bookings of one vehicle run one after the other.
    """
    qs = Vehicle.objects.filter(pk=vehicle_id, organization=org, is_active=True)
    if for_update:
        qs = qs.select_for_update()
    return qs.first()


def available_vehicles(org: Organization):
    return Vehicle.objects.filter(organization=org, is_active=True).order_by("license_plate")
