"""One schedule from planning to completion, the way a kitchen runs a morning wave."""
from datetime import date
from decimal import Decimal

import pytest

from audit.models import AuditLog
from distribution import services
from distribution.errors import InvalidTransition
from distribution.models import Schedule, VehicleAssignment
from tracking import services as tracking
from tracking.models import Delivery, TrackingPoint

S = Schedule.Status


@pytest.mark.django_db
def test_morning_wave_end_to_end(make_schedule, manager, driver, vehicle):
    day = date(2025, 1, 10)
    sched = make_schedule(distribution_date=day, wave=Schedule.Wave.MORNING, total_portions=100)
    assert sched.status == S.PLANNED

    a = services.assign_vehicle(sched, manager, vehicle.pk, driver.pk)
    assert (a.distribution_date, a.wave) == (day, Schedule.Wave.MORNING)

    services.transition_schedule(sched, manager, S.PREPARED)
    assert sched.status == S.PREPARED

    # completion is two steps away
    with pytest.raises(InvalidTransition):
        services.transition_schedule(sched, manager, S.COMPLETED)

    d1 = tracking.create_delivery(sched, manager, "SDN 1 Purwakarta", 100)

    result = services.transition_schedule(sched, manager, S.IN_PROGRESS)
    assert result.schedule.started_at is not None

    d1 = tracking.depart_delivery(d1, driver, departure_temp=Decimal("75"))
    for lat, lon in (("-6.5565", "107.4433"), ("-6.5500", "107.4500"), ("-6.5400", "107.4600")):
        tracking.record_location(d1, lat, lon, actor=driver)
    d1.refresh_from_db()
    assert len(d1.route_trail) == 3
    assert tracking.get_tracking_history(d1)["statistics"]["total_distance_km"] > 0

    d1 = tracking.complete_delivery(d1, driver, 95, serving_temp=Decimal("64"))
    assert d1.status == Delivery.Status.DELIVERED
    assert d1.portions_shortfall == 5

    result = services.transition_schedule(sched, manager, S.COMPLETED)
    assert result.schedule.status == S.COMPLETED
    assert result.schedule.completed_at is not None
    assert result.warnings == []

    assert not VehicleAssignment.objects.filter(schedule=sched, is_active=True).exists()
    assert TrackingPoint.objects.filter(delivery=d1).count() == 3

    actions = list(AuditLog.objects.order_by("id").values_list("action", flat=True))
    assert actions == [
        "SCHEDULE_CREATED",
        "VEHICLE_ASSIGNED",
        "SCHEDULE_STATUS_CHANGED",
        "DELIVERY_CREATED",
        "SCHEDULE_STATUS_CHANGED",
        "DELIVERY_DEPARTED",
        "DELIVERY_COMPLETED",
        "SCHEDULE_STATUS_CHANGED",
    ]
