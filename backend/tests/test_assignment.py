from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction

from audit.models import AuditLog
from distribution import services
from distribution.errors import (
    DuplicateAssignment,
    ImmutableRecord,
    NotFound,
    ValidationFailed,
    VehicleConflict,
)
from distribution.models import Schedule, VehicleAssignment
from fleet.models import Vehicle
from tracking import services as tracking

S = Schedule.Status


@pytest.mark.django_db
def test_assign_copies_booking_keys_and_audits(schedule, manager, vehicle, driver):
    before = schedule.version
    a = services.assign_vehicle(
        schedule, manager, vehicle.pk, driver.pk,
        helpers=["Asep", "Dedi"], start_location="Central kitchen", end_location="SDN 1",
    )
    assert a.distribution_date == schedule.distribution_date
    assert a.wave == schedule.wave
    assert a.is_active
    assert a.helpers == ["Asep", "Dedi"]
    assert schedule.version == before + 1

    row = AuditLog.objects.get(action="VEHICLE_ASSIGNED")
    assert row.payload["vehicle_id"] == vehicle.pk
    assert row.payload["driver_id"] == driver.pk


@pytest.mark.django_db
def test_same_vehicle_twice_on_one_schedule(schedule, manager, vehicle, driver):
    services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk)
    with pytest.raises(DuplicateAssignment):
        services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk)


@pytest.mark.django_db
def test_no_double_booking_in_one_slot(make_schedule, manager, vehicle, driver):
    first = make_schedule()
    second = make_schedule()
    services.assign_vehicle(first, manager, vehicle.pk, driver.pk)

    with pytest.raises(VehicleConflict) as exc:
        services.assign_vehicle(second, manager, vehicle.pk, driver.pk)
    assert exc.value.conflicting_schedule_id == first.pk
    assert exc.value.as_dict()["wave"] == first.wave
    assert VehicleAssignment.objects.filter(vehicle=vehicle).count() == 1


@pytest.mark.django_db
def test_other_wave_is_a_different_slot(make_schedule, manager, vehicle, driver):
    morning = make_schedule(wave=Schedule.Wave.MORNING)
    midday = make_schedule(wave=Schedule.Wave.MIDDAY)
    services.assign_vehicle(morning, manager, vehicle.pk, driver.pk)
    services.assign_vehicle(midday, manager, vehicle.pk, driver.pk)
    assert VehicleAssignment.objects.filter(vehicle=vehicle, is_active=True).count() == 2


@pytest.mark.django_db
def test_cancelled_schedule_frees_the_vehicle(make_schedule, manager, vehicle, driver):
    first = make_schedule()
    second = make_schedule()
    services.assign_vehicle(first, manager, vehicle.pk, driver.pk)
    services.transition_schedule(first, manager, S.CANCELLED, reason="Menu change")

    a = services.assign_vehicle(second, manager, vehicle.pk, driver.pk)
    assert a.schedule_id == second.pk


@pytest.mark.django_db
def test_completed_schedule_frees_the_vehicle(running_schedule, make_schedule, manager, vehicle, driver):
    d = tracking.create_delivery(running_schedule, manager, "SDN 1", 100)
    tracking.complete_delivery(d, driver, 100)
    services.transition_schedule(running_schedule, manager, S.COMPLETED)

    second = make_schedule()
    services.assign_vehicle(second, manager, vehicle.pk, driver.pk)


@pytest.mark.django_db
def test_database_rejects_two_active_bookings(make_schedule, org, vehicle, driver):
    first = make_schedule()
    second = make_schedule()
    VehicleAssignment.objects.create(
        organization=org, schedule=first, vehicle=vehicle, driver=driver,
        distribution_date=first.distribution_date, wave=first.wave,
    )
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            VehicleAssignment.objects.create(
                organization=org, schedule=second, vehicle=vehicle, driver=driver,
                distribution_date=second.distribution_date, wave=second.wave,
            )
    # an inactive booking does not count
    VehicleAssignment.objects.create(
        organization=org, schedule=second, vehicle=vehicle, driver=driver,
        distribution_date=second.distribution_date, wave=second.wave, is_active=False,
    )


@pytest.mark.django_db
def test_vehicle_of_other_kitchen_is_not_found(schedule, manager, other_org, driver):
    foreign = Vehicle.objects.create(organization=other_org, license_plate="D 1 XX")
    with pytest.raises(NotFound):
        services.assign_vehicle(schedule, manager, foreign.pk, driver.pk)


@pytest.mark.django_db
def test_retired_vehicle_is_not_found(schedule, manager, vehicle, driver):
    Vehicle.objects.filter(pk=vehicle.pk).update(is_active=False)
    with pytest.raises(NotFound):
        services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk)


@pytest.mark.django_db
def test_driver_must_belong_to_the_kitchen(schedule, manager, vehicle, outsider):
    with pytest.raises(NotFound) as exc:
        services.assign_vehicle(schedule, manager, vehicle.pk, outsider.pk)
    assert exc.value.details == {"driver_id": outsider.pk}


@pytest.mark.django_db
def test_end_before_start_is_rejected(schedule, manager, vehicle, driver):
    from django.utils import timezone
    start = timezone.now()
    with pytest.raises(ValidationFailed):
        services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk,
                                start_time=start, end_time=start - timedelta(hours=1))


@pytest.mark.django_db
def test_no_assignment_changes_after_start(running_schedule, manager, vehicle, vehicle2, driver):
    with pytest.raises(ImmutableRecord):
        services.assign_vehicle(running_schedule, manager, vehicle2.pk, driver.pk)
    with pytest.raises(ImmutableRecord):
        services.unassign_vehicle(running_schedule, manager, vehicle.pk)


@pytest.mark.django_db
def test_unassign(schedule, manager, vehicle, driver):
    services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk)
    services.unassign_vehicle(schedule, manager, vehicle.pk)
    assert not VehicleAssignment.objects.filter(schedule=schedule).exists()
    assert AuditLog.objects.filter(action="VEHICLE_UNASSIGNED").exists()

    with pytest.raises(NotFound):
        services.unassign_vehicle(schedule, manager, vehicle.pk)


@pytest.mark.django_db
def test_moving_a_schedule_moves_its_bookings(schedule, manager, vehicle, driver, yesterday):
    services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk)
    new_day = yesterday - timedelta(days=1)

    services.update_schedule(schedule, manager, distribution_date=new_day, wave=Schedule.Wave.AFTERNOON)
    a = VehicleAssignment.objects.get(schedule=schedule)
    assert (a.distribution_date, a.wave) == (new_day, Schedule.Wave.AFTERNOON)


@pytest.mark.django_db
def test_moving_into_a_booked_slot_conflicts(make_schedule, manager, vehicle, driver):
    morning = make_schedule(wave=Schedule.Wave.MORNING)
    midday = make_schedule(wave=Schedule.Wave.MIDDAY)
    services.assign_vehicle(morning, manager, vehicle.pk, driver.pk)
    services.assign_vehicle(midday, manager, vehicle.pk, driver.pk)

    with pytest.raises(VehicleConflict) as exc:
        services.update_schedule(midday, manager, wave=Schedule.Wave.MORNING)
    assert exc.value.conflicting_schedule_id == morning.pk
    midday.refresh_from_db()
    assert midday.wave == Schedule.Wave.MIDDAY
