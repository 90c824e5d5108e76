from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.models import Organization, OrgMembership, Role
from distribution import services
from distribution.models import Schedule
from fleet.models import Vehicle

User = get_user_model()


def _member(org, email, role):
    u = User.objects.create_user(email=email, password="x", first_name=email.split("@")[0].title())
    OrgMembership.objects.create(user=u, organization=org, role=role)
    return u


@pytest.fixture
def org(db):
    return Organization.objects.create(name="Dapur Purwakarta", code="dapur-purwakarta", city="Purwakarta")


@pytest.fixture
def other_org(db):
    return Organization.objects.create(name="Dapur Bandung", code="dapur-bandung", city="Bandung")


@pytest.fixture
def admin_user(org):
    return _member(org, "admin@test", Role.ORG_ADMIN)


@pytest.fixture
def manager(org):
    return _member(org, "manager@test", Role.DISTRIBUTION_MANAGER)


@pytest.fixture
def driver(org):
    return _member(org, "driver@test", Role.DRIVER)


@pytest.fixture
def viewer(org):
    return _member(org, "viewer@test", Role.VIEWER)


@pytest.fixture
def outsider(other_org):
    return _member(other_org, "outsider@test", Role.DRIVER)


@pytest.fixture
def vehicle(org):
    return Vehicle.objects.create(organization=org, license_plate="T 1234 AB", capacity_portions=400)


@pytest.fixture
def vehicle2(org):
    return Vehicle.objects.create(organization=org, license_plate="T 5678 CD", capacity_portions=250)


@pytest.fixture
def yesterday():
    return timezone.localdate() - timedelta(days=1)


@pytest.fixture
def make_schedule(org, manager, yesterday):
    def _make(**kw):
        kw.setdefault("production_batch", f"B-{Schedule.objects.count() + 1:03d}")
        kw.setdefault("distribution_date", yesterday)
        kw.setdefault("wave", Schedule.Wave.MORNING)
        kw.setdefault("total_portions", 300)
        return services.create_schedule(kw.pop("org", org), kw.pop("actor", manager), **kw)
    return _make


@pytest.fixture
def schedule(make_schedule):
    return make_schedule()


@pytest.fixture
def running_schedule(schedule, manager, vehicle, driver):
    """An IN_PROGRESS schedule with one vehicle booked."""
    services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk)
    services.transition_schedule(schedule, manager, Schedule.Status.PREPARED)
    services.transition_schedule(schedule, manager, Schedule.Status.IN_PROGRESS)
    return schedule


@pytest.fixture
def planner_client(client, manager):
    client.force_login(manager)
    return client
