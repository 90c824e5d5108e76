from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from distribution import services
from distribution.models import Schedule
from incidents.services import report_issue, resolve_issue
from reporting.models import DistributionStatDaily
from reporting.services import build_daily_rollup, period_summary
from reporting.tasks import build_distribution_rollups
from tracking import services as tracking


@pytest.fixture
def worked_day(running_schedule, manager, driver):
    now = timezone.now()
    on_time = tracking.create_delivery(running_schedule, manager, "SDN 1", 100,
                                       estimated_arrival=now + timedelta(hours=1))
    on_time = tracking.depart_delivery(on_time, driver)
    tracking.record_location(on_time, "0", "0", actor=driver)
    tracking.record_location(on_time, "0", "1", actor=driver)
    tracking.complete_delivery(on_time, driver, 90)

    failed = tracking.create_delivery(running_schedule, manager, "SDN 2", 50)
    tracking.fail_delivery(failed, driver, "Bridge closed")
    services.transition_schedule(running_schedule, manager, Schedule.Status.COMPLETED)
    return running_schedule


@pytest.mark.django_db
def test_daily_rollup(org, worked_day, yesterday):
    row = build_daily_rollup(org, yesterday)

    assert row.schedules_total == 1
    assert row.schedules_completed == 1
    assert row.deliveries_total == 2
    assert row.deliveries_delivered == 1
    assert row.deliveries_failed == 1
    assert row.deliveries_on_time == 1
    assert row.deliveries_late == 0
    assert row.portions_planned == 150
    assert row.portions_delivered == 90
    assert row.distance_km == Decimal("111.19")


@pytest.mark.django_db
def test_rollup_replaces_the_day(org, worked_day, yesterday):
    build_daily_rollup(org, yesterday)
    build_daily_rollup(org, yesterday)
    assert DistributionStatDaily.objects.filter(organization=org, day=yesterday).count() == 1


@pytest.mark.django_db
def test_issues_roll_up_on_the_day_reported(org, schedule, driver, manager):
    issue = report_issue(schedule, driver, "VEHICLE_BREAKDOWN", "CRITICAL", "Overheated")
    resolve_issue(issue, manager)

    row = build_daily_rollup(org, timezone.localdate())
    assert (row.issues_reported, row.issues_critical, row.issues_resolved) == (1, 1, 1)


@pytest.mark.django_db
def test_period_summary_rates(org, worked_day, yesterday):
    build_daily_rollup(org, yesterday)
    agg = period_summary(org, yesterday - timedelta(days=6), yesterday)
    assert agg["on_time_rate"] == 100.0
    assert agg["fulfilment_rate"] == 60.0
    assert agg["distance_km"] == Decimal("111.19")


@pytest.mark.django_db
def test_nightly_task_covers_every_kitchen(org, other_org):
    assert build_distribution_rollups() == 2
    assert DistributionStatDaily.objects.count() == 2


@pytest.mark.django_db
def test_backfill_command(org):
    out = StringIO()
    call_command("backfill_distribution_rollups", start="2026-03-01", end="2026-03-03", stdout=out)
    assert "Completed 3 days." in out.getvalue()
    assert DistributionStatDaily.objects.filter(organization=org).count() == 3


@pytest.mark.django_db
def test_backfill_rejects_bad_dates(org):
    with pytest.raises(CommandError):
        call_command("backfill_distribution_rollups", start="yesterday")
    with pytest.raises(CommandError):
        call_command("backfill_distribution_rollups", start="2026-03-05", end="2026-03-01")


@pytest.mark.django_db
def test_daily_summary_endpoints(planner_client, org, worked_day, yesterday):
    build_daily_rollup(org, yesterday)

    r = planner_client.get("/distribution/reports/daily")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["summary"]["deliveries_delivered"] == 1
    assert len(data["trend"]) == 1

    r = planner_client.get("/distribution/reports/daily.csv")
    assert r.status_code == 200
    assert r["Content-Type"] == "text/csv"
    assert b"portions_delivered,90" in r.content


@pytest.mark.django_db
def test_gps_handoff_is_left_out_of_fulfilment(org, running_schedule, manager, driver, yesterday):
    counted = tracking.create_delivery(running_schedule, manager, "SDN 1", 100)
    tracking.complete_delivery(counted, driver, 80)
    by_gps = tracking.depart_delivery(tracking.create_delivery(running_schedule, manager, "SDN 2", 60), driver)
    tracking.record_location(by_gps, "0", "0", status="DELIVERED", actor=driver)

    row = build_daily_rollup(org, yesterday)
    assert row.deliveries_delivered == 2
    assert (row.portions_planned, row.portions_delivered, row.portions_uncounted) == (160, 80, 60)

    agg = period_summary(org, yesterday, yesterday)
    assert agg["fulfilment_rate"] == 80.0
