from __future__ import annotations
from datetime import datetime, date
from decimal import Decimal
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone
from accounts.models import Organization
from distribution.models import Schedule
from incidents.models import Issue
from tracking import geo
from tracking.models import Delivery, TrackingPoint
from .models import DistributionStatDaily

SUMMED_FIELDS = (
    "schedules_total", "schedules_completed", "schedules_cancelled",
    "deliveries_total", "deliveries_delivered", "deliveries_failed",
    "deliveries_on_time", "deliveries_late",
    "portions_planned", "portions_delivered", "portions_uncounted",
    "issues_reported", "issues_critical", "issues_resolved",
)


def _bounds_for_day(day: date):
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, datetime.min.time()), tz)
    end = timezone.make_aware(datetime.combine(day, datetime.max.time()), tz)
    return start, end


def _distance_km(deliveries) -> Decimal:
    total = 0.0
    for delivery_id in deliveries.values_list("pk", flat=True):
        points = TrackingPoint.objects.filter(delivery_id=delivery_id).order_by("recorded_at", "id")
        total += geo.total_distance(list(points))
    return Decimal(str(round(total, 2)))


@transaction.atomic
def build_daily_rollup(org: Organization, day: date) -> DistributionStatDaily:
    start, end = _bounds_for_day(day)

    # Schedules distributed that day
    schedules = Schedule.objects.filter(organization=org, distribution_date=day)
    schedules_total = schedules.count()
    schedules_completed = schedules.filter(status=Schedule.Status.COMPLETED).count()
    schedules_cancelled = schedules.filter(status=Schedule.Status.CANCELLED).count()

    # Their deliveries
    deliveries = Delivery.objects.filter(schedule__in=schedules)
    delivered = deliveries.filter(status=Delivery.Status.DELIVERED)
    timed = deliveries.filter(actual_arrival__isnull=False, estimated_arrival__isnull=False)
    portions = deliveries.aggregate(planned=Sum("portions_planned"), delivered=Sum("portions_delivered"))
    uncounted = delivered.filter(portions_delivered__isnull=True).aggregate(n=Sum("portions_planned"))["n"]

    # Issues (events on this day)
    issues = Issue.objects.filter(schedule__organization=org)
    reported = issues.filter(reported_at__range=(start, end))

    # Upsert
    DistributionStatDaily.objects.filter(organization=org, day=day).delete()
    return DistributionStatDaily.objects.create(
        organization=org, day=day,
        schedules_total=schedules_total,
        schedules_completed=schedules_completed,
        schedules_cancelled=schedules_cancelled,
        deliveries_total=deliveries.count(),
        deliveries_delivered=delivered.count(),
        deliveries_failed=deliveries.filter(status=Delivery.Status.FAILED).count(),
        deliveries_on_time=timed.filter(actual_arrival__lte=F("estimated_arrival")).count(),
        deliveries_late=timed.filter(actual_arrival__gt=F("estimated_arrival")).count(),
        portions_planned=portions["planned"] or 0,
        portions_delivered=portions["delivered"] or 0,
        portions_uncounted=uncounted or 0,
        distance_km=_distance_km(deliveries),
        issues_reported=reported.count(),
        issues_critical=reported.filter(severity=Issue.Severity.CRITICAL).count(),
        issues_resolved=issues.filter(resolved_at__range=(start, end)).count(),
    )


def build_rollups_for_day(day: date) -> int:
    n = 0
    for org in Organization.objects.filter(is_active=True).iterator():
        build_daily_rollup(org, day)
        n += 1
    return n


def period_summary(org: Organization, start_day: date, end_day: date) -> dict:
    qs = DistributionStatDaily.objects.filter(organization=org, day__gte=start_day, day__lte=end_day)
    agg = {k: 0 for k in SUMMED_FIELDS}
    agg["distance_km"] = Decimal("0")
    for r in qs:
        for k in SUMMED_FIELDS:
            agg[k] += getattr(r, k, 0)
        agg["distance_km"] += r.distance_km
    # convenience metrics
    timed = agg["deliveries_on_time"] + agg["deliveries_late"]
    agg["on_time_rate"] = round((agg["deliveries_on_time"] / timed) * 100, 1) if timed else 0.0
    # legs handed over without a count are left out of the fulfilment rate
    counted = agg["portions_planned"] - agg["portions_uncounted"]
    agg["fulfilment_rate"] = round((agg["portions_delivered"] / counted) * 100, 1) if counted else 0.0
    return agg
