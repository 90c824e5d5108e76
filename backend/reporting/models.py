from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from accounts.models import Organization


class DistributionStatDaily(models.Model):
    """
    One row per (organization, distribution day). Snapshot of counts for that day,
    rebuilt whole by reporting.services.build_daily_rollup.
    """
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="daily_stats")
    day = models.DateField(db_index=True)

    # Schedules distributed on this day, by status
    schedules_total = models.PositiveIntegerField(default=0)
    schedules_completed = models.PositiveIntegerField(default=0)
    schedules_cancelled = models.PositiveIntegerField(default=0)

    # Deliveries of those schedules
    deliveries_total = models.PositiveIntegerField(default=0)
    deliveries_delivered = models.PositiveIntegerField(default=0)
    deliveries_failed = models.PositiveIntegerField(default=0)
    deliveries_on_time = models.PositiveIntegerField(default=0)
    deliveries_late = models.PositiveIntegerField(default=0)

    # Portions
    portions_planned = models.PositiveIntegerField(default=0)
    portions_delivered = models.PositiveIntegerField(default=0)
    # planned portions of legs marked DELIVERED without a count (GPS handoff)
    portions_uncounted = models.PositiveIntegerField(default=0)

    # GPS
    distance_km = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))

    # Issues (events on this day)
    issues_reported = models.PositiveIntegerField(default=0)
    issues_critical = models.PositiveIntegerField(default=0)
    issues_resolved = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = (("organization", "day"),)
        indexes = [models.Index(fields=["organization", "day"], name="dailystat_org_day_idx")]

    def __str__(self):
        return f"{self.organization.name} – {self.day}"
