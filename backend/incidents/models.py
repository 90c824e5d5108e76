from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounts.models import User
from distribution.models import Schedule


class Issue(models.Model):
    """
    Something that went wrong while a schedule was being executed.

    Resolution is one-way: incidents.services.resolve_issue only writes rows
    whose resolved_at is still NULL.
    """

    class IssueType(models.TextChoices):
        VEHICLE_BREAKDOWN = "VEHICLE_BREAKDOWN", "Vehicle breakdown"
        WEATHER_DELAY = "WEATHER_DELAY", "Weather delay"
        TRAFFIC_JAM = "TRAFFIC_JAM", "Traffic jam"
        ACCESS_DENIED = "ACCESS_DENIED", "Access denied"
        RECIPIENT_UNAVAILABLE = "RECIPIENT_UNAVAILABLE", "Recipient unavailable"
        FOOD_QUALITY = "FOOD_QUALITY", "Food quality"
        SHORTAGE = "SHORTAGE", "Portion shortage"
        OTHER = "OTHER", "Other"

    class Severity(models.TextChoices):
        CRITICAL = "CRITICAL", "Critical"
        HIGH = "HIGH", "High"
        MEDIUM = "MEDIUM", "Medium"
        LOW = "LOW", "Low"

    schedule = models.ForeignKey(Schedule, on_delete=models.CASCADE, related_name="issues")
    issue_type = models.CharField(max_length=32, choices=IssueType.choices)
    severity = models.CharField(max_length=16, choices=Severity.choices, default=Severity.MEDIUM, db_index=True)
    description = models.TextField()
    location = models.CharField(max_length=255, blank=True)
    # delivery ids of this schedule
    affected_deliveries = models.JSONField(default=list, blank=True)

    reported_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="reported_issues")
    reported_at = models.DateTimeField(default=timezone.now, db_index=True)

    resolved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="resolved_issues")
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolution_notes = models.TextField(blank=True)

    class Meta:
        ordering = ("-reported_at", "-id")
        indexes = [
            models.Index(fields=["schedule", "severity"], name="issue_sched_severity_idx"),
            models.Index(fields=["schedule", "resolved_at"], name="issue_sched_resolved_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(resolved_at__isnull=True) | Q(resolved_by__isnull=False),
                name="issue_resolved_has_resolver",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_issue_type_display()} ({self.severity}) on schedule {self.schedule_id}"

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None
