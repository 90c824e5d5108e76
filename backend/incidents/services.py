from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import Case, Count, IntegerField, Value, When
from django.utils import timezone

from audit.utils import audit_log
from distribution.errors import AlreadyResolved, NotFound, ValidationFailed
from distribution.models import Schedule
from tracking.models import Delivery

from .models import Issue

log = logging.getLogger(__name__)

_SEVERITY_RANK = Case(
    When(severity=Issue.Severity.CRITICAL, then=Value(0)),
    When(severity=Issue.Severity.HIGH, then=Value(1)),
    When(severity=Issue.Severity.MEDIUM, then=Value(2)),
    default=Value(3),
    output_field=IntegerField(),
)


def get_issue(org, issue_id) -> Issue:
    issue = Issue.objects.select_related("schedule").filter(pk=issue_id, schedule__organization=org).first()
    if issue is None:
        raise NotFound("Issue not found.", issue_id=issue_id)
    return issue


def report_issue(schedule: Schedule, actor, issue_type: str, severity: str, description: str,
                 location: str = "", affected_delivery_ids: Iterable = (), request=None) -> Issue:
    errors = {}
    if issue_type not in Issue.IssueType.values:
        errors["issue_type"] = [f"Unknown issue type {issue_type!r}."]
    if severity not in Issue.Severity.values:
        errors["severity"] = [f"Unknown severity {severity!r}."]
    if not (description or "").strip():
        errors["description"] = ["Required."]

    try:
        affected = sorted({int(d) for d in (affected_delivery_ids or ())})
    except (TypeError, ValueError):
        affected = []
        errors["affected_deliveries"] = ["Delivery ids must be integers."]
    if affected:
        own = set(Delivery.objects.filter(schedule=schedule, pk__in=affected).values_list("pk", flat=True))
        foreign = [d for d in affected if d not in own]
        if foreign:
            errors["affected_deliveries"] = [f"Deliveries {foreign} do not belong to this schedule."]
    if errors:
        raise ValidationFailed(fields=errors)

    with transaction.atomic():
        issue = Issue.objects.create(
            schedule=schedule,
            issue_type=issue_type,
            severity=severity,
            description=description.strip(),
            location=location or "",
            affected_deliveries=affected,
            reported_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        audit_log(actor, schedule.organization, "ISSUE_REPORTED", target=issue, payload={
            "schedule_id": schedule.pk,
            "issue_type": issue_type,
            "severity": severity,
            "affected_deliveries": affected,
        }, request=request)
    log.info("issue %s (%s/%s) reported on schedule %s", issue.pk, issue_type, severity, schedule.pk)
    return issue


def resolve_issue(issue: Issue, actor, notes: str = "", request=None) -> Issue:
    """
    Close an issue once. The write only touches a row that is still open,
    so a second resolve raises AlreadyResolved and leaves the first one as is.
    """
    if not getattr(actor, "is_authenticated", False):
        raise ValidationFailed("A signed-in user must resolve the issue.")
    with transaction.atomic():
        now = timezone.now()
        updated = Issue.objects.filter(pk=issue.pk, resolved_at__isnull=True).update(
            resolved_at=now, resolved_by=actor, resolution_notes=notes or "",
        )
        if updated == 0:
            issue.refresh_from_db()
            raise AlreadyResolved(
                issue_id=issue.pk,
                resolved_at=issue.resolved_at.isoformat() if issue.resolved_at else None,
                resolved_by=issue.resolved_by_id,
            )
        issue.refresh_from_db()
        audit_log(actor, issue.schedule.organization, "ISSUE_RESOLVED", target=issue,
                  payload={"notes": notes or ""}, request=request)
    log.info("issue %s resolved", issue.pk)
    return issue


def list_issues(schedule: Schedule, issue_type: Optional[str] = None, severity: Optional[str] = None,
                resolved: Optional[bool] = None):
    """Critical first, then newest."""
    qs = Issue.objects.filter(schedule=schedule).select_related("reported_by", "resolved_by")
    if issue_type:
        qs = qs.filter(issue_type=issue_type)
    if severity:
        qs = qs.filter(severity=severity)
    if resolved is not None:
        qs = qs.filter(resolved_at__isnull=not resolved)
    return qs.annotate(severity_rank=_SEVERITY_RANK).order_by("severity_rank", "-reported_at", "-id")


def issue_summary(schedule: Schedule) -> dict:
    qs = Issue.objects.filter(schedule=schedule)
    total = qs.count()
    resolved = qs.filter(resolved_at__isnull=False).count()
    by_severity = {s: 0 for s in Issue.Severity.values}
    for row in qs.values("severity").annotate(n=Count("id")):
        by_severity[row["severity"]] = row["n"]
    by_type = {t: 0 for t in Issue.IssueType.values}
    for row in qs.values("issue_type").annotate(n=Count("id")):
        by_type[row["issue_type"]] = row["n"]
    return {
        "total": total,
        "resolved": resolved,
        "unresolved": total - resolved,
        "by_severity": by_severity,
        "by_type": by_type,
    }


def unresolved_critical_count(schedule: Schedule) -> int:
    return Issue.objects.filter(
        schedule=schedule, severity=Issue.Severity.CRITICAL, resolved_at__isnull=True,
    ).count()
