import pytest
from django.contrib.auth.models import AnonymousUser

from audit.models import AuditLog
from distribution.errors import AlreadyResolved, NotFound, ValidationFailed
from incidents import services
from incidents.models import Issue
from tracking import services as tracking


@pytest.mark.django_db
def test_report_issue_with_affected_deliveries(running_schedule, manager, driver):
    d1 = tracking.create_delivery(running_schedule, manager, "SDN 1", 100)
    d2 = tracking.create_delivery(running_schedule, manager, "SDN 2", 100)

    issue = services.report_issue(
        running_schedule, driver, "TRAFFIC_JAM", "MEDIUM", "Jammed at the Sadang junction",
        location="Sadang", affected_delivery_ids=[d2.pk, str(d1.pk), d2.pk],
    )
    assert issue.affected_deliveries == sorted([d1.pk, d2.pk])
    assert issue.reported_by == driver
    assert not issue.is_resolved
    assert AuditLog.objects.filter(action="ISSUE_REPORTED", target_id=str(issue.pk)).exists()


@pytest.mark.django_db
def test_report_rejects_deliveries_of_other_schedules(make_schedule, running_schedule, manager, driver):
    elsewhere = make_schedule()
    foreign = tracking.create_delivery(elsewhere, manager, "SDN 9", 10)

    with pytest.raises(ValidationFailed) as exc:
        services.report_issue(running_schedule, driver, "OTHER", "LOW", "Wrong school",
                              affected_delivery_ids=[foreign.pk])
    assert "affected_deliveries" in exc.value.details["fields"]
    assert not Issue.objects.exists()


@pytest.mark.django_db
def test_report_validates_choices(schedule, driver):
    with pytest.raises(ValidationFailed) as exc:
        services.report_issue(schedule, driver, "ALIENS", "APOCALYPTIC", "")
    assert set(exc.value.details["fields"]) == {"issue_type", "severity", "description"}


@pytest.mark.django_db
def test_resolve_once(schedule, driver, manager, admin_user):
    issue = services.report_issue(schedule, driver, "FOOD_QUALITY", "HIGH", "Rice smelled off")

    resolved = services.resolve_issue(issue, manager, "Batch replaced")
    assert resolved.is_resolved
    assert resolved.resolved_by == manager
    assert resolved.resolution_notes == "Batch replaced"
    first_resolved_at = resolved.resolved_at

    with pytest.raises(AlreadyResolved) as exc:
        services.resolve_issue(issue, admin_user, "second try")
    assert exc.value.details["resolved_by"] == manager.pk

    issue.refresh_from_db()
    assert issue.resolved_by == manager
    assert issue.resolved_at == first_resolved_at
    assert issue.resolution_notes == "Batch replaced"
    assert AuditLog.objects.filter(action="ISSUE_RESOLVED").count() == 1


@pytest.mark.django_db
def test_resolve_needs_a_user(schedule, driver):
    issue = services.report_issue(schedule, driver, "OTHER", "LOW", "Gate locked")
    with pytest.raises(ValidationFailed):
        services.resolve_issue(issue, AnonymousUser())


@pytest.mark.django_db
def test_list_puts_critical_first_then_newest(schedule, driver, manager):
    low = services.report_issue(schedule, driver, "OTHER", "LOW", "Minor")
    crit_old = services.report_issue(schedule, driver, "VEHICLE_BREAKDOWN", "CRITICAL", "Axle")
    high = services.report_issue(schedule, driver, "WEATHER_DELAY", "HIGH", "Flooded road")
    crit_new = services.report_issue(schedule, driver, "ACCESS_DENIED", "CRITICAL", "Gate closed")

    ids = [i.pk for i in services.list_issues(schedule)]
    assert ids == [crit_new.pk, crit_old.pk, high.pk, low.pk]

    services.resolve_issue(crit_old, manager)
    assert [i.pk for i in services.list_issues(schedule, resolved=False)] == [crit_new.pk, high.pk, low.pk]
    assert [i.pk for i in services.list_issues(schedule, severity="CRITICAL", resolved=True)] == [crit_old.pk]


@pytest.mark.django_db
def test_summary_counts(schedule, driver, manager):
    a = services.report_issue(schedule, driver, "SHORTAGE", "HIGH", "20 portions short")
    services.report_issue(schedule, driver, "SHORTAGE", "CRITICAL", "Whole crate missing")
    services.resolve_issue(a, manager)

    summary = services.issue_summary(schedule)
    assert summary["total"] == 2
    assert summary["resolved"] == 1
    assert summary["unresolved"] == 1
    assert summary["by_severity"] == {"CRITICAL": 1, "HIGH": 1, "MEDIUM": 0, "LOW": 0}
    assert summary["by_type"]["SHORTAGE"] == 2
    assert services.unresolved_critical_count(schedule) == 1


@pytest.mark.django_db
def test_get_issue_is_tenant_scoped(schedule, driver, other_org):
    issue = services.report_issue(schedule, driver, "OTHER", "LOW", "x")
    with pytest.raises(NotFound):
        services.get_issue(other_org, issue.pk)
