from accounts.decorators import require_roles
from accounts.models import ALL_ROLES, FIELD_ROLES, PLANNER_ROLES, Role
from distribution.http import api_view, bind, ok, parse_json
from distribution.services import get_schedule

from . import services
from .forms import IssueFilterForm, IssueForm, ResolveForm

REPORTER_ROLES = FIELD_ROLES + (Role.QUALITY_CONTROL,)
RESOLVER_ROLES = PLANNER_ROLES + (Role.QUALITY_CONTROL,)


def issue_to_dict(i) -> dict:
    return {
        "id": i.id,
        "schedule_id": i.schedule_id,
        "issue_type": i.issue_type,
        "severity": i.severity,
        "description": i.description,
        "location": i.location,
        "affected_deliveries": i.affected_deliveries,
        "reported_by": i.reported_by_id,
        "reported_at": i.reported_at,
        "resolved": i.is_resolved,
        "resolved_by": i.resolved_by_id,
        "resolved_at": i.resolved_at,
        "resolution_notes": i.resolution_notes,
    }


@api_view("GET", "POST")
def schedule_issues(request, schedule_id: int):
    if request.method == "POST":
        return _report_issue(request, schedule_id)
    return _list_issues(request, schedule_id)


@require_roles(*REPORTER_ROLES)
def _report_issue(request, schedule_id):
    sched = get_schedule(request.org, schedule_id)
    f = bind(IssueForm, parse_json(request))
    issue = services.report_issue(
        sched, request.user,
        issue_type=f["issue_type"],
        severity=f["severity"],
        description=f["description"],
        location=f["location"],
        affected_delivery_ids=f["affected_deliveries"],
        request=request,
    )
    return ok(issue_to_dict(issue), status=201)


@require_roles(*ALL_ROLES)
def _list_issues(request, schedule_id):
    sched = get_schedule(request.org, schedule_id)
    f = bind(IssueFilterForm, request.GET)
    issues = services.list_issues(
        sched, issue_type=f["issue_type"] or None, severity=f["severity"] or None, resolved=f["resolved"],
    )
    return ok([issue_to_dict(i) for i in issues], summary=services.issue_summary(sched))


@api_view("POST")
@require_roles(*RESOLVER_ROLES)
def resolve(request, issue_id: int):
    issue = services.get_issue(request.org, issue_id)
    f = bind(ResolveForm, parse_json(request))
    issue = services.resolve_issue(issue, request.user, notes=f["notes"], request=request)
    return ok(issue_to_dict(issue))
