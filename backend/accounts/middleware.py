from django.http import JsonResponse
from .models import OrgMembership


class CurrentOrganizationMiddleware:
    """
    Sets request.org and request.membership for authenticated users.

    Selection order:
      1) X-Organization-Id header (numeric id) if the user is a member
      2) ?org=<id> query param (for quick testing)
      3) If the user has exactly one active membership, use it
      4) Otherwise, no org attached (views enforce via @require_roles)

    request.org is the tenant every distribution query is scoped to and
    request.membership.role is the principal's role.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.org = None
        request.membership = None

        u = getattr(request, "user", None)
        if u and u.is_authenticated:
            qs = OrgMembership.objects.select_related("organization").filter(
                user=u, is_active=True, organization__is_active=True
            )
            org_id = request.headers.get("X-Organization-Id") or request.GET.get("org")
            if org_id:
                try:
                    mem = qs.filter(organization_id=int(org_id)).first()
                except ValueError:
                    mem = None
                if mem is None:
                    return JsonResponse(
                        {"success": False, "error": {"code": "FORBIDDEN", "message": "Invalid organization for this user."}},
                        status=403,
                    )
                request.org = mem.organization
                request.membership = mem
            else:
                mems = list(qs[:2])
                if len(mems) == 1:
                    request.org = mems[0].organization
                    request.membership = mems[0]
        return self.get_response(request)
