from django.conf import settings
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path

from accounts.decorators import require_roles
from accounts.models import ALL_ROLES


@require_roles(*ALL_ROLES, allow_superuser=True)
def whoami(request):
    u = request.user
    org = getattr(request, "org", None)
    mem = getattr(request, "membership", None)
    return JsonResponse({
        "email": u.email,
        "active_org": org.name if org else None,
        "role": mem.role if mem else None,
        "memberships": list(
            u.memberships.filter(is_active=True).values("organization_id", "organization__name", "role")
        ),
    })


urlpatterns = [
    path(f"{settings.ADMIN_URL}/", admin.site.urls),
    path("whoami/", whoami),
    path("distribution/", include("distribution.urls")),
    path("distribution/", include("tracking.urls")),
    path("distribution/", include("incidents.urls")),
    path("distribution/", include("reporting.urls")),
    path("", include("ops.urls")),
]
