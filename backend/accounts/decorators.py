from functools import wraps
from django.http import JsonResponse


def _forbidden(message: str, status: int = 403):
    return JsonResponse({"success": False, "error": {"code": "FORBIDDEN", "message": message}}, status=status)


def require_roles(*roles, allow_superuser=False):
    """
    Usage:
    @require_roles(Role.ORG_ADMIN, Role.DISTRIBUTION_MANAGER)
    def view(request): ...

    A superuser still needs an org context (request.org) because every
    distribution query is tenant scoped.
    """
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            u = request.user
            if not u.is_authenticated:
                return _forbidden("Auth required.", status=401)
            mem = getattr(request, "membership", None)
            if allow_superuser and u.is_superuser and getattr(request, "org", None):
                return view_func(request, *args, **kwargs)
            if not mem:
                return _forbidden("Organization context required.")
            if mem.role in roles:
                return view_func(request, *args, **kwargs)
            return _forbidden("Insufficient role.")
        return _wrapped
    return decorator
