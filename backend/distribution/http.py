"""
JSON plumbing shared by the distribution, tracking and incident views.

Success bodies are {"success": true, "data": ...}; failures are
{"success": false, "error": {"code", "message", ...details}}.
"""
import json
import logging
from functools import wraps

from django.db import DatabaseError
from django.http import JsonResponse

from .errors import DistributionError, StorageFailure, ValidationFailed

log = logging.getLogger(__name__)


def ok(data, status: int = 200, **extra) -> JsonResponse:
    body = {"success": True, "data": data}
    body.update(extra)
    return JsonResponse(body, status=status)


def fail(err: DistributionError) -> JsonResponse:
    return JsonResponse({"success": False, "error": err.as_dict()}, status=err.status_code)


def api_view(*methods):
    """
    Usage:
    @api_view("GET", "POST")
    def view(request): ...

    Typed engine errors become their JSON failure body; a database error is
    logged with its traceback and answered as STORAGE_FAILURE.
    """
    allowed = {m.upper() for m in methods}

    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            if allowed and request.method not in allowed:
                resp = JsonResponse(
                    {"success": False, "error": {"code": "METHOD_NOT_ALLOWED", "message": f"{request.method} not allowed."}},
                    status=405,
                )
                resp["Allow"] = ", ".join(sorted(allowed))
                return resp
            try:
                return view_func(request, *args, **kwargs)
            except DistributionError as e:
                log.info("%s %s -> %s %s", request.method, request.path, e.status_code, e.code)
                return fail(e)
            except DatabaseError:
                log.exception("storage failure on %s %s", request.method, request.path)
                return fail(StorageFailure())
        return _wrapped
    return decorator


def parse_json(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise ValidationFailed("Malformed JSON body.")
    if not isinstance(data, dict):
        raise ValidationFailed("JSON body must be an object.")
    return data


def bind(form_class, data) -> dict:
    """Validate `data` with a Django form; form errors become ValidationFailed."""
    form = form_class(data)
    if not form.is_valid():
        raise ValidationFailed(fields={k: [str(m) for m in v] for k, v in form.errors.items()})
    return form.cleaned_data


def present(cleaned: dict, data: dict) -> dict:
    """Only the cleaned values the client actually sent (PATCH semantics)."""
    return {k: v for k, v in cleaned.items() if k in data}
