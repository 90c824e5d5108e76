import json, time, logging, os
from django.conf import settings
from django.utils.deprecation import MiddlewareMixin
from django.utils.timezone import now

log = logging.getLogger("request")
REDACT = os.getenv("REDACT_PII_IN_LOGS", "1") == "1"

REDACT_KEYS = {"password", "phone", "phone_e164", "email", "recipient_name", "driver_name", "helpers", "helper_names"}


def _log_requests() -> bool:
    return getattr(settings, "LOG_REQUESTS", True)


def _scrub(d: dict):
    if not REDACT or not d:
        return d
    out = {}
    for k, v in d.items():
        if k.lower() in REDACT_KEYS:
            out[k] = "***redacted***"
        else:
            out[k] = v
    return out


def _body_keys(request) -> list:
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            return []
        return sorted(_scrub(data).keys()) if isinstance(data, dict) else []
    return sorted(_scrub(dict(request.POST.items())).keys())


class RequestLogMiddleware(MiddlewareMixin):
    """One JSON line per request: who, which kitchen, what, how long."""

    def process_request(self, request):
        if not _log_requests():
            return
        request._ts = time.time()

    def process_response(self, request, response):
        if not _log_requests():
            return response
        dur = time.time() - getattr(request, "_ts", time.time())
        u = getattr(request, "user", None)
        org = getattr(request, "org", None)
        mem = getattr(request, "membership", None)
        payload = {
            "ts": now().isoformat(),
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": int(dur * 1000),
            "user": (u.pk if u and u.is_authenticated else None),
            "org": (org.id if org else None),
            "role": (mem.role if mem else None),
            "ip": request.META.get("REMOTE_ADDR"),
            "ua": request.META.get("HTTP_USER_AGENT", ""),
        }
        # body keys only, never values
        if request.method in ("POST", "PUT", "PATCH"):
            payload["body_keys"] = _body_keys(request)
        if response.status_code >= 500:
            log.error(json.dumps(payload))
        else:
            log.info(json.dumps(payload))
        return response
