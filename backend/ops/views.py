from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils import timezone

from .models import Heartbeat

BEAT_STALE_AFTER_SEC = 180


def healthz(request):
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1")
        beat = Heartbeat.objects.filter(key="beat").first()
    except DatabaseError:
        return JsonResponse({"ok": False, "db_ok": False, "celery_beat_ok": False}, status=503)
    beat_ok = False
    if beat:
        beat_ok = (timezone.now() - beat.seen_at).total_seconds() < BEAT_STALE_AFTER_SEC
    return JsonResponse({"ok": True, "db_ok": True, "celery_beat_ok": beat_ok})
