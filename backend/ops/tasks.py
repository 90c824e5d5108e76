import logging

from celery import shared_task
from django.utils import timezone

from .models import Heartbeat

log = logging.getLogger(__name__)


@shared_task
def beat_heartbeat():
    """Touched every minute by beat; /healthz reports beat as down once it goes stale."""
    beat, _ = Heartbeat.objects.update_or_create(key="beat", defaults={"seen_at": timezone.now()})
    log.debug("beat heartbeat at %s", beat.seen_at)
    return beat.seen_at.isoformat()
