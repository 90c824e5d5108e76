from __future__ import annotations
from datetime import timedelta
from celery import shared_task
from django.utils import timezone
from .services import build_rollups_for_day


@shared_task
def build_distribution_rollups():
    # roll up "yesterday" so the day is complete
    day = (timezone.localdate() - timedelta(days=1))
    return build_rollups_for_day(day)
