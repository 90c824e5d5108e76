import logging

import redis
from django.conf import settings

from distribution.errors import RateLimited

log = logging.getLogger(__name__)

_r = None


def _client():
    global _r
    if _r is None:
        _r = redis.Redis.from_url(settings.TRACKING_REDIS_URL, socket_connect_timeout=2, socket_timeout=2)
    return _r


def _bucket(key: str, window_sec: int, max_count: int):
    p = _client().pipeline()
    p.incr(key, 1)
    p.expire(key, window_sec)
    count, _ = p.execute()
    if int(count) > max_count:
        raise RateLimited(f"Rate limit exceeded for {key}", limit=max_count, window_seconds=window_sec)


def check_tracking_rate(delivery_id):
    """
    GPS pushes per delivery per minute. A cap of 0 switches the check off.
    With Redis unreachable the push is let through unmetered.
    """
    cap = int(getattr(settings, "TRACKING_RATE_LIMIT_PER_MIN", 0))
    if cap <= 0:
        return
    try:
        _bucket(f"rl:tracking:{delivery_id}:1m", 60, cap)
    except redis.RedisError:
        log.warning("tracking rate limiter unavailable; letting delivery %s through", delivery_id, exc_info=True)
