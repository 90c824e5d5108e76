"""Settings used by the pytest suite: SQLite, eager Celery, no Redis."""

from .settings import *  # noqa: F401,F403

DEBUG = False
DJANGO_ENV = "test"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test.sqlite3",  # noqa: F405
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

TRACKING_RATE_LIMIT_PER_MIN = 0
LOG_REQUESTS = False
