"""
Django settings for the kitchen distribution backend.

One module for every environment; DJANGO_ENV (local / staging / production)
switches the profile at the bottom of the file.
"""

import os
from pathlib import Path
from celery.schedules import crontab

LOG_JSON = os.getenv("LOG_JSON", "1") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_REQUESTS = os.getenv("LOG_REQUESTS", "1") == "1"

# this file lives at backend/kitchenops/settings.py, BASE_DIR is backend/
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-unsafe")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
CSRF_TRUSTED_ORIGINS = [o.strip() for o in os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if o.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # project apps
    "accounts",
    "audit",
    "fleet",
    "distribution",
    "tracking",
    "incidents",
    "reporting",
    "ops",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # tenant scoping
    "accounts.middleware.CurrentOrganizationMiddleware",
    "ops.middleware.RequestLogMiddleware",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,  # admin templates
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

ROOT_URLCONF = "kitchenops.urls"
WSGI_APPLICATION = "kitchenops.wsgi.application"
ASGI_APPLICATION = "kitchenops.asgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.mysql",
        "NAME": os.getenv("MYSQL_DATABASE", "kitchenops"),
        "USER": os.getenv("MYSQL_USER", "kitchenops"),
        "PASSWORD": os.getenv("MYSQL_PASSWORD", "kitchenops"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": int(os.getenv("DB_PORT", "3306")),
        "ATOMIC_REQUESTS": False,
        "OPTIONS": {
            "charset": "utf8mb4",
            "use_unicode": True,
            # status CAS and the vehicle row lock rely on committed reads
            "isolation_level": "read committed",
        },
    }
}

AUTH_USER_MODEL = "accounts.User"
AUTHENTICATION_BACKENDS = ["django.contrib.auth.backends.ModelBackend"]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Jakarta")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

ADMIN_URL = os.getenv("ADMIN_URL", "admin")

# --- Distribution engine ---
# GPS pushes accepted per delivery per minute; 0 turns the limiter off.
TRACKING_RATE_LIMIT_PER_MIN = int(os.getenv("TRACKING_RATE_LIMIT_PER_MIN", "30"))
TRACKING_REDIS_URL = os.getenv("TRACKING_REDIS_URL") or os.getenv("CELERY_BROKER_URL") or "redis://127.0.0.1:6379/0"
# window used by the "upcoming" block of schedule statistics
DISTRIBUTION_UPCOMING_DAYS = int(os.getenv("DISTRIBUTION_UPCOMING_DAYS", "7"))

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")
CELERY_TIMEZONE = TIME_ZONE

CELERY_BEAT_SCHEDULE = {
    "reporting-distribution-rollup-nightly": {
        "task": "reporting.tasks.build_distribution_rollups",
        "schedule": crontab(hour=1, minute=30),
    },
    "ops-beat-heartbeat-every-1m": {
        "task": "ops.tasks.beat_heartbeat",
        "schedule": crontab(minute="*/1"),
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        # request lines are already JSON, keep them bare
        "json": {"format": "%(message)s"},
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if LOG_JSON else "plain",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
    },
}

# ------------------------------------------------------------------------------
# Environment profile
# ------------------------------------------------------------------------------
DJANGO_ENV = (os.getenv("DJANGO_ENV") or "local").lower()

if DJANGO_ENV == "local":
    DEBUG = True
elif DJANGO_ENV in {"staging", "production"}:
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_SSL_REDIRECT = True
    SECURE_HSTS_SECONDS = 3600
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
