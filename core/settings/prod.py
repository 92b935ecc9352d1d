import os

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa

ENV_NAME = "prod"
# --- Debug & hosts ---
DEBUG = False

# Expect ALLOWED_HOSTS from .env, e.g. ALLOWED_HOSTS=app.example.com
if not ALLOWED_HOSTS:
    ALLOWED_HOSTS = ["localhost"]

_env_csrf = os.getenv("CSRF_TRUSTED_ORIGINS", "")
if _env_csrf:
    CSRF_TRUSTED_ORIGINS = [u.strip() for u in _env_csrf.split(",") if u.strip()]

# --- Service tokens ---
# base.py falls back to a public dev secret; never sign production tokens with it.
if not (os.getenv("SERVICE_JWT_SECRET") or os.getenv("AUTH_JWT_SECRET")):
    raise ImproperlyConfigured("SERVICE_JWT_SECRET (or AUTH_JWT_SECRET) must be set in production")

# Callers may not point a sync at arbitrary files in production.
VENDOR_SYNC_ALLOW_EXPLICIT_PATH = False

# --- Cache (Redis if REDIS_URL provided; else locmem) ---
# The per-vendor sync lock lives here, so multi-process deployments need Redis.
REDIS_URL = os.getenv("REDIS_URL", "")
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": REDIS_URL,
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "prod-locmem",
        }
    }

# --- Security hardening ---
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_SSL_REDIRECT = True

SECURE_HSTS_SECONDS = int(os.getenv("SECURE_HSTS_SECONDS", "31536000"))
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True

SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = "DENY"

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# --- Logging (quiet by default, INFO+) ---
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "[{levelname}] {asctime} {name}: {message}",
            "style": "{",
        }
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django.request": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": True,
        },
        "vendor_sync": {
            "handlers": ["console"],
            "level": os.getenv("VENDOR_SYNC_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
