from .dev import *  # noqa: F401,F403

# ruff: noqa: F405

ENV_NAME = "test"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-locmem",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

SERVICE_JWT_SECRET = "service-test-secret-for-the-vendor-sync-suite"
SERVICE_JWT_AUDIENCE = "clairity-services"

VENDOR_SYNC_ALLOW_EXPLICIT_PATH = True
VENDOR_SYNC_STOCK_STORES = ["main"]

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "WARNING"},
}
