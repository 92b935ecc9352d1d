import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE", os.getenv("DJANGO_SETTINGS_MODULE", "core.settings")
)

app = Celery("core")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


app.conf.beat_schedule = {
    "sync-moscot-daily-2am": {
        "task": "vendor_sync.tasks.run_vendor_sync",
        "schedule": crontab(hour=2, minute=0),
        "args": ("moscot",),
        "kwargs": {"dry_run": False, "actor": "scheduler"},
    },
}
