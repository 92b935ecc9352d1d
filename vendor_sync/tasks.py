# vendor_sync/tasks.py
from __future__ import annotations

from celery import shared_task

from vendor_sync.services.sync import run_vendor_sync as _run_vendor_sync


@shared_task
def run_vendor_sync(slug: str, dry_run: bool = True, actor: str = "scheduler"):
    return _run_vendor_sync(slug, dry_run=dry_run, actor=actor).to_dict()
