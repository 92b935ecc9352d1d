# vendor_sync/apps.py
from __future__ import annotations

from django.apps import AppConfig


class VendorSyncConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "vendor_sync"
    verbose_name = "Vendor sync"
