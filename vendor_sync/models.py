# vendor_sync/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone


class IntegrationType(models.TextChoices):
    SCRAPER = "SCRAPER", "Scraper"
    API = "API", "API"


class Vendor(models.Model):
    """An external supplier whose catalog we ingest (e.g. MOSCOT)."""

    slug = models.SlugField(max_length=64, unique=True, help_text="Short code, e.g. 'moscot'")
    name = models.CharField(max_length=120)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["slug"]

    def __str__(self) -> str:
        return f"{self.slug} ({self.name})"


class VendorIntegration(models.Model):
    """
    How a vendor's feed is reached. SCRAPER integrations point at a scraped JSON file,
    API integrations at a base URL (+ optional key). Secrets never leave through read paths.
    """

    vendor = models.OneToOneField(Vendor, on_delete=models.CASCADE, related_name="integration")
    type = models.CharField(max_length=16, choices=IntegrationType.choices)
    scraper_path = models.CharField(max_length=500, null=True, blank=True)
    api_base_url = models.URLField(max_length=500, null=True, blank=True)
    api_auth_type = models.CharField(max_length=32, null=True, blank=True)
    api_key = models.CharField(max_length=255, null=True, blank=True)
    last_test_at = models.DateTimeField(null=True, blank=True)
    last_test_ok = models.BooleanField(null=True, blank=True)
    meta = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.vendor.slug}:{self.type}"


class VendorCatalogItem(models.Model):
    """Last-applied normalized payload per (vendor, catalogId), with its content hash."""

    vendor = models.CharField(max_length=64)
    catalog_id = models.CharField(max_length=191)
    payload = models.JSONField(default=dict)
    hash = models.CharField(max_length=64)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["vendor", "catalog_id"], name="uq_vendor_catalog_id"),
        ]
        indexes = [models.Index(fields=["vendor"])]

    def __str__(self) -> str:
        return f"{self.vendor}:{self.catalog_id}"


class VendorSyncRun(models.Model):
    """One auditable sync attempt. Written before any catalog mutation, finalized once."""

    STATUS_PENDING = "pending"
    STATUS_RUNNING = "running"
    STATUS_SUCCESS = "success"
    STATUS_ERROR = "error"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_RUNNING, "Running"),
        (STATUS_SUCCESS, "Success"),
        (STATUS_ERROR, "Error"),
    ]
    TERMINAL_STATUSES = {STATUS_SUCCESS, STATUS_ERROR}

    vendor = models.CharField(max_length=64)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    dry_run = models.BooleanField(default=True)
    actor = models.CharField(max_length=120, default="service")
    source_path = models.CharField(max_length=500, null=True, blank=True)
    started_at = models.DateTimeField(default=timezone.now)
    finished_at = models.DateTimeField(null=True, blank=True)
    duration_ms = models.PositiveIntegerField(null=True, blank=True)
    hash = models.CharField(max_length=64, blank=True, default="")
    total_items = models.PositiveIntegerField(default=0)
    created_count = models.PositiveIntegerField(default=0)
    updated_count = models.PositiveIntegerField(default=0)
    unchanged_count = models.PositiveIntegerField(default=0)
    removed_count = models.PositiveIntegerField(default=0)
    failed_count = models.PositiveIntegerField(default=0)
    error = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["-started_at", "-id"]
        indexes = [
            models.Index(fields=["vendor", "-started_at"]),
            models.Index(fields=["status"]),
        ]

    def __str__(self) -> str:
        mode = "dry-run" if self.dry_run else "apply"
        return f"{self.vendor} @ {self.started_at:%Y-%m-%d %H:%M:%S} [{self.status}, {mode}]"

    @property
    def is_finished(self) -> bool:
        return self.status in self.TERMINAL_STATUSES


class VendorSyncRunDiff(models.Model):
    run = models.OneToOneField(VendorSyncRun, on_delete=models.CASCADE, related_name="diff")
    counts = models.JSONField(default=dict, blank=True)
    items = models.JSONField(default=list, blank=True)
    removed = models.JSONField(default=list, blank=True)
    errors = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"Diff(run={self.run_id})"


class VendorSyncState(models.Model):
    """Per-vendor rollup. `last_hash` is the reconciliation baseline and only moves on apply."""

    vendor = models.CharField(max_length=64, unique=True)
    last_run_at = models.DateTimeField(null=True, blank=True)
    last_source = models.CharField(max_length=500, null=True, blank=True)
    total_items = models.PositiveIntegerField(null=True, blank=True)
    last_duration_ms = models.PositiveIntegerField(null=True, blank=True)
    last_hash = models.CharField(max_length=64, null=True, blank=True)
    last_run_by = models.CharField(max_length=120, null=True, blank=True)
    last_error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"SyncState({self.vendor})"
