# vendor_sync/services/sync.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils.timezone import now

from catalog.models import Product, StoreStock
from vendor_sync.adapters import AdapterRegistry, build_default_registry
from vendor_sync.exceptions import (
    NormalizationError,
    ProductValidationError,
    SyncInProgressError,
    UnsupportedIntegrationError,
    VendorNotConfiguredError,
)
from vendor_sync.models import (
    Vendor,
    VendorCatalogItem,
    VendorIntegration,
    VendorSyncRun,
    VendorSyncRunDiff,
    VendorSyncState,
)
from vendor_sync.schemas import NormalizedProduct
from vendor_sync.services.diff import (
    DiffResult,
    SnapshotEntry,
    compute_diff,
    product_fields,
    product_sku,
    stock_fields,
)
from vendor_sync.services.loader import load_catalog
from vendor_sync.slugs import DEFAULT_VENDOR_SLUG, normalize_vendor_slug

log = logging.getLogger(__name__)

DEFAULT_PREVIEW_SAMPLE = 5
MAX_PREVIEW_SAMPLE = 100


@dataclass
class RunResult:
    run_id: int
    vendor: str
    status: str
    dry_run: bool
    source_path: str
    counts: Dict[str, int] = field(default_factory=dict)
    failed: int = 0
    duration_ms: int = 0
    hash: str = ""
    empty_feed: bool = False
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.status == VendorSyncRun.STATUS_SUCCESS,
            "runId": self.run_id,
            "vendor": self.vendor,
            "status": self.status,
            "mode": "dryRun" if self.dry_run else "apply",
            "metrics": {
                "total": self.counts.get("total", 0),
                "created": self.counts.get("created", 0),
                "updated": self.counts.get("updated", 0),
                "removed": self.counts.get("removed", 0),
                "unchanged": self.counts.get("unchanged", 0),
                "failed": self.failed,
                "durationMs": self.duration_ms,
                "dryRun": 1 if self.dry_run else 0,
            },
            "sourcePath": self.source_path,
            "hash": self.hash,
            "emptyFeed": self.empty_feed,
            "errors": self.errors,
        }


class VendorSyncService:
    """
    One end-to-end sync attempt per call: lock -> run row -> load -> normalize ->
    diff -> (apply) -> finalize. Preview (dry_run) never touches catalog rows or
    the vendor's sync state; apply commits everything in one transaction.

    The VendorSyncRun row is written outside the apply transaction so failed
    attempts stay visible in history.
    """

    def __init__(self, registry: Optional[AdapterRegistry] = None):
        self.registry = registry if registry is not None else build_default_registry()

    # ---------- public ----------
    def preview_normalize(self, vendor_slug: str, raw: Any) -> NormalizedProduct:
        return self.registry.normalize(normalize_vendor_slug(vendor_slug), raw)

    def preview_sample(
        self,
        vendor_slug: str,
        *,
        sample: int = DEFAULT_PREVIEW_SAMPLE,
        source_path: Optional[str] = None,
    ) -> Tuple[List[NormalizedProduct], str]:
        """
        Normalize up to `sample` items, read from `source_path` when given, else from
        the most recently stored catalog payloads. Items that fail are skipped.
        Returns (products, source) where source is the path or "db".
        """
        slug = normalize_vendor_slug(vendor_slug)
        self.registry.get_adapter(slug)

        if source_path:
            raw_items = load_catalog(slug, explicit_path=source_path).items[:sample]
            source = source_path
        else:
            payloads = (
                VendorCatalogItem.objects.filter(vendor=slug)
                .order_by("-created_at", "-id")
                .values_list("payload", flat=True)[: sample * 2]
            )
            raw_items = [p for p in payloads if isinstance(p, dict) and p][:sample]
            source = "db"

        products: List[NormalizedProduct] = []
        for index, raw in enumerate(raw_items):
            try:
                products.append(self.registry.normalize(slug, raw))
            except NormalizationError as e:
                log.info("vendor_sync.preview_skipped vendor=%s index=%s err=%s", slug, index, e)
        return products, source

    def run(
        self,
        vendor_slug: str,
        *,
        dry_run: bool = True,
        source_path: Optional[str] = None,
        actor: str = "service",
        items: Optional[Sequence[Any]] = None,
    ) -> RunResult:
        slug = normalize_vendor_slug(vendor_slug)
        integration = self._resolve_integration(slug)

        started = now()
        run = VendorSyncRun.objects.create(
            vendor=slug,
            status=VendorSyncRun.STATUS_RUNNING,
            dry_run=dry_run,
            actor=actor or "service",
            source_path=source_path,
            started_at=started,
        )
        log.info(
            "vendor_sync.start vendor=%s run=%s dry_run=%s actor=%s source=%s",
            slug,
            run.pk,
            dry_run,
            actor,
            source_path or ("(inline)" if items is not None else "(default)"),
        )

        lock_key = f"vendor_sync:lock:{slug}"
        timeout = int(getattr(settings, "VENDOR_SYNC_LOCK_TIMEOUT", 60 * 15))
        if not cache.add(lock_key, run.pk, timeout=timeout):
            log.warning("vendor_sync.lock_busy vendor=%s run=%s", slug, run.pk)
            err = SyncInProgressError(slug)
            # the run never executed, so the vendor state keeps its last real outcome
            self._fail(run, slug, err, record_state=False)
            raise err

        try:
            return self._execute(run, slug, integration, dry_run, source_path, items)
        except Exception as e:
            log.exception("vendor_sync.failed vendor=%s run=%s err=%s", slug, run.pk, e)
            self._fail(run, slug, e)
            raise
        finally:
            self._release_lock(lock_key, run.pk)

    # ---------- steps ----------
    def _resolve_integration(self, slug: str) -> Optional[VendorIntegration]:
        vendor = Vendor.objects.filter(slug=slug).select_related("integration").first()
        if vendor is None:
            # the default vendor works out of the box from its demo feed
            if slug == DEFAULT_VENDOR_SLUG and self.registry.has_adapter(slug):
                return None
            raise VendorNotConfiguredError(slug)
        integration = getattr(vendor, "integration", None)
        if integration is None:
            raise VendorNotConfiguredError(slug)
        if not self.registry.has_adapter(slug):
            raise UnsupportedIntegrationError(
                f"No normalization adapter for vendor {slug} ({integration.type} integration)"
            )
        return integration

    def _execute(
        self,
        run: VendorSyncRun,
        slug: str,
        integration: Optional[VendorIntegration],
        dry_run: bool,
        source_path: Optional[str],
        items: Optional[Sequence[Any]],
    ) -> RunResult:
        loaded = load_catalog(slug, explicit_path=source_path, integration=integration, items=items)
        run.source_path = loaded.source_path
        run.save(update_fields=["source_path"])

        products, errors, protected = self._normalize_all(slug, loaded.items)

        snapshot = [
            SnapshotEntry(catalog_id=cid, hash=h)
            for cid, h in VendorCatalogItem.objects.filter(vendor=slug).values_list("catalog_id", "hash")
        ]
        diff = compute_diff(products, snapshot, protected=protected)
        if diff.empty_feed:
            log.warning(
                "vendor_sync.empty_feed vendor=%s run=%s persisted=%s",
                slug,
                run.pk,
                len(snapshot),
            )

        if dry_run:
            self._write_diff(run, diff, errors, applied=None)
        else:
            with transaction.atomic():
                applied = self._apply(slug, diff)
                self._write_diff(run, diff, errors, applied=applied)

        finished = now()
        duration_ms = int((finished - run.started_at).total_seconds() * 1000)
        counts = diff.counts

        if not dry_run:
            VendorSyncState.objects.update_or_create(
                vendor=slug,
                defaults={
                    "last_run_at": finished,
                    "last_source": loaded.source_path,
                    "total_items": counts["total"],
                    "last_duration_ms": duration_ms,
                    "last_hash": diff.hash,
                    "last_run_by": run.actor,
                    "last_error": None,
                },
            )

        run.status = VendorSyncRun.STATUS_SUCCESS
        run.finished_at = finished
        run.duration_ms = duration_ms
        run.hash = diff.hash
        run.total_items = counts["total"]
        run.created_count = counts["created"]
        run.updated_count = counts["updated"]
        run.unchanged_count = counts["unchanged"]
        run.removed_count = counts["removed"]
        run.failed_count = len(errors)
        run.save(
            update_fields=[
                "status",
                "finished_at",
                "duration_ms",
                "hash",
                "total_items",
                "created_count",
                "updated_count",
                "unchanged_count",
                "removed_count",
                "failed_count",
            ]
        )
        log.info(
            "vendor_sync.end vendor=%s run=%s dry_run=%s counts=%s failed=%s duration_ms=%s",
            slug,
            run.pk,
            dry_run,
            counts,
            len(errors),
            duration_ms,
        )
        return RunResult(
            run_id=run.pk,
            vendor=slug,
            status=run.status,
            dry_run=dry_run,
            source_path=loaded.source_path,
            counts=counts,
            failed=len(errors),
            duration_ms=duration_ms,
            hash=diff.hash,
            empty_feed=diff.empty_feed,
            errors=errors,
        )

    def _normalize_all(
        self, slug: str, raw_items: Sequence[Any]
    ) -> Tuple[List[NormalizedProduct], List[Dict[str, Any]], List[str]]:
        """Best effort: a bad item is recorded and skipped, the batch carries on."""
        products: List[NormalizedProduct] = []
        errors: List[Dict[str, Any]] = []
        protected: List[str] = []
        for index, raw in enumerate(raw_items):
            try:
                products.append(self.registry.normalize(slug, raw))
            except NormalizationError as e:
                catalog_id = e.catalog_id
                if catalog_id is None and isinstance(raw, dict):
                    value = raw.get("catalogId")
                    catalog_id = value.strip() if isinstance(value, str) and value.strip() else None
                if catalog_id:
                    protected.append(catalog_id)
                entry: Dict[str, Any] = {"index": index, "catalogId": catalog_id, "error": str(e)}
                if isinstance(e, ProductValidationError) and e.issues:
                    entry["issues"] = e.issues
                errors.append(entry)
                log.warning(
                    "vendor_sync.item_failed vendor=%s index=%s catalog_id=%s err=%s",
                    slug,
                    index,
                    catalog_id,
                    e,
                )
        return products, errors, protected

    def _apply(self, slug: str, diff: DiffResult) -> Dict[str, int]:
        counts: Dict[str, int] = {
            "catalog_items_written": 0,
            "catalog_items_deleted": 0,
            "products_created": 0,
            "products_updated": 0,
            "stocks_written": 0,
            "stocks_zeroed": 0,
        }
        stores = list(getattr(settings, "VENDOR_SYNC_STOCK_STORES", ["main"]))

        for change in diff.created + diff.updated:
            product = change.product
            VendorCatalogItem.objects.update_or_create(
                vendor=slug,
                catalog_id=change.catalog_id,
                defaults={"payload": product.to_payload(), "hash": change.hash},
            )
            counts["catalog_items_written"] += 1

            product_obj, created = Product.objects.update_or_create(
                sku=product_sku(slug, change.catalog_id),
                defaults=product_fields(product),
            )
            counts["products_created" if created else "products_updated"] += 1

            stock = stock_fields(product)
            existing = product_obj.stocks.all()
            if existing.exists():
                counts["stocks_written"] += existing.update(**stock)
            else:
                for store_id in stores:
                    StoreStock.objects.create(product=product_obj, store_id=store_id, **stock)
                    counts["stocks_written"] += 1

        for entry in diff.removed:
            VendorCatalogItem.objects.filter(vendor=slug, catalog_id=entry.catalog_id).delete()
            counts["catalog_items_deleted"] += 1
            counts["stocks_zeroed"] += StoreStock.objects.filter(
                product__sku=product_sku(slug, entry.catalog_id)
            ).update(qty=0)

        return counts

    def _write_diff(
        self,
        run: VendorSyncRun,
        diff: DiffResult,
        errors: List[Dict[str, Any]],
        *,
        applied: Optional[Dict[str, int]],
    ) -> VendorSyncRunDiff:
        limit = int(getattr(settings, "VENDOR_SYNC_DIFF_ITEM_LIMIT", 500))
        counts: Dict[str, Any] = dict(diff.counts)
        counts["failed"] = len(errors)
        counts["emptyFeed"] = diff.empty_feed
        if applied is not None:
            counts["applied"] = applied
        return VendorSyncRunDiff.objects.create(
            run=run,
            counts=counts,
            items=[c.to_dict() for c in diff.changes[:limit]],
            removed=[e.catalog_id for e in diff.removed[:limit]],
            errors=errors[:limit],
        )

    def _release_lock(self, lock_key: str, run_id: int) -> None:
        # after a TTL expiry the key may already belong to the next run
        if cache.get(lock_key) == run_id:
            cache.delete(lock_key)
        else:
            log.warning("vendor_sync.lock_lost key=%s run=%s", lock_key, run_id)

    def _fail(
        self, run: VendorSyncRun, slug: str, error: Exception, *, record_state: bool = True
    ) -> None:
        finished = now()
        run.status = VendorSyncRun.STATUS_ERROR
        run.error = f"{type(error).__name__}: {error}"
        run.finished_at = finished
        run.duration_ms = int((finished - run.started_at).total_seconds() * 1000)
        run.save(update_fields=["status", "error", "finished_at", "duration_ms"])
        if not record_state:
            return
        # only last_error: a failed attempt must not move the apply baseline
        VendorSyncState.objects.update_or_create(vendor=slug, defaults={"last_error": run.error})


# -----------------------------
# Module-level entry points
# -----------------------------
_default_service: Optional[VendorSyncService] = None


def get_sync_service() -> VendorSyncService:
    global _default_service
    if _default_service is None:
        _default_service = VendorSyncService()
    return _default_service


def run_vendor_sync(
    vendor_slug: str,
    *,
    dry_run: bool = True,
    source_path: Optional[str] = None,
    actor: str = "service",
    items: Optional[Sequence[Any]] = None,
) -> RunResult:
    return get_sync_service().run(
        vendor_slug, dry_run=dry_run, source_path=source_path, actor=actor, items=items
    )
