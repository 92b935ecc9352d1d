from __future__ import annotations

import json
import tempfile
from pathlib import Path
from unittest import mock

from django.core.cache import cache
from django.test import TestCase

from catalog.models import Product, StoreStock
from vendor_sync.adapters import build_default_registry
from vendor_sync.exceptions import (
    CatalogLoadError,
    SyncInProgressError,
    UnsupportedIntegrationError,
    VendorNotConfiguredError,
)
from vendor_sync.models import (
    IntegrationType,
    Vendor,
    VendorCatalogItem,
    VendorIntegration,
    VendorSyncRun,
    VendorSyncRunDiff,
    VendorSyncState,
)
from vendor_sync.services.sync import VendorSyncService
from vendor_sync.tests.samples import accessory_sample, raw_sample


class VendorSyncServiceTests(TestCase):
    def setUp(self) -> None:
        cache.clear()
        self.service = VendorSyncService(registry=build_default_registry())

    # ------------ helpers ------------
    def preview(self, items, **kw):
        return self.service.run("moscot", dry_run=True, items=items, actor="tester", **kw)

    def apply(self, items, **kw):
        return self.service.run("moscot", dry_run=False, items=items, actor="tester", **kw)

    def _catalog_snapshot(self):
        return (
            list(Product.objects.values_list("sku", "name", "updated_at").order_by("sku")),
            list(StoreStock.objects.values_list("product__sku", "qty", "barcode", "updated_at")),
            list(VendorCatalogItem.objects.values_list("catalog_id", "hash", "updated_at")),
        )

    # ------------ preview ------------
    def test_dry_run_on_empty_store_reports_one_created(self):
        result = self.preview([raw_sample()])
        data = result.to_dict()

        self.assertTrue(data["ok"])
        self.assertEqual(data["status"], "success")
        self.assertEqual(data["sourcePath"], "(inline)")
        self.assertEqual(data["metrics"]["total"], 1)
        self.assertEqual(data["metrics"]["created"], 1)
        self.assertEqual(data["metrics"]["updated"], 0)
        self.assertEqual(data["metrics"]["removed"], 0)
        self.assertEqual(data["metrics"]["dryRun"], 1)

        self.assertEqual(Product.objects.count(), 0)
        self.assertEqual(VendorCatalogItem.objects.count(), 0)
        self.assertFalse(VendorSyncState.objects.filter(vendor="moscot").exists())

        run = VendorSyncRun.objects.get(pk=result.run_id)
        self.assertEqual(run.status, VendorSyncRun.STATUS_SUCCESS)
        self.assertTrue(run.dry_run)
        self.assertEqual(run.actor, "tester")
        self.assertEqual(run.created_count, 1)
        self.assertIsNotNone(run.duration_ms)
        self.assertEqual(run.diff.counts["created"], 1)
        self.assertEqual(run.diff.items[0]["catalogId"], "LEMTOSH-BLACK")

    def test_preview_after_apply_leaves_catalog_and_baseline_alone(self):
        self.apply([raw_sample()])
        before = self._catalog_snapshot()
        baseline = VendorSyncState.objects.get(vendor="moscot").last_hash

        result = self.preview([raw_sample(name="Lemtosh Jet Black")])

        self.assertEqual(result.counts["updated"], 1)
        self.assertEqual(self._catalog_snapshot(), before)
        self.assertEqual(VendorSyncState.objects.get(vendor="moscot").last_hash, baseline)

    def test_default_feed_is_the_demo_catalog(self):
        result = self.service.run("moscot", dry_run=True)
        self.assertTrue(result.source_path.endswith("moscot.catalog.json"))
        self.assertEqual(result.counts["total"], 3)
        self.assertEqual(result.failed, 0)

    # ------------ apply ------------
    def test_apply_creates_product_catalog_item_and_stock(self):
        result = self.apply([raw_sample()])

        self.assertEqual(result.to_dict()["metrics"]["dryRun"], 0)
        self.assertEqual(Product.objects.count(), 1)
        self.assertEqual(VendorCatalogItem.objects.count(), 1)

        product = Product.objects.get(sku="moscot:LEMTOSH-BLACK")
        self.assertEqual(product.name, "Lemtosh Black")
        self.assertEqual(product.category, "Frames")
        self.assertEqual(product.supplier, "MOSCOT")

        stock = StoreStock.objects.get(product=product)
        self.assertEqual(stock.store_id, "main")
        self.assertEqual(stock.qty, 2)
        self.assertEqual(stock.barcode, "0850012345461")

        item = VendorCatalogItem.objects.get(vendor="moscot", catalog_id="LEMTOSH-BLACK")
        self.assertNotIn("raw", item.payload)
        self.assertEqual(item.payload["catalogId"], "LEMTOSH-BLACK")

        state = VendorSyncState.objects.get(vendor="moscot")
        self.assertEqual(state.last_hash, result.hash)
        self.assertEqual(state.total_items, 1)
        self.assertEqual(state.last_run_by, "tester")
        self.assertEqual(state.last_source, "(inline)")
        self.assertIsNone(state.last_error)

    def test_second_identical_apply_is_a_no_op(self):
        first = self.apply([raw_sample()])
        before = self._catalog_snapshot()

        second = self.apply([raw_sample()])

        self.assertEqual(second.counts["unchanged"], 1)
        self.assertEqual(second.counts["created"], 0)
        self.assertEqual(second.counts["updated"], 0)
        self.assertEqual(second.hash, first.hash)
        self.assertEqual(self._catalog_snapshot(), before)

    def test_changed_item_updates_product_and_stock(self):
        self.apply([raw_sample()])
        variants = raw_sample()["variants"][:1]
        result = self.apply([raw_sample(name="Lemtosh Jet Black", variants=variants)])

        self.assertEqual(result.counts["updated"], 1)
        product = Product.objects.get(sku="moscot:LEMTOSH-BLACK")
        self.assertEqual(product.name, "Lemtosh Jet Black")
        self.assertEqual(StoreStock.objects.get(product=product).qty, 1)
        diff = VendorSyncRunDiff.objects.get(run_id=result.run_id)
        self.assertEqual(diff.counts["applied"]["products_updated"], 1)

    def test_missing_item_is_removed_and_stock_zeroed(self):
        self.apply([raw_sample(), accessory_sample()])
        result = self.apply([raw_sample()])

        self.assertEqual(result.counts["removed"], 1)
        self.assertFalse(VendorCatalogItem.objects.filter(catalog_id="CLEANING-KIT").exists())
        kit = Product.objects.get(sku="moscot:CLEANING-KIT")
        self.assertEqual(StoreStock.objects.get(product=kit).qty, 0)
        self.assertEqual(VendorSyncRunDiff.objects.get(run_id=result.run_id).removed, ["CLEANING-KIT"])

    def test_empty_feed_drops_everything_but_is_flagged(self):
        self.apply([raw_sample()])
        result = self.apply([])

        self.assertTrue(result.empty_feed)
        self.assertTrue(result.to_dict()["emptyFeed"])
        self.assertEqual(result.counts["removed"], 1)
        self.assertEqual(VendorCatalogItem.objects.count(), 0)

    # ------------ best effort ------------
    def test_bad_items_are_recorded_and_skipped(self):
        VendorCatalogItem.objects.create(vendor="moscot", catalog_id="BROKEN", payload={}, hash="x")
        broken = raw_sample(catalogId="BROKEN", photos=[{"url": "ftp://nope/img.jpg"}])
        nameless = {"category": "Frames"}

        result = self.apply([raw_sample(), broken, nameless])

        self.assertEqual(result.status, "success")
        self.assertEqual(result.failed, 2)
        self.assertEqual(result.counts["created"], 1)
        # the broken item's last good state is kept
        self.assertEqual(result.counts["removed"], 0)
        self.assertTrue(VendorCatalogItem.objects.filter(catalog_id="BROKEN").exists())

        ids = [e["catalogId"] for e in result.errors]
        self.assertEqual(ids, ["BROKEN", None])
        self.assertIn("issues", result.errors[0])
        run = VendorSyncRun.objects.get(pk=result.run_id)
        self.assertEqual(run.failed_count, 2)
        self.assertEqual(len(run.diff.errors), 2)

    def test_values_too_long_for_the_catalog_are_skipped(self):
        too_long = raw_sample(catalogId="LONG-BRAND", brand="B" * 150)
        result = self.apply([raw_sample(), too_long, accessory_sample()])

        self.assertEqual(result.status, "success")
        self.assertEqual(result.failed, 1)
        self.assertEqual(result.errors[0]["catalogId"], "LONG-BRAND")
        self.assertEqual(result.counts["created"], 2)
        self.assertEqual(
            sorted(Product.objects.values_list("sku", flat=True)),
            ["moscot:CLEANING-KIT", "moscot:LEMTOSH-BLACK"],
        )

    # ------------ failures ------------
    def test_failure_during_apply_rolls_back(self):
        with mock.patch.object(StoreStock.objects, "create", side_effect=RuntimeError("disk full")):
            with self.assertRaises(RuntimeError):
                self.apply([raw_sample()])

        self.assertEqual(Product.objects.count(), 0)
        self.assertEqual(VendorCatalogItem.objects.count(), 0)
        self.assertEqual(VendorSyncRunDiff.objects.count(), 0)

        run = VendorSyncRun.objects.get()
        self.assertEqual(run.status, VendorSyncRun.STATUS_ERROR)
        self.assertIn("disk full", run.error)
        self.assertIsNotNone(run.finished_at)
        state = VendorSyncState.objects.get(vendor="moscot")
        self.assertIn("disk full", state.last_error)
        self.assertIsNone(state.last_hash)

    def test_failure_keeps_previous_baseline(self):
        good = self.apply([raw_sample()])
        with self.assertRaises(CatalogLoadError):
            self.service.run("moscot", dry_run=False, source_path="/nonexistent/feed.json")

        state = VendorSyncState.objects.get(vendor="moscot")
        self.assertEqual(state.last_hash, good.hash)
        self.assertIn("CatalogLoadError", state.last_error)
        failed = VendorSyncRun.objects.filter(status=VendorSyncRun.STATUS_ERROR).get()
        self.assertEqual(failed.source_path, "/nonexistent/feed.json")

    def test_lock_blocks_concurrent_run(self):
        cache.add("vendor_sync:lock:moscot", "other-run", timeout=60)

        with self.assertRaises(SyncInProgressError):
            self.apply([raw_sample()])

        run = VendorSyncRun.objects.get()
        self.assertEqual(run.status, VendorSyncRun.STATUS_ERROR)
        self.assertIn("already running", run.error)
        self.assertEqual(Product.objects.count(), 0)

    def test_lock_released_after_run(self):
        self.preview([raw_sample()])
        self.assertIsNone(cache.get("vendor_sync:lock:moscot"))
        with mock.patch.object(StoreStock.objects, "create", side_effect=RuntimeError("boom")):
            with self.assertRaises(RuntimeError):
                self.apply([raw_sample()])
        self.assertIsNone(cache.get("vendor_sync:lock:moscot"))

    def test_blocked_run_does_not_touch_vendor_state(self):
        good = self.apply([raw_sample()])
        cache.add("vendor_sync:lock:moscot", "other-run", timeout=60)
        with self.assertRaises(SyncInProgressError):
            self.preview([raw_sample()])
        cache.delete("vendor_sync:lock:moscot")
        self.preview([raw_sample()])

        state = VendorSyncState.objects.get(vendor="moscot")
        self.assertIsNone(state.last_error)
        self.assertEqual(state.last_hash, good.hash)
        blocked = VendorSyncRun.objects.get(status=VendorSyncRun.STATUS_ERROR)
        self.assertIn("already running", blocked.error)

    def test_lock_taken_over_after_expiry_is_not_released(self):
        def expire_and_take_over(slug, raw_items):
            cache.set("vendor_sync:lock:moscot", "next-run", timeout=60)
            return [], [], []

        with mock.patch.object(self.service, "_normalize_all", side_effect=expire_and_take_over):
            self.preview([raw_sample()])

        self.assertEqual(cache.get("vendor_sync:lock:moscot"), "next-run")

    # ------------ sample preview ------------
    def test_sample_preview_from_feed_file_skips_bad_items(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "feed.json"
            items = [raw_sample(), {"category": "Frames"}, accessory_sample(), raw_sample(catalogId="THIRD")]
            path.write_text(json.dumps(items), encoding="utf-8")
            products, source = self.service.preview_sample("moscot", sample=3, source_path=str(path))

        self.assertEqual(source, str(path))
        self.assertEqual([p.catalog_id for p in products], ["LEMTOSH-BLACK", "CLEANING-KIT"])
        self.assertEqual(VendorSyncRun.objects.count(), 0)

    def test_sample_preview_from_stored_catalog(self):
        self.apply([raw_sample(), accessory_sample()])
        products, source = self.service.preview_sample("moscot", sample=1)
        self.assertEqual(source, "db")
        self.assertEqual(len(products), 1)

        products, _ = self.service.preview_sample("moscot", sample=5)
        self.assertEqual(
            sorted(p.catalog_id for p in products), ["CLEANING-KIT", "LEMTOSH-BLACK"]
        )

    def test_sample_preview_with_nothing_stored(self):
        self.assertEqual(self.service.preview_sample("moscot"), ([], "db"))

    # ------------ vendor resolution ------------
    def test_unknown_vendor_is_not_configured(self):
        with self.assertRaises(VendorNotConfiguredError):
            self.service.run("acme", dry_run=True, items=[])
        self.assertEqual(VendorSyncRun.objects.count(), 0)

    def test_vendor_without_adapter_is_unsupported(self):
        vendor = Vendor.objects.create(slug="acme", name="Acme")
        VendorIntegration.objects.create(vendor=vendor, type=IntegrationType.SCRAPER, scraper_path="/x.json")
        with self.assertRaises(UnsupportedIntegrationError):
            self.service.run("acme", dry_run=True)

    def test_registered_scraper_path_is_used(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "moscot.json"
            path.write_text(json.dumps([raw_sample()]), encoding="utf-8")
            vendor = Vendor.objects.create(slug="moscot", name="MOSCOT")
            VendorIntegration.objects.create(
                vendor=vendor, type=IntegrationType.SCRAPER, scraper_path=str(path)
            )
            result = self.service.run("moscot", dry_run=True)

        self.assertEqual(result.source_path, str(path))
        self.assertEqual(result.counts["total"], 1)
