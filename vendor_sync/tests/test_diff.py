from __future__ import annotations

from django.test import SimpleTestCase

from vendor_sync.adapters.moscot import MoscotAdapter
from vendor_sync.services.diff import (
    SnapshotEntry,
    aggregate_hash,
    compute_diff,
    content_hash,
    product_fields,
    product_sku,
    stock_fields,
)
from vendor_sync.tests.samples import accessory_sample, raw_sample


def _normalize(raw):
    return MoscotAdapter().normalize(raw)


class ContentHashTests(SimpleTestCase):
    def test_stable_across_retrieval_time_and_raw(self):
        a = _normalize(raw_sample())
        b_raw = raw_sample(unknownVendorKey="ignored")
        b_raw["source"] = dict(b_raw["source"], lastSyncISO="2025-06-01T00:00:00Z")
        b = _normalize(b_raw)
        self.assertEqual(content_hash(a), content_hash(b))

    def test_changes_with_content(self):
        a = _normalize(raw_sample())
        b = _normalize(raw_sample(name="Lemtosh Jet Black"))
        self.assertNotEqual(content_hash(a), content_hash(b))

    def test_aggregate_hash_ignores_order(self):
        self.assertEqual(
            aggregate_hash([("b", "2"), ("a", "1")]),
            aggregate_hash([("a", "1"), ("b", "2")]),
        )


class ComputeDiffTests(SimpleTestCase):
    def setUp(self) -> None:
        self.frame = _normalize(raw_sample())
        self.kit = _normalize(accessory_sample())

    def test_everything_new_is_created(self):
        diff = compute_diff([self.frame, self.kit], [])
        self.assertEqual(
            diff.counts,
            {"total": 2, "created": 2, "updated": 0, "unchanged": 0, "removed": 0},
        )
        self.assertFalse(diff.empty_feed)

    def test_classification_against_snapshot(self):
        changed = _normalize(accessory_sample(name="Deluxe Kit"))
        snapshot = [
            SnapshotEntry("LEMTOSH-BLACK", content_hash(self.frame)),
            SnapshotEntry("CLEANING-KIT", content_hash(self.kit)),
            SnapshotEntry("GONE-ITEM", "deadbeef"),
        ]
        diff = compute_diff([self.frame, changed], snapshot)

        self.assertEqual([c.catalog_id for c in diff.unchanged], ["LEMTOSH-BLACK"])
        self.assertEqual([c.catalog_id for c in diff.updated], ["CLEANING-KIT"])
        self.assertEqual(diff.updated[0].previous_hash, content_hash(self.kit))
        self.assertEqual([e.catalog_id for e in diff.removed], ["GONE-ITEM"])

    def test_every_id_classified_exactly_once(self):
        snapshot = [SnapshotEntry("CLEANING-KIT", "old"), SnapshotEntry("X", "x"), SnapshotEntry("Y", "y")]
        diff = compute_diff([self.frame, self.kit], snapshot)

        feed_ids = {c.catalog_id for c in diff.changes}
        removed_ids = {e.catalog_id for e in diff.removed}
        self.assertEqual(feed_ids, {"LEMTOSH-BLACK", "CLEANING-KIT"})
        self.assertEqual(removed_ids, {"X", "Y"})
        self.assertFalse(feed_ids & removed_ids)

    def test_empty_feed_removes_everything_and_is_flagged(self):
        snapshot = [SnapshotEntry("A", "1"), SnapshotEntry("B", "2")]
        diff = compute_diff([], snapshot)
        self.assertTrue(diff.empty_feed)
        self.assertEqual(diff.counts["removed"], 2)
        self.assertEqual(diff.counts["total"], 0)

    def test_protected_ids_are_not_removed(self):
        snapshot = [SnapshotEntry("BROKEN", "1")]
        diff = compute_diff([self.frame], snapshot, protected=["BROKEN"])
        self.assertEqual(diff.removed, [])

    def test_duplicate_catalog_id_last_wins(self):
        renamed = _normalize(raw_sample(name="Second copy"))
        diff = compute_diff([self.frame, renamed], [])
        self.assertEqual(diff.counts["total"], 1)
        self.assertEqual(diff.changes[0].hash, content_hash(renamed))

    def test_feed_hash_matches_aggregate(self):
        diff = compute_diff([self.frame], [])
        self.assertEqual(diff.hash, aggregate_hash([("LEMTOSH-BLACK", content_hash(self.frame))]))


class ProjectionTests(SimpleTestCase):
    def test_product_and_stock_projection(self):
        product = _normalize(raw_sample())
        fields = product_fields(product)

        self.assertEqual(product_sku("moscot", product.catalog_id), "moscot:LEMTOSH-BLACK")
        self.assertEqual(fields["name"], "Lemtosh Black")
        self.assertEqual(fields["brand"], "MOSCOT")
        self.assertEqual(fields["color"], "Black")
        self.assertEqual(fields["size_label"], "46")
        self.assertEqual(fields["usage"], "optical")
        self.assertEqual(fields["catalog_url"], "https://moscot.com/products/lemtosh")
        self.assertEqual(fields["supplier"], "MOSCOT")
        self.assertEqual(stock_fields(product), {"qty": 2, "barcode": "0850012345461"})

    def test_name_falls_back_to_model_then_catalog_id(self):
        no_name = _normalize(raw_sample(name=None))
        self.assertEqual(product_fields(no_name)["name"], "LEMTOSH")
        bare = _normalize(raw_sample(name=None, model=None, brand=None))
        self.assertEqual(product_fields(bare)["name"], "LEMTOSH-BLACK")
        self.assertEqual(product_fields(bare)["brand"], "MOSCOT")
