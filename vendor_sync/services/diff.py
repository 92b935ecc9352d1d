# vendor_sync/services/diff.py
"""
Pure reconciliation: normalized products vs. the persisted snapshot.

Classification keys only on catalogId presence and content hash:
  - not in snapshot            -> created
  - in snapshot, other hash    -> updated
  - in snapshot, same hash     -> unchanged
  - in snapshot, not in feed   -> removed (unless protected)

No database access in here; sync.py feeds it and applies the result.
"""
from __future__ import annotations

import copy
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from vendor_sync.schemas import NormalizedProduct

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
REMOVED = "removed"


@dataclass(frozen=True)
class SnapshotEntry:
    catalog_id: str
    hash: str


@dataclass
class ItemChange:
    catalog_id: str
    action: str
    hash: str
    previous_hash: Optional[str] = None
    product: Optional[NormalizedProduct] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalogId": self.catalog_id,
            "action": self.action,
            "hash": self.hash,
            "previousHash": self.previous_hash,
        }


@dataclass
class DiffResult:
    changes: List[ItemChange] = field(default_factory=list)
    removed: List[SnapshotEntry] = field(default_factory=list)
    hash: str = ""
    empty_feed: bool = False

    def _of(self, action: str) -> List[ItemChange]:
        return [c for c in self.changes if c.action == action]

    @property
    def created(self) -> List[ItemChange]:
        return self._of(CREATED)

    @property
    def updated(self) -> List[ItemChange]:
        return self._of(UPDATED)

    @property
    def unchanged(self) -> List[ItemChange]:
        return self._of(UNCHANGED)

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "total": len(self.changes),
            CREATED: len(self.created),
            UPDATED: len(self.updated),
            UNCHANGED: len(self.unchanged),
            REMOVED: len(self.removed),
        }


# -----------------------------
# Hashing
# -----------------------------
def hashable_payload(product: NormalizedProduct) -> Dict[str, Any]:
    """Payload minus volatile fields (raw is already excluded, drop source.retrievedAt)."""
    payload = copy.deepcopy(product.to_payload())
    source = payload.get("source")
    if isinstance(source, dict):
        source.pop("retrievedAt", None)
    return payload


def content_hash(product: NormalizedProduct) -> str:
    blob = json.dumps(hashable_payload(product), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


def aggregate_hash(entries: Iterable[tuple]) -> str:
    """sha256 over sorted 'catalogId:hash|' pairs; identifies a whole feed state."""
    h = hashlib.sha256()
    for catalog_id, item_hash in sorted(entries):
        h.update(f"{catalog_id}:{item_hash}|".encode("utf-8"))
    return h.hexdigest()


# -----------------------------
# Diff
# -----------------------------
def compute_diff(
    products: Sequence[NormalizedProduct],
    snapshot: Iterable[SnapshotEntry],
    *,
    protected: Iterable[str] = (),
) -> DiffResult:
    """
    `protected` catalogIds are never classified as removed; the orchestrator passes
    the ids of feed items that failed normalization in this run.
    Duplicate catalogIds in `products`: the last occurrence wins.
    """
    persisted: Dict[str, SnapshotEntry] = {e.catalog_id: e for e in snapshot}

    latest: Dict[str, NormalizedProduct] = {}
    for p in products:
        latest.pop(p.catalog_id, None)
        latest[p.catalog_id] = p

    result = DiffResult(empty_feed=not latest)
    for catalog_id, product in latest.items():
        new_hash = content_hash(product)
        prev = persisted.get(catalog_id)
        if prev is None:
            action = CREATED
        elif prev.hash != new_hash:
            action = UPDATED
        else:
            action = UNCHANGED
        result.changes.append(
            ItemChange(
                catalog_id=catalog_id,
                action=action,
                hash=new_hash,
                previous_hash=prev.hash if prev else None,
                product=product,
            )
        )

    keep = set(latest) | set(protected)
    result.removed = [e for cid, e in sorted(persisted.items()) if cid not in keep]
    result.hash = aggregate_hash((c.catalog_id, c.hash) for c in result.changes)
    return result


# -----------------------------
# Projections onto catalog.Product / StoreStock
# -----------------------------
def product_sku(vendor_slug: str, catalog_id: str) -> str:
    return f"{vendor_slug}:{catalog_id}"


def product_fields(product: NormalizedProduct) -> Dict[str, Any]:
    first = product.variants[0]
    color = getattr(first, "color", None)
    vendor_name = product.vendor.name or product.vendor.slug
    return {
        "name": product.name or product.model or product.catalog_id,
        "category": product.category,
        "brand": product.brand or vendor_name,
        "model": product.model,
        "color": color.name if color else None,
        "size_label": getattr(first, "size_label", None),
        "usage": getattr(first, "usage", None),
        "catalog_url": product.source.url,
        "supplier": vendor_name,
    }


def stock_fields(product: NormalizedProduct) -> Dict[str, Any]:
    return {"qty": len(product.variants), "barcode": product.variants[0].barcode}
