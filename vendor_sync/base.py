# vendor_sync/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from vendor_sync.schemas import NormalizedProduct, VendorRef

RawItem = Mapping[str, Any]  # vendor-specific, schema-free feed entry


class BaseAdapter(ABC):
    """
    Vendor normalization adapters implement a minimal contract:
    - `vendor`: the canonical VendorRef stamped on every product.
    - `key`: stable adapter id (e.g. "moscot.catalog"), recorded in logs.
    - normalize(raw): convert one raw feed item into a NormalizedProduct.

    normalize() must be pure and must raise NormalizationInputError when the raw
    item lacks its identity (catalogId) instead of returning a partial product.
    Schema validation happens afterwards in the caller, not here.
    """

    key: str = ""
    vendor: VendorRef

    @property
    def slug(self) -> str:
        return self.vendor.slug

    @abstractmethod
    def normalize(self, raw: RawItem) -> NormalizedProduct:
        raise NotImplementedError
