# vendor_sync/adapters/__init__.py
from __future__ import annotations

from collections.abc import Mapping
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from vendor_sync.base import BaseAdapter, RawItem
from vendor_sync.exceptions import AdapterNotFoundError, NormalizationInputError
from vendor_sync.schemas import NormalizedProduct, to_product_error, validate_product
from vendor_sync.slugs import normalize_vendor_slug


class AdapterRegistry:
    """
    Vendor slug -> adapter lookup. Built once at startup (see build_default_registry)
    and handed to the sync service, so tests can swap in fake adapters.
    """

    def __init__(self, adapters: Optional[Iterable[BaseAdapter]] = None):
        self._adapters: Dict[str, BaseAdapter] = {}
        for adapter in adapters or ():
            self.register(adapter)

    def register(self, adapter: BaseAdapter) -> None:
        slug = normalize_vendor_slug(adapter.slug)
        if not slug:
            raise ValueError("Adapter vendor slug is required")
        self._adapters[slug] = adapter

    def has_adapter(self, slug: str) -> bool:
        return normalize_vendor_slug(slug) in self._adapters

    def get_adapter(self, slug: str) -> BaseAdapter:
        adapter = self._adapters.get(normalize_vendor_slug(slug))
        if adapter is None:
            raise AdapterNotFoundError(slug)
        return adapter

    def slugs(self) -> List[str]:
        return sorted(self._adapters)

    def normalize(self, slug: str, raw: RawItem) -> NormalizedProduct:
        """Adapter call plus the schema gate. Raises a NormalizationError subclass."""
        adapter = self.get_adapter(slug)
        if not isinstance(raw, Mapping):
            raise NormalizationInputError("Vendor item must be a JSON object")
        try:
            product = adapter.normalize(raw)
        except ValidationError as e:
            # adapters build schema models directly; surface their failures the same way
            catalog_id = raw.get("catalogId")
            raise to_product_error(e, catalog_id if isinstance(catalog_id, str) else None) from e
        return validate_product(product)


def build_default_registry() -> AdapterRegistry:
    from vendor_sync.adapters.moscot import MoscotAdapter

    return AdapterRegistry([MoscotAdapter()])
