# vendor_sync/services/loader.py
"""
Where a vendor's raw feed comes from.

Resolution order for file feeds:
  1. explicit path passed by the caller (refused in prod)
  2. the vendor integration's scraper_path
  3. env var CATALOG_<SLUG>_PATH
  4. settings.VENDOR_SYNC_DEFAULT_PATHS[slug] (demo fixture)

The first configured candidate wins; a missing or broken file there is an error,
we never fall through to the next one silently.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence

import requests
from django.conf import settings

from vendor_sync.exceptions import CatalogLoadError
from vendor_sync.models import IntegrationType, VendorIntegration

log = logging.getLogger(__name__)

INLINE_SOURCE = "(inline)"


@dataclass
class LoadResult:
    items: List[Any] = field(default_factory=list)
    source_path: str = ""


def load_catalog(
    vendor_slug: str,
    *,
    explicit_path: Optional[str] = None,
    integration: Optional[VendorIntegration] = None,
    items: Optional[Sequence[Any]] = None,
) -> LoadResult:
    """Return the raw items for one vendor. Read-only; raises CatalogLoadError."""
    if items is not None:
        if not isinstance(items, (list, tuple)):
            raise CatalogLoadError("Inline items must be a list")
        return LoadResult(items=list(items), source_path=INLINE_SOURCE)

    if integration is not None and integration.type == IntegrationType.API:
        if explicit_path:
            raise CatalogLoadError("Explicit source paths are not supported for API integrations")
        return _load_from_api(integration)

    path = resolve_source_path(vendor_slug, explicit_path=explicit_path, integration=integration)
    return LoadResult(items=_read_json_items(path), source_path=str(path))


def resolve_source_path(
    vendor_slug: str,
    *,
    explicit_path: Optional[str] = None,
    integration: Optional[VendorIntegration] = None,
) -> Path:
    if explicit_path:
        if not getattr(settings, "VENDOR_SYNC_ALLOW_EXPLICIT_PATH", False):
            raise CatalogLoadError("Explicit source paths are disabled in this environment")
        return Path(explicit_path).expanduser()

    if integration is not None and integration.scraper_path:
        return Path(integration.scraper_path).expanduser()

    env_path = os.environ.get(env_var_for(vendor_slug))
    if env_path:
        return Path(env_path).expanduser()

    default = (getattr(settings, "VENDOR_SYNC_DEFAULT_PATHS", {}) or {}).get(vendor_slug)
    if default:
        return Path(default)

    raise CatalogLoadError(f"No catalog source configured for vendor '{vendor_slug}'")


def env_var_for(vendor_slug: str) -> str:
    """'moscot' -> 'CATALOG_MOSCOT_PATH'."""
    return f"CATALOG_{vendor_slug.upper().replace('-', '_')}_PATH"


# -----------------------------
# Readers
# -----------------------------
def _read_json_items(path: Path) -> List[Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogLoadError(f"Cannot read catalog file {path}: {e}") from e
    try:
        data = json.loads(text)
    except ValueError as e:
        raise CatalogLoadError(f"Catalog file {path} is not valid JSON: {e}") from e
    return _extract_items(data, str(path))


def _load_from_api(integration: VendorIntegration) -> LoadResult:
    base = (integration.api_base_url or "").rstrip("/")
    if not base:
        raise CatalogLoadError(f"Vendor {integration.vendor.slug} has no API base URL")
    url = f"{base}/products"
    timeout = int(getattr(settings, "VENDOR_SYNC_HTTP_TIMEOUT", 30))

    log.info("loader.fetch vendor=%s url=%s", integration.vendor.slug, url)
    try:
        resp = requests.get(url, headers=api_headers(integration), timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as e:
        raise CatalogLoadError(f"Vendor API request failed: {e}") from e
    except ValueError as e:
        raise CatalogLoadError(f"Vendor API returned invalid JSON: {e}") from e
    return LoadResult(items=_extract_items(data, url), source_path=url)


def api_headers(integration: VendorIntegration) -> dict:
    headers = {"Accept": "application/json"}
    if integration.api_key:
        headers["Authorization"] = f"Bearer {integration.api_key}"
    return headers


def _extract_items(data: Any, where: str) -> List[Any]:
    # accepted shapes: [...] or {"items": [...]}
    if isinstance(data, dict) and "items" in data:
        data = data["items"]
    if not isinstance(data, list):
        raise CatalogLoadError(f"Catalog at {where} is not a list of items")
    return data
