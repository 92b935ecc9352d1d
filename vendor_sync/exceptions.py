# vendor_sync/exceptions.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class VendorSyncError(Exception):
    """Base for everything the vendor sync core raises on purpose."""


# -----------------------------
# Normalization
# -----------------------------
class NormalizationError(VendorSyncError):
    """A single raw item could not be turned into a valid NormalizedProduct."""

    def __init__(self, message: str, *, catalog_id: Optional[str] = None):
        super().__init__(message)
        self.catalog_id = catalog_id


class AdapterNotFoundError(NormalizationError):
    def __init__(self, slug: str):
        super().__init__(f"No normalization adapter registered for vendor '{slug}'")
        self.slug = slug


class NormalizationInputError(NormalizationError):
    """Raw payload is unusable (not an object, or missing its identity fields)."""


class ProductValidationError(NormalizationError):
    """The canonical schema rejected an adapter's output."""

    def __init__(
        self,
        message: str,
        *,
        issues: Optional[List[Dict[str, Any]]] = None,
        catalog_id: Optional[str] = None,
    ):
        super().__init__(message, catalog_id=catalog_id)
        self.issues = issues or []


# -----------------------------
# Loading / configuration
# -----------------------------
class CatalogLoadError(VendorSyncError):
    """Vendor feed unreadable or not a list of items."""


class VendorNotConfiguredError(VendorSyncError):
    def __init__(self, slug: str):
        super().__init__(f"Vendor {slug} is not configured")
        self.slug = slug


class UnsupportedIntegrationError(VendorSyncError):
    pass


# -----------------------------
# Runs
# -----------------------------
class SyncInProgressError(VendorSyncError, RuntimeError):
    def __init__(self, slug: str):
        super().__init__(f"Sync already running for vendor '{slug}'")
        self.slug = slug


# -----------------------------
# Registry
# -----------------------------
class InvalidVendorError(VendorSyncError):
    def __init__(self, message: str, *, field_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class VendorConflictError(VendorSyncError):
    def __init__(self, slug: str):
        super().__init__(f"Vendor slug '{slug}' is already in use")
        self.slug = slug
