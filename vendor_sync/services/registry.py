# vendor_sync/services/registry.py
"""Vendor onboarding and integration checks. Independent of sync runs."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Mapping, Optional

import requests
from django.conf import settings
from django.db import transaction
from django.utils.timezone import now
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vendor_sync.exceptions import (
    CatalogLoadError,
    InvalidVendorError,
    VendorConflictError,
    VendorNotConfiguredError,
)
from vendor_sync.models import IntegrationType, Vendor, VendorIntegration, VendorSyncState
from vendor_sync.services.loader import api_headers, load_catalog
from vendor_sync.slugs import normalize_vendor_slug

log = logging.getLogger(__name__)

REDACTED = "********"


class _Credentials(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    scraper_path: Optional[str] = Field(default=None, alias="scraperPath")
    api_base_url: Optional[str] = Field(default=None, alias="apiBaseUrl")
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class VendorCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    slug: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=120)
    integration_type: Literal["SCRAPER", "API"] = Field(alias="integrationType")
    credentials: _Credentials = Field(default_factory=_Credentials)


def _clean(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.strip() or None


def _field_errors(err: ValidationError) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for e in err.errors(include_url=False):
        key = ".".join(str(p) for p in e.get("loc", ()))
        if key:
            out.setdefault(key, []).append(e.get("msg", ""))
    return out


# -----------------------------
# CRUD
# -----------------------------
def create_vendor(data: Mapping[str, Any]) -> Vendor:
    try:
        payload = VendorCreatePayload.model_validate(data)
    except ValidationError as e:
        fields = _field_errors(e)
        first = next(iter(fields.values()), ["Invalid payload"])[0]
        raise InvalidVendorError(first, field_errors=fields) from e

    slug = normalize_vendor_slug(payload.slug)
    if not slug:
        raise InvalidVendorError("Slug is invalid", field_errors={"slug": ["Slug is invalid"]})
    if Vendor.objects.filter(slug=slug).exists():
        raise VendorConflictError(slug)

    creds = payload.credentials
    with transaction.atomic():
        vendor = Vendor.objects.create(slug=slug, name=payload.name.strip())
        integration = VendorIntegration(vendor=vendor, type=payload.integration_type)
        if payload.integration_type == IntegrationType.SCRAPER:
            integration.scraper_path = _clean(creds.scraper_path)
        else:
            integration.api_base_url = _clean(creds.api_base_url)
            integration.api_key = _clean(creds.api_key)
            integration.api_auth_type = "API_KEY" if integration.api_key else None
        integration.save()

    log.info("registry.create vendor=%s type=%s", slug, payload.integration_type)
    return Vendor.objects.select_related("integration").get(pk=vendor.pk)


def get_vendor(slug: str) -> Vendor:
    vendor = (
        Vendor.objects.filter(slug=normalize_vendor_slug(slug)).select_related("integration").first()
    )
    if vendor is None:
        raise VendorNotConfiguredError(slug)
    return vendor


def list_vendors() -> List[Vendor]:
    return list(Vendor.objects.select_related("integration").order_by("slug"))


def update_integration(slug: str, **changes: Any) -> VendorIntegration:
    """
    Partial update of a vendor's integration. Accepts type, scraper_path,
    api_base_url, api_key; api_auth_type follows api_key.
    """
    vendor = get_vendor(slug)
    integration = getattr(vendor, "integration", None)
    if integration is None:
        integration = VendorIntegration(vendor=vendor, type=IntegrationType.SCRAPER)

    allowed = {"type", "scraper_path", "api_base_url", "api_key"}
    unknown = set(changes) - allowed
    if unknown:
        raise InvalidVendorError(
            f"Unknown integration fields: {', '.join(sorted(unknown))}",
            field_errors={k: ["Unknown field"] for k in sorted(unknown)},
        )
    if "type" in changes and changes["type"] not in IntegrationType.values:
        raise InvalidVendorError("Unknown integration type", field_errors={"type": ["Invalid choice"]})

    for name, value in changes.items():
        setattr(integration, name, _clean(value) if name != "type" else value)
    if "api_key" in changes:
        integration.api_auth_type = "API_KEY" if integration.api_key else None
    integration.save()
    log.info("registry.update vendor=%s fields=%s", vendor.slug, sorted(changes))
    return integration


# -----------------------------
# Connection tests
# -----------------------------
def test_connection(slug: str) -> Dict[str, Any]:
    """
    Lightweight reachability check; never a sync.
    SCRAPER: the feed file parses and has items. API: one GET on the base URL.
    Records last_test_at / last_test_ok / meta on the integration.
    """
    vendor = get_vendor(slug)
    integration = getattr(vendor, "integration", None)
    if integration is None:
        raise VendorNotConfiguredError(vendor.slug)

    meta: Dict[str, Any] = {"type": integration.type}
    if integration.type == IntegrationType.API:
        ok = _ping_api(integration, meta)
    else:
        try:
            loaded = load_catalog(vendor.slug, integration=integration)
            meta["totalItems"] = len(loaded.items)
            meta["sourcePath"] = loaded.source_path
            ok = True
        except CatalogLoadError as e:
            meta["error"] = str(e)
            ok = False

    integration.last_test_at = now()
    integration.last_test_ok = ok
    integration.meta = meta
    integration.save(update_fields=["last_test_at", "last_test_ok", "meta", "updated_at"])
    log.info("registry.test vendor=%s ok=%s meta=%s", vendor.slug, ok, meta)
    return {"ok": ok, "vendor": vendor.slug, "meta": meta}


def _ping_api(integration: VendorIntegration, meta: Dict[str, Any]) -> bool:
    base = integration.api_base_url
    if not base:
        meta["error"] = "API base URL is not configured"
        return False
    timeout = int(getattr(settings, "VENDOR_SYNC_HTTP_TIMEOUT", 30))
    try:
        resp = requests.get(base, headers=api_headers(integration), timeout=timeout)
    except requests.RequestException as e:
        meta["error"] = str(e)
        return False
    meta["statusCode"] = resp.status_code
    if not resp.ok:
        meta["error"] = f"HTTP {resp.status_code}"
    return resp.ok


def test_all_connections() -> Dict[str, Any]:
    tested = passed = 0
    failures: List[Dict[str, str]] = []
    for vendor in list_vendors():
        if getattr(vendor, "integration", None) is None:
            continue
        tested += 1
        try:
            result = test_connection(vendor.slug)
        except Exception as e:
            log.warning("registry.test vendor=%s err=%s", vendor.slug, e)
            result = {"ok": False, "vendor": vendor.slug, "meta": {"error": str(e)}}
        if result["ok"]:
            passed += 1
        else:
            failures.append({"slug": vendor.slug, "error": result["meta"].get("error") or "Unknown error"})
    return {"tested": tested, "passed": passed, "failed": len(failures), "failures": failures}


# -----------------------------
# Serialization (secrets redacted)
# -----------------------------
def serialize_integration(integration: Optional[VendorIntegration]) -> Optional[Dict[str, Any]]:
    if integration is None:
        return None
    return {
        "type": integration.type,
        "scraperPath": integration.scraper_path,
        "apiBaseUrl": integration.api_base_url,
        "apiAuthType": integration.api_auth_type,
        "apiKey": REDACTED if integration.api_key else None,
        "hasApiKey": bool(integration.api_key),
        "lastTestAt": integration.last_test_at.isoformat() if integration.last_test_at else None,
        "lastTestOk": integration.last_test_ok,
        "meta": integration.meta,
    }


def serialize_state(state: Optional[VendorSyncState]) -> Optional[Dict[str, Any]]:
    if state is None:
        return None
    return {
        "vendor": state.vendor,
        "lastRunAt": state.last_run_at.isoformat() if state.last_run_at else None,
        "lastSource": state.last_source,
        "totalItems": state.total_items,
        "lastDurationMs": state.last_duration_ms,
        "lastHash": state.last_hash,
        "lastRunBy": state.last_run_by,
        "lastError": state.last_error,
    }


def serialize_vendor(vendor: Vendor, *, state: Optional[VendorSyncState] = None) -> Dict[str, Any]:
    return {
        "id": vendor.pk,
        "slug": vendor.slug,
        "name": vendor.name,
        "createdAt": vendor.created_at.isoformat(),
        "updatedAt": vendor.updated_at.isoformat() if vendor.updated_at else None,
        "integration": serialize_integration(getattr(vendor, "integration", None)),
        "state": serialize_state(state),
    }


def list_vendors_with_state() -> List[Dict[str, Any]]:
    vendors = list_vendors()
    states = {
        s.vendor: s for s in VendorSyncState.objects.filter(vendor__in=[v.slug for v in vendors])
    }
    return [serialize_vendor(v, state=states.get(v.slug)) for v in vendors]
