# vendor_sync/views.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal, Optional, Tuple

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vendor_sync.auth import json_error, service_scope_required
from vendor_sync.exceptions import (
    AdapterNotFoundError,
    CatalogLoadError,
    InvalidVendorError,
    NormalizationInputError,
    ProductValidationError,
    SyncInProgressError,
    UnsupportedIntegrationError,
    VendorConflictError,
    VendorNotConfiguredError,
)
from vendor_sync.services import history, registry
from vendor_sync.services.sync import DEFAULT_PREVIEW_SAMPLE, MAX_PREVIEW_SAMPLE, get_sync_service
from vendor_sync.slugs import normalize_vendor_slug

log = logging.getLogger(__name__)

WRITE = "catalog:sync:write"
READ = "catalog:sync:read"
SYNC_SCOPES = [WRITE, "catalog:sync:{slug}", "catalog:sync:{slug}:write"]
PREVIEW_SCOPES = [WRITE, READ, "catalog:normalize:preview"]
READ_SCOPES = [WRITE, READ]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class BadRequest(Exception):
    pass


# -----------------------------
# Request parsing
# -----------------------------
class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mode: Optional[Literal["apply", "dryRun"]] = None
    dry_run: Optional[bool] = Field(default=None, alias="dryRun", strict=True)
    source_path: Optional[str] = Field(default=None, alias="sourcePath", min_length=1)
    items: Optional[List[Any]] = None


class PreviewSampleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sample: int = Field(default=DEFAULT_PREVIEW_SAMPLE, ge=1, le=MAX_PREVIEW_SAMPLE, strict=True)
    source_path: Optional[str] = Field(default=None, alias="sourcePath", min_length=1)


def _json_body(request: HttpRequest) -> Dict[str, Any]:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except ValueError as e:
        raise BadRequest("Request body is not valid JSON") from e
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def _booleanish(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise BadRequest(f"dryRun must be one of {', '.join(sorted(_TRUE | _FALSE))}")


def parse_sync_request(request: HttpRequest) -> Tuple[bool, SyncRequest]:
    """
    Dry run unless told otherwise. Precedence: body mode, query mode,
    body dryRun, query dryRun.
    """
    try:
        body = SyncRequest.model_validate(_json_body(request))
    except ValidationError as e:
        raise BadRequest("; ".join(err["msg"] for err in e.errors(include_url=False))) from e

    query_mode = request.GET.get("mode")
    if query_mode is not None and query_mode not in ("apply", "dryRun"):
        raise BadRequest("mode must be 'apply' or 'dryRun'")

    mode = body.mode or query_mode
    if mode:
        return mode == "dryRun", body
    if body.dry_run is not None:
        return body.dry_run, body
    query_dry = _booleanish(request.GET.get("dryRun"))
    return (True if query_dry is None else query_dry), body


def _error_response(exc: Exception) -> JsonResponse:
    if isinstance(exc, BadRequest):
        return json_error(400, "invalid_request", str(exc))
    if isinstance(exc, VendorNotConfiguredError):
        return json_error(404, "vendor_not_configured", str(exc))
    if isinstance(exc, AdapterNotFoundError):
        return json_error(404, "vendor_not_supported", str(exc))
    if isinstance(exc, SyncInProgressError):
        return json_error(409, "sync_in_progress", str(exc))
    if isinstance(exc, VendorConflictError):
        return json_error(409, "slug_conflict", str(exc))
    if isinstance(exc, InvalidVendorError):
        return json_error(400, "invalid_request", str(exc), fieldErrors=exc.field_errors)
    if isinstance(exc, NormalizationInputError):
        return json_error(422, "invalid_vendor_payload", str(exc))
    if isinstance(exc, CatalogLoadError):
        return json_error(422, "catalog_load_failed", str(exc))
    if isinstance(exc, ProductValidationError):
        return json_error(500, "invalid_normalized_product", str(exc), issues=exc.issues)
    if isinstance(exc, UnsupportedIntegrationError):
        return json_error(501, "integration_not_supported", str(exc))
    log.exception("vendor_sync.view_failed err=%s", exc)
    return json_error(500, "error", str(exc))


# -----------------------------
# Sync / preview
# -----------------------------
@csrf_exempt
@require_POST
@service_scope_required(SYNC_SCOPES)
def vendor_sync(request: HttpRequest, slug: str):
    try:
        dry_run, body = parse_sync_request(request)
        result = get_sync_service().run(
            slug,
            dry_run=dry_run,
            source_path=body.source_path,
            actor=str(request.service_claims.get("sub") or "service"),
            items=body.items,
        )
    except Exception as e:
        return _error_response(e)
    return JsonResponse(result.to_dict())


@csrf_exempt
@require_POST
@service_scope_required(PREVIEW_SCOPES)
def normalize_preview(request: HttpRequest, slug: str):
    """
    Two modes: {item} normalizes one raw item; {sample?, sourcePath?} normalizes up to
    `sample` items from a feed file or from the vendor's stored catalog.
    """
    service = get_sync_service()
    try:
        body = _json_body(request)
        raw = body.get("item", body.get("raw"))
        if raw is not None:
            product = service.preview_normalize(slug, raw)
            return JsonResponse({"ok": True, "vendor": product.vendor.slug, "product": product.to_payload()})

        try:
            params = PreviewSampleRequest.model_validate(body)
        except ValidationError as e:
            raise BadRequest("; ".join(err["msg"] for err in e.errors(include_url=False))) from e
        products, source = service.preview_sample(slug, sample=params.sample, source_path=params.source_path)
    except Exception as e:
        return _error_response(e)
    return JsonResponse(
        {
            "ok": True,
            "vendor": normalize_vendor_slug(slug),
            "count": len(products),
            "normalizedSample": [p.to_payload() for p in products],
            "meta": {"source": source},
        }
    )


# -----------------------------
# Registry
# -----------------------------
@service_scope_required(READ_SCOPES)
def _list_vendors(request: HttpRequest):
    return JsonResponse({"ok": True, "vendors": registry.list_vendors_with_state()})


@service_scope_required(WRITE)
def _create_vendor(request: HttpRequest):
    try:
        vendor = registry.create_vendor(_json_body(request))
    except Exception as e:
        return _error_response(e)
    return JsonResponse({"ok": True, "vendor": registry.serialize_vendor(vendor)}, status=201)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def vendors(request: HttpRequest):
    if request.method == "POST":
        return _create_vendor(request)
    return _list_vendors(request)


@csrf_exempt
@require_POST
@service_scope_required(WRITE)
def registry_test(request: HttpRequest, slug: str):
    try:
        result = registry.test_connection(slug)
    except Exception as e:
        return _error_response(e)
    return JsonResponse({"ok": True, "data": result})


@csrf_exempt
@require_POST
@service_scope_required(WRITE)
def registry_test_all(request: HttpRequest):
    try:
        summary = registry.test_all_connections()
    except Exception as e:
        return _error_response(e)
    return JsonResponse({"ok": True, **summary})


# -----------------------------
# History
# -----------------------------
@require_GET
@service_scope_required(READ_SCOPES)
def runs(request: HttpRequest):
    try:
        limit = int(request.GET.get("limit") or 20)
        cursor_raw = request.GET.get("cursor")
        cursor = int(cursor_raw) if cursor_raw else None
    except ValueError:
        return json_error(400, "invalid_request", "limit and cursor must be integers")
    statuses = [s.strip() for s in request.GET.get("status", "").split(",") if s.strip()]
    rows, next_cursor = history.list_runs(
        vendor=request.GET.get("vendor") or None,
        statuses=statuses,
        limit=limit,
        cursor=cursor,
    )
    return JsonResponse(
        {"ok": True, "runs": [history.serialize_run(r) for r in rows], "nextCursor": next_cursor}
    )


@require_GET
@service_scope_required(READ_SCOPES)
def run_detail(request: HttpRequest, run_id: int):
    run = history.get_run(run_id)
    if run is None:
        return json_error(404, "run_not_found", f"Run {run_id} does not exist")
    return JsonResponse({"ok": True, "run": history.serialize_run(run, include_diff=True)})


@require_GET
@service_scope_required(READ_SCOPES)
def vendor_state(request: HttpRequest, slug: str):
    return JsonResponse({"ok": True, **history.serialize_vendor_state(slug)})


@require_GET
@service_scope_required(READ_SCOPES)
def overview(request: HttpRequest):
    return JsonResponse({"ok": True, "metrics": history.overview()})
