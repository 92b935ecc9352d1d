# vendor_sync/services/history.py
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.db.models import Avg, Count, Q
from django.utils.timezone import now

from vendor_sync.models import VendorSyncRun, VendorSyncRunDiff, VendorSyncState
from vendor_sync.services.registry import serialize_state
from vendor_sync.slugs import normalize_vendor_slug

MAX_PAGE_SIZE = 100
OVERVIEW_WINDOW = timedelta(hours=24)


def list_runs(
    *,
    vendor: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
    limit: int = 20,
    cursor: Optional[int] = None,
) -> Tuple[List[VendorSyncRun], Optional[int]]:
    """
    Newest first. `cursor` is the id of the last run of the previous page.
    Returns (runs, next_cursor); next_cursor is None on the last page.
    """
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    qs = VendorSyncRun.objects.all().order_by("-id")
    if vendor:
        qs = qs.filter(vendor=normalize_vendor_slug(vendor))
    wanted = [s for s in (statuses or []) if s]
    if wanted:
        qs = qs.filter(status__in=wanted)
    if cursor is not None:
        qs = qs.filter(id__lt=cursor)

    page = list(qs[: limit + 1])
    next_cursor = page[limit - 1].pk if len(page) > limit else None
    return page[:limit], next_cursor


def get_run(run_id: int) -> Optional[VendorSyncRun]:
    return VendorSyncRun.objects.filter(pk=run_id).select_related("diff").first()


def vendor_state(slug: str) -> Optional[VendorSyncState]:
    return VendorSyncState.objects.filter(vendor=normalize_vendor_slug(slug)).first()


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_diff(diff: Optional[VendorSyncRunDiff]) -> Optional[Dict[str, Any]]:
    if diff is None:
        return None
    return {
        "counts": diff.counts,
        "items": diff.items,
        "removed": diff.removed,
        "errors": diff.errors,
    }


def serialize_run(run: VendorSyncRun, *, include_diff: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": run.pk,
        "vendor": run.vendor,
        "status": run.status,
        "dryRun": run.dry_run,
        "actor": run.actor,
        "sourcePath": run.source_path,
        "startedAt": _iso(run.started_at),
        "finishedAt": _iso(run.finished_at),
        "durationMs": run.duration_ms,
        "hash": run.hash or None,
        "counts": {
            "total": run.total_items,
            "created": run.created_count,
            "updated": run.updated_count,
            "unchanged": run.unchanged_count,
            "removed": run.removed_count,
            "failed": run.failed_count,
        },
        "error": run.error,
    }
    if include_diff:
        data["diff"] = serialize_diff(getattr(run, "diff", None))
    return data


def serialize_vendor_state(slug: str) -> Dict[str, Any]:
    return {"vendor": normalize_vendor_slug(slug), "state": serialize_state(vendor_state(slug))}


def overview() -> Dict[str, Any]:
    """Run totals over the last 24h plus the runs that have not finished yet."""
    recent = VendorSyncRun.objects.filter(started_at__gte=now() - OVERVIEW_WINDOW)
    totals = recent.aggregate(
        total=Count("id"),
        success=Count("id", filter=Q(status=VendorSyncRun.STATUS_SUCCESS)),
        failed=Count("id", filter=Q(status=VendorSyncRun.STATUS_ERROR)),
    )
    avg = recent.filter(
        status__in=VendorSyncRun.TERMINAL_STATUSES, duration_ms__isnull=False
    ).aggregate(avg=Avg("duration_ms"))["avg"]

    in_progress = VendorSyncRun.objects.filter(
        status__in=[VendorSyncRun.STATUS_PENDING, VendorSyncRun.STATUS_RUNNING]
    ).order_by("started_at", "id")
    return {
        "last24h": {
            "total": totals["total"],
            "success": totals["success"],
            "failed": totals["failed"],
            "avgDurationMs": max(0, round(avg or 0)),
        },
        "inProgress": [
            {
                "vendor": run.vendor,
                "startedAt": _iso(run.started_at),
                "runId": run.pk,
                "mode": "preview" if run.dry_run else "apply",
            }
            for run in in_progress
        ],
    }
