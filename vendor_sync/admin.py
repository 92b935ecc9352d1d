# vendor_sync/admin.py
from django.contrib import admin, messages

from vendor_sync.models import (
    Vendor,
    VendorCatalogItem,
    VendorIntegration,
    VendorSyncRun,
    VendorSyncRunDiff,
    VendorSyncState,
)
from vendor_sync.services import registry
from vendor_sync.services.sync import run_vendor_sync


def _sync_selected(request, queryset, *, dry_run: bool):
    done = 0
    for vendor in queryset:
        try:
            result = run_vendor_sync(
                vendor.slug, dry_run=dry_run, actor=f"admin:{request.user.get_username()}"
            )
            messages.success(request, f"{vendor.slug}: {result.to_dict()['metrics']}")
            done += 1
        except Exception as e:
            messages.error(request, f"{vendor.slug} failed: {e}")
    if done:
        mode = "Previewed" if dry_run else "Synced"
        messages.info(request, f"{mode} {done} vendor(s).")


@admin.action(description="Preview sync (dry run)")
def preview_selected_vendors(modeladmin, request, queryset):
    _sync_selected(request, queryset, dry_run=True)


@admin.action(description="Apply sync now")
def sync_selected_vendors(modeladmin, request, queryset):
    _sync_selected(request, queryset, dry_run=False)


@admin.action(description="Test connection")
def test_selected_vendors(modeladmin, request, queryset):
    for vendor in queryset:
        try:
            result = registry.test_connection(vendor.slug)
        except Exception as e:
            messages.error(request, f"{vendor.slug} test exception: {e}")
            continue
        if result["ok"]:
            messages.success(request, f"{vendor.slug} OK {result['meta']}")
        else:
            messages.error(request, f"{vendor.slug} failed: {result['meta'].get('error')}")


class VendorIntegrationInline(admin.StackedInline):
    model = VendorIntegration
    extra = 0
    readonly_fields = ("last_test_at", "last_test_ok", "meta")


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("slug", "name", "created_at")
    search_fields = ("slug", "name")
    inlines = [VendorIntegrationInline]
    actions = [preview_selected_vendors, sync_selected_vendors, test_selected_vendors]


@admin.register(VendorCatalogItem)
class VendorCatalogItemAdmin(admin.ModelAdmin):
    list_display = ("vendor", "catalog_id", "hash", "updated_at")
    list_filter = ("vendor",)
    search_fields = ("catalog_id",)


class VendorSyncRunDiffInline(admin.StackedInline):
    model = VendorSyncRunDiff
    extra = 0
    can_delete = False
    readonly_fields = ("counts", "items", "removed", "errors", "created_at")


@admin.register(VendorSyncRun)
class VendorSyncRunAdmin(admin.ModelAdmin):
    list_display = (
        "vendor",
        "status",
        "dry_run",
        "actor",
        "started_at",
        "duration_ms",
        "created_count",
        "updated_count",
        "removed_count",
        "failed_count",
    )
    list_filter = ("status", "dry_run", "vendor")
    date_hierarchy = "started_at"
    search_fields = ("vendor", "actor", "error")
    inlines = [VendorSyncRunDiffInline]

    # history is append-only
    def has_change_permission(self, request, obj=None):
        return False


@admin.register(VendorSyncState)
class VendorSyncStateAdmin(admin.ModelAdmin):
    list_display = ("vendor", "last_run_at", "total_items", "last_duration_ms", "last_run_by", "last_error")
    search_fields = ("vendor",)
