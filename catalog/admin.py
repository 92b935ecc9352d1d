from __future__ import annotations

from django.contrib import admin

from .models import Product, StoreStock


class StoreStockInline(admin.TabularInline):
    model = StoreStock
    extra = 0
    fields = ("store_id", "qty", "barcode")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "category", "brand", "supplier", "updated_at")
    list_filter = ("category", "supplier")
    search_fields = ("sku", "name", "brand", "model")
    inlines = [StoreStockInline]


@admin.register(StoreStock)
class StoreStockAdmin(admin.ModelAdmin):
    list_display = ("product", "store_id", "qty", "barcode")
    list_filter = ("store_id",)
    search_fields = ("product__sku", "barcode")
