# catalog/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone


class ProductCategory(models.TextChoices):
    FRAMES = "Frames", "Frames"
    LENSES = "Lenses", "Lenses"
    CONTACTS = "Contacts", "Contacts"
    ACCESSORIES = "Accessories", "Accessories"


# ---------- Base ----------
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ---------- Core ----------
class Product(TimeStampedModel):
    """
    Shop-facing product. Vendor-synced rows use a `<vendor>:<catalogId>` sku so the
    sync can find them again; hand-made products are free to use any sku.
    """

    sku = models.CharField(max_length=191, unique=True)
    name = models.CharField(max_length=255)
    category = models.CharField(
        max_length=20, choices=ProductCategory.choices, default=ProductCategory.ACCESSORIES
    )
    brand = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    model = models.CharField(max_length=100, null=True, blank=True)
    color = models.CharField(max_length=100, null=True, blank=True)
    size_label = models.CharField(max_length=50, null=True, blank=True)
    usage = models.CharField(max_length=20, null=True, blank=True)
    catalog_url = models.URLField(max_length=500, null=True, blank=True)
    supplier = models.CharField(max_length=100, null=True, blank=True, db_index=True)

    class Meta:
        indexes = [
            models.Index(fields=["category"]),
            models.Index(fields=["supplier", "sku"]),
        ]
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"


class StoreStock(TimeStampedModel):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="stocks")
    store_id = models.CharField(max_length=64)
    qty = models.PositiveIntegerField(default=0)
    barcode = models.CharField(max_length=64, null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["product", "store_id"], name="uq_stock_product_store"),
        ]
        ordering = ["product_id", "store_id"]

    def __str__(self) -> str:
        return f"Stock({self.product.sku}@{self.store_id}={self.qty})"

    @property
    def in_stock(self) -> bool:
        return self.qty > 0
