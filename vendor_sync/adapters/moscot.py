# vendor_sync/adapters/moscot.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from vendor_sync.base import BaseAdapter, RawItem
from vendor_sync.exceptions import NormalizationInputError
from vendor_sync.schemas import (
    CATEGORIES,
    FITS,
    PHOTO_ANGLES,
    USAGES,
    AccessoryVariant,
    Color,
    ContactVariant,
    FrameVariant,
    LensVariant,
    Measurements,
    NormalizedProduct,
    Photo,
    Price,
    Source,
    VendorRef,
)
from vendor_sync.slugs import DEFAULT_VENDOR_NAME, DEFAULT_VENDOR_SLUG


# -----------------------------
# MOSCOT adapter
# -----------------------------
class MoscotAdapter(BaseAdapter):
    """
    Maps the scraped MOSCOT catalog feed onto NormalizedProduct.

    Raw item (tolerant; unknown keys are ignored):
      - catalogId: str (required), category: str (required)
      - brand, model, name, descriptionHtml, storyHtml: str
      - collections, tags: list[str]
      - photos: [{url, label, isHero, source, angle, colorwayName}]
      - source: {supplier, url, lastSyncISO, confidence}
      - price: {amount, currency}
      - variants: [{id, sku, barcode, sizeLabel, fit, usage, polarized, clipCompatible,
                    packSize, notes, measurements{lensWidth,...}, size{lens,bridge,temple},
                    color{name, swatch, finish}, attributes}]

    Vendor quirks:
      - "Sunglasses" is not a category of ours: it becomes Frames and the variants
        default to usage "sun".
      - Unknown categories fall back to Accessories.
      - Items without variants (and all Lenses/Contacts items) get one synthetic
        variant "<catalogId>:variant" so the product is still stockable.
    """

    key = "moscot.catalog"
    vendor = VendorRef(slug=DEFAULT_VENDOR_SLUG, name=DEFAULT_VENDOR_NAME)

    def normalize(self, raw: RawItem) -> NormalizedProduct:
        catalog_id = _clean_str(raw.get("catalogId"))
        if not catalog_id:
            raise NormalizationInputError("MOSCOT item is missing catalogId")
        raw_category = _clean_str(raw.get("category"))
        if not raw_category:
            raise NormalizationInputError(
                f"MOSCOT item {catalog_id} is missing category", catalog_id=catalog_id
            )

        category = _coerce_category(raw_category)
        default_usage = "sun" if raw_category.lower() == "sunglasses" else None

        source = raw.get("source") if isinstance(raw.get("source"), Mapping) else {}
        extras: Dict[str, Any] = {}
        if source.get("confidence"):
            extras["sourceConfidence"] = source["confidence"]
        supplier = source.get("supplier")
        if isinstance(supplier, str) and supplier and supplier != DEFAULT_VENDOR_NAME:
            extras["supplierLabel"] = supplier

        tags = _str_list(raw.get("tags"))
        collections = _str_list(raw.get("collections"))

        return NormalizedProduct(
            vendor=self.vendor,
            catalog_id=catalog_id,
            name=_opt_str(raw.get("name")),
            model=_opt_str(raw.get("model")),
            brand=_opt_str(raw.get("brand")),
            category=category,
            tags=tags or None,
            collections=collections or None,
            description_html=_opt_str(raw.get("descriptionHtml")),
            story_html=_opt_str(raw.get("storyHtml")),
            photos=self._photos(raw),
            source=Source(
                url=_opt_str(source.get("url")),
                retrieved_at=_opt_str(source.get("lastSyncISO")),
                note=_opt_str(supplier),
            ),
            price=self._price(raw.get("price")),
            variants=self._variants(raw, catalog_id, category, default_usage),
            extras=extras or None,
            raw=dict(raw),
        )

    # ---------- variants ----------
    def _variants(
        self,
        raw: RawItem,
        catalog_id: str,
        category: str,
        default_usage: Optional[str],
    ) -> list:
        items = [v for v in (raw.get("variants") or []) if isinstance(v, Mapping)]
        if not items or category in ("Lenses", "Contacts"):
            return [_fallback_variant(category, catalog_id, default_usage)]

        if category == "Frames":
            return [
                self._frame_variant(v, catalog_id, i, default_usage) for i, v in enumerate(items)
            ]
        return [self._accessory_variant(v, catalog_id, i) for i, v in enumerate(items)]

    def _frame_variant(
        self, v: Mapping[str, Any], catalog_id: str, index: int, default_usage: Optional[str]
    ) -> FrameVariant:
        fit = _clean_str(v.get("fit")).lower()
        return FrameVariant(
            id=_variant_id(v, catalog_id, index),
            sku=_opt_str(v.get("sku")),
            barcode=_opt_str(v.get("barcode")),
            size_label=_opt_str(v.get("sizeLabel")),
            fit=fit if fit in FITS else None,
            usage=_coerce_usage(v.get("usage")) or default_usage,
            measurements=_measurements(v),
            color=_color(v.get("color")),
            polarized=v.get("polarized") if isinstance(v.get("polarized"), bool) else None,
            clip_compatible=(
                v.get("clipCompatible") if isinstance(v.get("clipCompatible"), bool) else None
            ),
            notes=_opt_str(v.get("notes")),
            attributes=v.get("attributes") if isinstance(v.get("attributes"), dict) else None,
        )

    def _accessory_variant(self, v: Mapping[str, Any], catalog_id: str, index: int) -> AccessoryVariant:
        return AccessoryVariant(
            id=_variant_id(v, catalog_id, index),
            sku=_opt_str(v.get("sku")),
            barcode=_opt_str(v.get("barcode")),
            size_label=_opt_str(v.get("sizeLabel")),
            pack_size=_to_float(v.get("packSize")),
            color=_color(v.get("color")),
            notes=_opt_str(v.get("notes")),
            attributes=v.get("attributes") if isinstance(v.get("attributes"), dict) else None,
        )

    # ---------- photos / price ----------
    def _photos(self, raw: RawItem) -> List[Photo]:
        out: List[Photo] = []
        for p in raw.get("photos") or []:
            if not isinstance(p, Mapping):
                continue
            url = _clean_str(p.get("url"))
            if not url:
                continue
            src = _clean_str(p.get("source")).lower()
            angle = _clean_str(p.get("angle")).lower()
            out.append(
                Photo(
                    url=url,
                    label=_opt_str(p.get("label")),
                    is_hero=p.get("isHero") if isinstance(p.get("isHero"), bool) else None,
                    source=src if src in ("catalog", "local") else None,
                    angle=(angle if angle in PHOTO_ANGLES else "unknown") if angle else None,
                    colorway_name=_opt_str(p.get("colorwayName")),
                )
            )
        return out

    def _price(self, value: Any) -> Optional[Price]:
        if not isinstance(value, Mapping):
            return None
        amount = _to_float(value.get("amount"))
        currency = _clean_str(value.get("currency"))
        if amount is None or not currency:
            return None
        return Price(amount=amount, currency=currency)


# -----------------------------
# Helpers (pure functions)
# -----------------------------
def _coerce_category(value: str) -> str:
    if value == "Sunglasses":
        return "Frames"
    if value in CATEGORIES:
        return value
    return "Accessories"


def _coerce_usage(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    v = value.strip().lower()
    if v in USAGES:
        return v
    if v in ("optical-sun", "sun-optical"):
        return "both"
    return None


def _fallback_variant(category: str, catalog_id: str, default_usage: Optional[str]):
    vid = f"{catalog_id}:variant"
    if category == "Frames":
        return FrameVariant(id=vid, usage=default_usage)
    if category == "Lenses":
        return LensVariant(id=vid)
    if category == "Contacts":
        return ContactVariant(id=vid)
    return AccessoryVariant(id=vid)


def _variant_id(v: Mapping[str, Any], catalog_id: str, index: int) -> str:
    vid = _clean_str(v.get("id"))
    return vid or f"{catalog_id}:v{index}"


def _measurements(v: Mapping[str, Any]) -> Optional[Measurements]:
    m = v.get("measurements") if isinstance(v.get("measurements"), Mapping) else {}
    legacy = v.get("size") if isinstance(v.get("size"), Mapping) else {}
    values = {
        "lens_width": _to_float(_first(m.get("lensWidth"), legacy.get("lens"))),
        "lens_height": _to_float(m.get("lensHeight")),
        "frame_width": _to_float(m.get("frameWidth")),
        "bridge": _to_float(_first(m.get("bridge"), legacy.get("bridge"))),
        "temple": _to_float(_first(m.get("temple"), legacy.get("temple"))),
    }
    if all(x is None for x in values.values()):
        return None
    return Measurements(**values)


def _color(value: Any) -> Optional[Color]:
    if not isinstance(value, Mapping):
        return None
    name = _clean_str(value.get("name"))
    if not name:
        return None
    return Color(name=name, swatch=_opt_str(value.get("swatch")), finish=_opt_str(value.get("finish")))


def _first(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def _to_float(x: Any) -> Optional[float]:
    if isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        f = float(x)
    elif isinstance(x, str):
        try:
            f = float(x.strip())
        except ValueError:
            return None
    else:
        return None
    if f != f or f in (float("inf"), float("-inf")):
        return None
    return f


def _clean_str(x: Any) -> str:
    return x.strip() if isinstance(x, str) else ""


def _opt_str(x: Any) -> Optional[str]:
    return x if isinstance(x, str) else None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [x for x in value if isinstance(x, str) and x.strip()]
