# vendor_sync/schemas.py
"""
Canonical product shape every vendor adapter must produce.

Field names are snake_case in Python and camelCase on the wire (`catalogId`,
`sizeLabel`, ...). Models are frozen: a normalized product is never edited after
the adapter hands it over, only re-validated.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from vendor_sync.exceptions import ProductValidationError

Category = Literal["Frames", "Lenses", "Contacts", "Accessories"]
Usage = Literal["optical", "sun", "both"]
Fit = Literal["narrow", "average", "wide", "extra-wide"]
PhotoAngle = Literal["front", "quarter", "side", "temple", "model", "detail", "pack", "clip", "unknown"]

CATEGORIES = ("Frames", "Lenses", "Contacts", "Accessories")
USAGES = ("optical", "sun", "both")
FITS = ("narrow", "average", "wide", "extra-wide")
PHOTO_ANGLES = ("front", "quarter", "side", "temple", "model", "detail", "pack", "clip", "unknown")

# category -> the only variant type allowed under it
CATEGORY_VARIANT_TYPE: Dict[str, str] = {
    "Frames": "frame",
    "Lenses": "lens",
    "Contacts": "contact",
    "Accessories": "accessory",
}

# upper bounds of the shop columns an applied product is written to
SKU_MAX_LENGTH = 191
NAME_MAX_LENGTH = 255
LABEL_MAX_LENGTH = 100
SIZE_LABEL_MAX_LENGTH = 50
BARCODE_MAX_LENGTH = 64
URL_MAX_LENGTH = 500


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an absolute http(s) URL")
    return value


class VendorRef(_Model):
    slug: str = Field(min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=LABEL_MAX_LENGTH)
    profile_id: Optional[str] = None


class Price(_Model):
    amount: float = Field(allow_inf_nan=False)
    currency: str = Field(min_length=1, max_length=8)


class Source(_Model):
    url: Optional[str] = Field(default=None, max_length=URL_MAX_LENGTH)
    retrieved_at: Optional[str] = None
    price_list: Optional[str] = None
    note: Optional[str] = None

    _url = field_validator("url")(_check_url)

    @field_validator("retrieved_at")
    @classmethod
    def _iso_datetime(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError("must be an ISO-8601 datetime") from e
        return value


class Photo(_Model):
    url: str
    label: Optional[str] = None
    is_hero: Optional[bool] = None
    source: Optional[Literal["catalog", "local"]] = None
    angle: Optional[PhotoAngle] = None
    colorway_name: Optional[str] = None

    _url = field_validator("url")(_check_url)


class Measurements(_Model):
    lens_width: Optional[float] = None
    lens_height: Optional[float] = None
    frame_width: Optional[float] = None
    bridge: Optional[float] = None
    temple: Optional[float] = None

    @model_validator(mode="after")
    def _at_least_one(self) -> "Measurements":
        if all(getattr(self, f) is None for f in type(self).model_fields):
            raise ValueError("At least one frame measurement is required when measurements are provided")
        return self


class Color(_Model):
    name: str = Field(min_length=1, max_length=LABEL_MAX_LENGTH)
    swatch: Optional[str] = None
    finish: Optional[str] = None


class _VariantBase(_Model):
    id: str = Field(min_length=1)
    sku: Optional[str] = None
    barcode: Optional[str] = Field(default=None, max_length=BARCODE_MAX_LENGTH)
    notes: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None


class FrameVariant(_VariantBase):
    type: Literal["frame"] = "frame"
    size_label: Optional[str] = Field(default=None, max_length=SIZE_LABEL_MAX_LENGTH)
    measurements: Optional[Measurements] = None
    fit: Optional[Fit] = None
    usage: Optional[Usage] = None
    color: Optional[Color] = None
    polarized: Optional[bool] = None
    clip_compatible: Optional[bool] = None


class LensVariant(_VariantBase):
    type: Literal["lens"] = "lens"
    index: Optional[str] = None
    coating: Optional[str] = None
    diameter: Optional[float] = None
    base_curve: Optional[float] = None


class ContactVariant(_VariantBase):
    type: Literal["contact"] = "contact"
    power: Optional[float] = None
    cylinder: Optional[float] = None
    axis: Optional[float] = None
    base_curve: Optional[float] = None
    diameter: Optional[float] = None
    pack_size: Optional[float] = None


class AccessoryVariant(_VariantBase):
    type: Literal["accessory"] = "accessory"
    color: Optional[Color] = None
    size_label: Optional[str] = Field(default=None, max_length=SIZE_LABEL_MAX_LENGTH)
    pack_size: Optional[float] = None


Variant = Annotated[
    Union[FrameVariant, LensVariant, ContactVariant, AccessoryVariant],
    Field(discriminator="type"),
]


class NormalizedProduct(_Model):
    vendor: VendorRef
    catalog_id: str = Field(min_length=1, max_length=SKU_MAX_LENGTH)
    name: Optional[str] = Field(default=None, max_length=NAME_MAX_LENGTH)
    model: Optional[str] = Field(default=None, max_length=LABEL_MAX_LENGTH)
    brand: Optional[str] = Field(default=None, max_length=LABEL_MAX_LENGTH)
    category: Category
    tags: Optional[List[str]] = None
    collections: Optional[List[str]] = None
    description_html: Optional[str] = None
    story_html: Optional[str] = None
    photos: List[Photo] = Field(default_factory=list)
    source: Source = Field(default_factory=Source)
    price: Optional[Price] = None
    variants: List[Variant] = Field(min_length=1)
    extras: Optional[Dict[str, Any]] = None
    raw: Optional[Any] = None

    @model_validator(mode="after")
    def _variants_match_category(self) -> "NormalizedProduct":
        expected = CATEGORY_VARIANT_TYPE[self.category]
        for variant in self.variants:
            if variant.type != expected:
                raise ValueError(
                    f"Variant type {variant.type} does not match product category {self.category}"
                )
        return self

    @model_validator(mode="after")
    def _sku_fits(self) -> "NormalizedProduct":
        # applied products are stored under "<vendor>:<catalogId>"
        if len(self.vendor.slug) + 1 + len(self.catalog_id) > SKU_MAX_LENGTH:
            raise ValueError(
                f"catalogId is too long: '{self.vendor.slug}:<catalogId>' must fit in {SKU_MAX_LENGTH} characters"
            )
        return self

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready camelCase dict, without the raw vendor payload."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"raw"})


def _format_issues(err: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"path": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg", "")}
        for e in err.errors(include_url=False)
    ]


def to_product_error(err: ValidationError, catalog_id: Optional[str] = None) -> ProductValidationError:
    issues = _format_issues(err)
    message = "; ".join(
        f"{i['path']}: {i['message']}" if i["path"] else i["message"] for i in issues
    )
    return ProductValidationError(
        message or "Invalid normalized product",
        issues=issues,
        catalog_id=catalog_id if isinstance(catalog_id, str) else None,
    )


def validate_product(candidate: Union[NormalizedProduct, Mapping[str, Any]]) -> NormalizedProduct:
    """
    Gate every adapter output (or a hand-built dict) through the canonical schema.
    Raises ProductValidationError with a flat issue list.
    """
    if isinstance(candidate, NormalizedProduct):
        data: Any = candidate.model_dump(by_alias=True)
    elif isinstance(candidate, Mapping):
        data = candidate
    else:
        raise ProductValidationError(
            "Normalized product must be an object",
            issues=[{"path": "", "message": f"expected an object, got {type(candidate).__name__}"}],
        )
    try:
        return NormalizedProduct.model_validate(data)
    except ValidationError as e:
        raise to_product_error(e, data.get("catalogId") or data.get("catalog_id")) from e
