# vendor_sync/slugs.py
from __future__ import annotations

from django.utils.text import slugify

DEFAULT_VENDOR_SLUG = "moscot"
DEFAULT_VENDOR_NAME = "MOSCOT"


def normalize_vendor_slug(value: str | None) -> str:
    """'  MOSCOT NYC ' -> 'moscot-nyc'. Empty string when nothing usable is left."""
    if not value:
        return ""
    return slugify(str(value).strip())
