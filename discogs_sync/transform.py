"""
Pure mappers from a Discogs collection item to the Shopify product fields.

Nothing here touches the network; missing optional data degrades to an
omitted field rather than an exception.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from slugify import slugify

from discogs_sync.models import CollectionItem, MetafieldValue, ShopifyDraft

SKU_PREFIX = "DCG-"
METAFIELD_NAMESPACE = "discogs"
SOURCE_TAG = "source:discogs"
DEFAULT_VENDOR = "Unknown Label"
DEFAULT_PRODUCT_TYPE = "Vinyl"
DEFAULT_PRICE = "0.00"
MAX_IMAGES = 8
DESCRIPTION_SEPARATOR = " • "

_WHITESPACE = re.compile(r"\s+")


def sku_for_instance(instance_id) -> str:
    return f"{SKU_PREFIX}{instance_id}"


def slugify_handle(text: Optional[str]) -> str:
    """Lowercase ``[a-z0-9-]`` slug; never raises, ``None`` gives ``""``."""
    if not text:
        return ""
    # Commas become separators up front so "1,000" stays "1-000"; entity
    # decoding is off so "&amp;" is treated as plain text.
    return slugify(
        str(text),
        lowercase=True,
        entities=False,
        decimal=False,
        hexadecimal=False,
        replacements=[[",", "-"]],
    )


def disambiguated_handle(handle: str, sku: str) -> str:
    """Handle used when the first choice is already taken by another product."""
    return slugify_handle(f"{handle}-{sku.lower()}")


def build_title(artists: Iterable[str], title: str) -> str:
    artist = ", ".join(a for a in artists if a)
    return f"{artist} – {title}" if artist else title


def build_handle(item: CollectionItem) -> str:
    return slugify_handle(f"{build_title(item.artists, item.title)}-{item.instance_id}")


def build_description(item: CollectionItem) -> str:
    parts = [
        ", ".join(f.name for f in item.formats if f.name),
        item.label,
        f"Year: {item.year}" if item.year else None,
    ]
    return DESCRIPTION_SEPARATOR.join(p for p in parts if p)


def grade_tag(prefix: str, grade: Optional[str]) -> Optional[str]:
    """``grade_tag("grade", "Near Mint (NM)")`` -> ``"grade:NearMint(NM)"``."""
    if not grade:
        return None
    compact = _WHITESPACE.sub("", grade)
    return f"{prefix}:{compact}" if compact else None


def build_tags(item: CollectionItem) -> List[str]:
    tags = [
        grade_tag("grade", item.media_condition),
        grade_tag("sleeve", item.sleeve_condition),
        SOURCE_TAG,
    ]
    return [t for t in tags if t]


def collect_image_urls(item: CollectionItem, limit: int = MAX_IMAGES) -> List[str]:
    urls: List[str] = []
    for url in (item.cover_image, item.thumb, *item.images):
        if url and url not in urls:
            urls.append(url)
    return urls[:limit]


def format_summary(item: CollectionItem) -> str:
    """``"Vinyl LP Album, CD"`` style summary of every format and its descriptors."""
    return ", ".join(
        " ".join(p for p in (fmt.name, *fmt.descriptions) if p)
        for fmt in item.formats
        if fmt.name or fmt.descriptions
    )


def build_metafields(item: CollectionItem) -> List[MetafieldValue]:
    """
    The fixed ``discogs.*`` metafield set, in write order.

    Values may be blank here; the reconciler decides what to skip.
    """
    fields = [
        ("release_id", item.release_id),
        ("master_id", item.master_id),
        ("media_condition", item.media_condition),
        ("sleeve_condition", item.sleeve_condition),
        ("notes", item.notes),
        ("catalog_number", item.catalog_number),
        ("label", item.label),
        ("format", format_summary(item)),
        ("year", item.year),
        ("barcode", item.barcode),
        ("instance_id", item.instance_id),
    ]
    return [
        MetafieldValue(
            namespace=METAFIELD_NAMESPACE,
            key=key,
            value="" if value is None else str(value),
            type="multi_line_text_field" if key == "notes" else "single_line_text_field",
        )
        for key, value in fields
    ]


def build_draft(item: CollectionItem, status: str = "active") -> ShopifyDraft:
    return ShopifyDraft(
        sku=sku_for_instance(item.instance_id),
        title=build_title(item.artists, item.title),
        handle=build_handle(item),
        body_html=build_description(item),
        vendor=item.label or DEFAULT_VENDOR,
        product_type=DEFAULT_PRODUCT_TYPE,
        status=status,
        tags=build_tags(item),
        price=DEFAULT_PRICE,
        images=collect_image_urls(item),
        metafields=build_metafields(item),
        barcode=item.barcode,
    )
