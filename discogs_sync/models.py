from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

# Discogs collection "notes" field ids for the default custom fields.
MEDIA_CONDITION_FIELD = 1
SLEEVE_CONDITION_FIELD = 2
NOTES_FIELD = 3


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ReleaseFormat:
    name: Optional[str]
    descriptions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CollectionItem:
    """One physical copy in a Discogs collection folder (a snapshot per run)."""

    instance_id: str
    title: str
    folder_id: Optional[str] = None
    release_id: Optional[str] = None
    master_id: Optional[str] = None
    artists: Tuple[str, ...] = ()
    year: Optional[int] = None
    labels: Tuple[str, ...] = ()
    catalog_number: Optional[str] = None
    barcode: Optional[str] = None
    formats: Tuple[ReleaseFormat, ...] = ()
    cover_image: Optional[str] = None
    thumb: Optional[str] = None
    images: Tuple[str, ...] = ()
    media_condition: Optional[str] = None
    sleeve_condition: Optional[str] = None
    notes: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        return self.labels[0] if self.labels else None

    @classmethod
    def from_api(cls, data: Dict[str, Any], folder_id: Optional[str] = None) -> "CollectionItem":
        """
        Build from a ``releases[]`` entry of the collection folder endpoint.

        Grades and notes may come either as flat strings or as the Discogs
        ``notes`` list of ``{"field_id": n, "value": ...}`` entries.
        """
        instance_id = _clean(data.get("instance_id"))
        if instance_id is None:
            raise ValueError("Discogs collection item has no instance_id")

        basic = data.get("basic_information") or {}

        media = _clean(data.get("media_condition"))
        sleeve = _clean(data.get("sleeve_condition"))
        notes_raw = data.get("notes")
        notes: Optional[str] = None
        if isinstance(notes_raw, list):
            by_field: Dict[int, Any] = {}
            for entry in notes_raw:
                if not isinstance(entry, dict):
                    continue
                try:
                    by_field[int(entry.get("field_id"))] = entry.get("value")
                except (TypeError, ValueError):
                    continue
            media = media or _clean(by_field.get(MEDIA_CONDITION_FIELD))
            sleeve = sleeve or _clean(by_field.get(SLEEVE_CONDITION_FIELD))
            notes = _clean(by_field.get(NOTES_FIELD))
        elif notes_raw is not None:
            notes = _clean(notes_raw)

        labels = basic.get("labels") or []
        label_names = tuple(n for n in (_clean(lbl.get("name")) for lbl in labels) if n)
        catno = _clean(basic.get("catno"))
        if catno is None and labels:
            catno = _clean(labels[0].get("catno"))

        formats = tuple(
            ReleaseFormat(
                name=_clean(fmt.get("name")),
                descriptions=tuple(d for d in (_clean(x) for x in fmt.get("descriptions") or []) if d),
            )
            for fmt in basic.get("formats") or []
        )

        images: List[str] = []
        for img in basic.get("images") or []:
            url = _clean(img.get("resource_url") or img.get("uri"))
            if url:
                images.append(url)

        year = basic.get("year")
        try:
            year = int(year) if year else None
        except (TypeError, ValueError):
            year = None

        return cls(
            instance_id=instance_id,
            title=_clean(basic.get("title")) or "",
            folder_id=_clean(folder_id if folder_id is not None else data.get("folder_id")),
            release_id=_clean(basic.get("id") or data.get("id")),
            master_id=_clean(basic.get("master_id") or None),
            artists=tuple(
                n for n in (_clean(a.get("name")) for a in basic.get("artists") or []) if n
            ),
            year=year or None,
            labels=label_names,
            catalog_number=catno,
            barcode=_clean(basic.get("barcode")),
            formats=formats,
            cover_image=_clean(basic.get("cover_image")),
            thumb=_clean(basic.get("thumb")),
            images=tuple(images),
            media_condition=media,
            sleeve_condition=sleeve,
            notes=notes,
        )


@dataclass
class MetafieldValue:
    namespace: str
    key: str
    value: str
    type: str = "single_line_text_field"

    @property
    def full_key(self) -> str:
        return f"{self.namespace}.{self.key}"


@dataclass
class ShopifyDraft:
    """Transformed product, before it is submitted to the Shopify API."""

    sku: str
    title: str
    handle: str
    body_html: str
    vendor: str
    product_type: str
    status: str
    tags: List[str]
    price: str
    images: List[str]  # URLs
    metafields: List[MetafieldValue]
    barcode: Optional[str] = None

    @property
    def tags_csv(self) -> str:
        return ", ".join(self.tags)


@dataclass
class ProductVariant:
    id: Optional[int]
    sku: str
    price: Optional[str] = None
    barcode: Optional[str] = None


@dataclass
class CatalogProduct:
    """A Shopify product as returned by the Admin REST API."""

    id: int
    title: str = ""
    handle: str = ""
    status: str = ""
    tags: Set[str] = field(default_factory=set)
    vendor: str = ""
    product_type: str = ""
    variants: List[ProductVariant] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    metafields: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def parse_tags(tags: Any) -> Set[str]:
        if isinstance(tags, (list, tuple, set)):
            parts = tags
        else:
            parts = str(tags or "").split(",")
        return {t.strip() for t in parts if t and t.strip()}

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CatalogProduct":
        return cls(
            id=int(data["id"]),
            title=data.get("title") or "",
            handle=data.get("handle") or "",
            status=data.get("status") or "",
            tags=cls.parse_tags(data.get("tags")),
            vendor=data.get("vendor") or "",
            product_type=data.get("product_type") or "",
            variants=[
                ProductVariant(
                    id=v.get("id"),
                    sku=v.get("sku") or "",
                    price=v.get("price"),
                    barcode=v.get("barcode"),
                )
                for v in data.get("variants") or []
            ],
            images=[img.get("src") for img in data.get("images") or [] if img.get("src")],
        )


@dataclass
class FolderPage:
    """One page of a Discogs collection folder listing."""

    releases: List[Dict[str, Any]]
    page: int
    pages: Optional[int]
    items: Optional[int] = None


@dataclass
class SyncFailure:
    folder_id: str
    instance_id: Optional[str]
    message: str

    def __str__(self) -> str:
        who = self.instance_id if self.instance_id is not None else "<folder>"
        return f"folder={self.folder_id} instance={who}: {self.message}"


@dataclass
class FolderResult:
    folder_id: str
    items_seen: int = 0
    pages_fetched: int = 0
    failures: List[SyncFailure] = field(default_factory=list)


@dataclass
class SyncSummary:
    """Aggregated results from a sync run."""

    folders: List[FolderResult]
    created_count: int
    updated_count: int

    @property
    def items_seen(self) -> int:
        return sum(f.items_seen for f in self.folders)

    @property
    def failures(self) -> List[SyncFailure]:
        return [failure for f in self.folders for failure in f.failures]
