from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from discogs_sync.clients.shopify import ShopifyClient
from discogs_sync.errors import ShopifyAPIError, ShopifyValidationError
from discogs_sync.models import CatalogProduct, CollectionItem, MetafieldValue, ShopifyDraft
from discogs_sync.pacing import MinIntervalGate
from discogs_sync.transform import build_draft, disambiguated_handle

logger = logging.getLogger(__name__)


class ShopifyReconciler:
    """
    Create-or-update a Shopify product for a Discogs collection item.

    The variant SKU (``DCG-<instance_id>``) is the only identity used:
    - no product with that SKU: create one, retrying once with a
      disambiguated handle if Shopify reports the handle as taken;
    - otherwise: update tags only, leaving images and description alone.
    Metafields are upserted on both paths and never written blank.
    """

    def __init__(
        self,
        client: ShopifyClient,
        default_status: str = "active",
        collection_handle: Optional[str] = None,
        metafield_gate: Optional[MinIntervalGate] = None,
    ) -> None:
        self.client = client
        self.default_status = default_status
        self.collection_handle = collection_handle
        self.metafield_gate = metafield_gate or MinIntervalGate(0.2)
        self.created_ids: List[int] = []
        self.updated_ids: List[int] = []
        self._collection_id: Optional[int] = None

    def reconcile(self, item: CollectionItem) -> CatalogProduct:
        draft = build_draft(item, status=self.default_status)
        existing_id = self.find_existing(draft.sku)

        if existing_id is None:
            product = self._create(draft)
            self.created_ids.append(product.id)
            logger.info(
                "Created Shopify product id=%s sku=%s handle=%s title=%s",
                product.id,
                draft.sku,
                product.handle,
                draft.title,
            )
        else:
            product = self.client.update_product(existing_id, {"tags": draft.tags_csv})
            self.updated_ids.append(product.id)
            logger.info(
                "Updated tags on Shopify product id=%s sku=%s tags=%s",
                product.id,
                draft.sku,
                draft.tags_csv,
            )

        product.metafields = self.upsert_metafields(product.id, draft.metafields)

        if self.collection_handle:
            self._link_collection(product.id)
        return product

    def find_existing(self, sku: str) -> Optional[int]:
        ids = self.client.find_product_ids_by_sku(sku)
        if not ids:
            return None
        ids = sorted(ids)
        if len(ids) > 1:
            logger.warning(
                "SKU %s is on %d products (%s); using lowest id %s",
                sku,
                len(ids),
                ", ".join(str(i) for i in ids),
                ids[0],
            )
        return ids[0]

    def _build_payload(self, draft: ShopifyDraft, handle: str) -> Dict[str, Any]:
        variant: Dict[str, Any] = {
            "price": draft.price,
            "sku": draft.sku,
        }
        if draft.barcode:
            variant["barcode"] = draft.barcode

        product: Dict[str, Any] = {
            "title": draft.title,
            "body_html": draft.body_html,
            "handle": handle,
            "status": draft.status,
            "tags": draft.tags_csv,
            "vendor": draft.vendor,
            "product_type": draft.product_type,
            "variants": [variant],
        }
        if draft.images:
            product["images"] = [{"src": url} for url in draft.images]
        return {"product": product}

    def _create(self, draft: ShopifyDraft) -> CatalogProduct:
        try:
            return self.client.create_product(self._build_payload(draft, draft.handle))
        except ShopifyValidationError as exc:
            if not exc.conflicts_on("handle"):
                raise
            retry_handle = disambiguated_handle(draft.handle, draft.sku)
            logger.warning(
                "Handle %s already taken; retrying create for sku=%s with handle %s",
                draft.handle,
                draft.sku,
                retry_handle,
            )
        return self.client.create_product(self._build_payload(draft, retry_handle))

    def upsert_metafields(self, product_id: int, fields: List[MetafieldValue]) -> Dict[str, str]:
        """
        Overwrite or create each non-blank metafield; return what the product
        now holds for the written keys plus any untouched existing ones.
        """
        existing = {
            f"{mf.get('namespace')}.{mf.get('key')}": mf
            for mf in self.client.list_product_metafields(product_id)
        }
        current = {key: str(mf.get("value", "")) for key, mf in existing.items()}

        for field in fields:
            value = field.value.strip()
            if not value:
                continue
            match = existing.get(field.full_key)
            self.metafield_gate.wait()
            if match:
                self.client.update_metafield(match["id"], value)
            else:
                created = self.client.create_product_metafield(
                    product_id, field.namespace, field.key, value, field.type
                )
                existing[field.full_key] = created
            current[field.full_key] = value
            logger.debug("Metafield %s=%r on product %s", field.full_key, value, product_id)
        return current

    def _link_collection(self, product_id: int) -> None:
        try:
            if self._collection_id is None:
                collection = self.client.custom_collection_by_handle(self.collection_handle)
                if not collection or collection.get("id") is None:
                    logger.warning("Collection %r not found; skipping link", self.collection_handle)
                    return
                self._collection_id = int(collection["id"])
            self.client.add_product_to_collection(product_id, self._collection_id)
        except (ShopifyAPIError, requests.exceptions.RequestException, TypeError, ValueError) as exc:
            logger.debug(
                "Collection link for product %s to %r skipped: %s",
                product_id,
                self.collection_handle,
                exc,
            )
