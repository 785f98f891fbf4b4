"""Pytest fixtures: an in-memory Shopify catalog and canned Discogs items."""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from discogs_sync.errors import ShopifyAPIError, ShopifyValidationError
from discogs_sync.models import CatalogProduct, CollectionItem
from discogs_sync.pacing import no_wait
from discogs_sync.reconcile import ShopifyReconciler


class FakeShopifyClient:
    """Stores products/metafields in dicts and mimics the ShopifyClient surface."""

    def __init__(self) -> None:
        self.products: Dict[int, Dict[str, Any]] = {}
        self.metafields: Dict[int, Dict[str, Any]] = {}
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.collects: List[tuple] = []
        self.taken_handles: set = set()
        self.calls: List[tuple] = []
        self.fail_collects = False
        self._next_id = 1000

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def find_product_ids_by_sku(self, sku: str) -> List[int]:
        self.calls.append(("find_product_ids_by_sku", sku))
        return sorted(
            pid
            for pid, p in self.products.items()
            if any(v.get("sku") == sku for v in p.get("variants", []))
        )

    def create_product(self, payload: Dict[str, Any]) -> CatalogProduct:
        self.calls.append(("create_product", copy.deepcopy(payload)))
        product = copy.deepcopy(payload["product"])
        handles = {p["handle"] for p in self.products.values()} | self.taken_handles
        if product.get("handle") in handles:
            raise ShopifyValidationError(
                "POST", "products.json", 422, {"errors": {"handle": ["has already been taken"]}}
            )
        product["id"] = self._new_id()
        for variant in product.get("variants", []):
            variant["id"] = self._new_id()
        self.products[product["id"]] = product
        return CatalogProduct.from_api(product)

    def update_product(self, product_id: int, fields: Dict[str, Any]) -> CatalogProduct:
        self.calls.append(("update_product", product_id, copy.deepcopy(fields)))
        self.products[product_id].update(fields)
        return CatalogProduct.from_api(self.products[product_id])

    def list_product_metafields(self, product_id: int) -> List[Dict[str, Any]]:
        return [dict(m) for m in self.metafields.values() if m["owner_id"] == product_id]

    def create_product_metafield(self, product_id, namespace, key, value, type_):
        self.calls.append(("create_product_metafield", product_id, f"{namespace}.{key}", value))
        mf = {
            "id": self._new_id(),
            "owner_id": product_id,
            "namespace": namespace,
            "key": key,
            "value": value,
            "type": type_,
        }
        self.metafields[mf["id"]] = mf
        return dict(mf)

    def update_metafield(self, metafield_id: int, value: str) -> Dict[str, Any]:
        self.calls.append(("update_metafield", metafield_id, value))
        self.metafields[metafield_id]["value"] = value
        return dict(self.metafields[metafield_id])

    def custom_collection_by_handle(self, handle: str) -> Optional[Dict[str, Any]]:
        return self.collections.get(handle)

    def add_product_to_collection(self, product_id: int, collection_id: int) -> Dict[str, Any]:
        if self.fail_collects:
            raise ShopifyAPIError("POST", "collects.json", 422, {"errors": "already exists"})
        self.collects.append((product_id, collection_id))
        return {"product_id": product_id, "collection_id": collection_id}

    # helpers for assertions
    def metafield_values(self, product_id: int) -> Dict[str, str]:
        return {
            f"{m['namespace']}.{m['key']}": m["value"]
            for m in self.metafields.values()
            if m["owner_id"] == product_id
        }

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_shopify() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture
def reconciler(fake_shopify) -> ShopifyReconciler:
    return ShopifyReconciler(
        client=fake_shopify,
        default_status="draft",
        metafield_gate=no_wait(),
    )


@pytest.fixture
def blue_raw() -> Dict[str, Any]:
    """Collection folder entry for Joni Mitchell's Blue."""
    return {
        "instance_id": 42,
        "folder_id": 1,
        "basic_information": {
            "id": 1234,
            "master_id": 5678,
            "title": "Blue",
            "year": 1971,
            "artists": [{"name": "Joni Mitchell"}],
            "labels": [{"name": "Reprise Records", "catno": "MS 2038"}],
            "formats": [{"name": "Vinyl", "descriptions": ["LP", "Album"]}],
            "cover_image": "https://img.discogs.com/blue-cover.jpg",
            "thumb": "https://img.discogs.com/blue-thumb.jpg",
        },
        "media_condition": "Near Mint (NM)",
        "sleeve_condition": "Very Good (VG)",
    }


@pytest.fixture
def blue_item(blue_raw) -> CollectionItem:
    return CollectionItem.from_api(blue_raw)


@pytest.fixture
def make_response():
    """Factory for real requests.Response objects with a canned body."""

    def _make(status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None):
        resp = requests.Response()
        resp.status_code = status
        resp.encoding = "utf-8"
        if body is None:
            resp._content = b""
        elif isinstance(body, (dict, list)):
            resp._content = json.dumps(body).encode("utf-8")
        else:
            resp._content = str(body).encode("utf-8")
        resp.headers.update(headers or {})
        return resp

    return _make
