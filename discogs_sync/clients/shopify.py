from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from discogs_sync.errors import ShopifyAPIError, ShopifyValidationError
from discogs_sync.models import CatalogProduct
from discogs_sync.pacing import MinIntervalGate

logger = logging.getLogger(__name__)

VARIANTS_BY_SKU_QUERY = """
query ($query: String!, $first: Int!) {
  productVariants(first: $first, query: $query) {
    edges {
      node {
        sku
        product {
          legacyResourceId
        }
      }
    }
  }
}
"""


class ShopifyClient:
    """Minimal Shopify Admin API client for products, metafields and collects."""

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2025-01",
        session: Optional[requests.Session] = None,
        calls_per_second: float = 2.0,
        gate: Optional[MinIntervalGate] = None,
        max_retries: int = 4,
        timeout: int = 20,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store_domain = store_domain
        self.access_token = access_token
        self.api_version = api_version
        self.session = session or requests.Session()
        # Shopify's REST bucket leaks at 2 calls/second.
        self.gate = gate or MinIntervalGate.per_second(min(calls_per_second, 2.0))
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}/{path.lstrip('/')}"

    @staticmethod
    def _details(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send one request, retrying only on 429 (honouring Retry-After).

        422 responses with field-keyed errors raise ShopifyValidationError;
        every other non-2xx raises ShopifyAPIError.
        """
        resp: Optional[requests.Response] = None
        for attempt in range(1, self.max_retries + 1):
            self.gate.wait()
            try:
                resp = self.session.request(
                    method,
                    self._url(path),
                    headers=self._headers(),
                    params=params,
                    json=payload,
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as exc:
                raise ShopifyAPIError(method, path, None, str(exc)) from exc
            if resp.status_code != 429:
                break
            retry_after = resp.headers.get("Retry-After")
            try:
                delay = float(retry_after) if retry_after else 2.0
            except ValueError:
                delay = 2.0
            logger.warning(
                "Shopify rate limit on %s %s (attempt %d/%d); retrying in %.1fs",
                method,
                path,
                attempt,
                self.max_retries,
                delay,
            )
            if attempt < self.max_retries:
                self._sleep(delay)

        if resp.status_code == 422:
            details = self._details(resp)
            if isinstance(details, dict) and isinstance(details.get("errors"), dict):
                raise ShopifyValidationError(method, path, resp.status_code, details)
            raise ShopifyAPIError(method, path, resp.status_code, details)
        if not 200 <= resp.status_code < 300:
            raise ShopifyAPIError(method, path, resp.status_code, self._details(resp))
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise ShopifyAPIError(method, path, resp.status_code, f"invalid JSON: {exc}") from exc

    def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "graphql.json", payload={"query": query, "variables": variables})
        errors = data.get("errors")
        if errors:
            raise ShopifyAPIError("POST", "graphql.json", 200, errors)
        return data.get("data") or {}

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def find_product_ids_by_sku(self, sku: str, first: int = 10) -> List[int]:
        """
        Product ids whose variants carry exactly ``sku``, ascending.

        The variant search is tokenized, so results are re-checked for an exact
        SKU match before being returned.
        """
        if not sku:
            return []
        data = self._graphql(VARIANTS_BY_SKU_QUERY, {"query": f'sku:"{sku}"', "first": first})
        edges = (data.get("productVariants") or {}).get("edges") or []
        ids = set()
        for edge in edges:
            node = edge.get("node") or {}
            if node.get("sku") != sku:
                continue
            legacy_id = (node.get("product") or {}).get("legacyResourceId")
            if legacy_id:
                ids.add(int(legacy_id))
        return sorted(ids)

    def get_product(self, product_id: int) -> CatalogProduct:
        data = self._request("GET", f"products/{product_id}.json")
        return CatalogProduct.from_api(data.get("product") or {})

    def create_product(self, payload: Dict[str, Any]) -> CatalogProduct:
        """Create a product. Expects a payload shaped for /products.json."""
        data = self._request("POST", "products.json", payload=payload)
        return CatalogProduct.from_api(data.get("product") or {})

    def update_product(self, product_id: int, fields: Dict[str, Any]) -> CatalogProduct:
        """PUT only ``fields`` (plus the id) to the product."""
        body = {"product": dict(fields, id=product_id)}
        data = self._request("PUT", f"products/{product_id}.json", payload=body)
        return CatalogProduct.from_api(data.get("product") or {})

    # ------------------------------------------------------------------
    # Metafields
    # ------------------------------------------------------------------

    def list_product_metafields(self, product_id: int) -> List[Dict[str, Any]]:
        data = self._request("GET", f"products/{product_id}/metafields.json", params={"limit": 250})
        return list(data.get("metafields") or [])

    def create_product_metafield(
        self, product_id: int, namespace: str, key: str, value: str, type_: str
    ) -> Dict[str, Any]:
        body = {"metafield": {"namespace": namespace, "key": key, "type": type_, "value": value}}
        data = self._request("POST", f"products/{product_id}/metafields.json", payload=body)
        return data.get("metafield") or {}

    def update_metafield(self, metafield_id: int, value: str) -> Dict[str, Any]:
        body = {"metafield": {"id": metafield_id, "value": value}}
        data = self._request("PUT", f"metafields/{metafield_id}.json", payload=body)
        return data.get("metafield") or {}

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def custom_collection_by_handle(self, handle: str) -> Optional[Dict[str, Any]]:
        data = self._request("GET", "custom_collections.json", params={"handle": handle})
        collections = data.get("custom_collections") or []
        return collections[0] if collections else None

    def add_product_to_collection(self, product_id: int, collection_id: int) -> Dict[str, Any]:
        body = {"collect": {"product_id": product_id, "collection_id": collection_id}}
        data = self._request("POST", "collects.json", payload=body)
        return data.get("collect") or {}
