"""
Thin wrapper around the Discogs API with retry + basic throttling.

All Discogs traffic for the sync goes through ``DiscogsClient`` so that rate
limiting and retry behaviour live in one place.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from discogs_sync.errors import DiscogsAPIError
from discogs_sync.models import FolderPage
from discogs_sync.pacing import MinIntervalGate

logger = logging.getLogger(__name__)

DISCOGS_API_BASE = "https://api.discogs.com"
USER_AGENT = "DiscogsShopifySync/1.0"
RETRY_STATUSES = (429, 500, 502, 503, 504)


class DiscogsClient:
    """Discogs REST client for reading a user's collection folders."""

    def __init__(
        self,
        username: str,
        token: str,
        session: Optional[requests.Session] = None,
        gate: Optional[MinIntervalGate] = None,
        max_retries: int = 5,
        timeout: int = 40,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.username = username
        self.token = (token or "").strip()
        self.session = session or requests.Session()
        # Authenticated Discogs clients get 60 requests/minute.
        self.gate = gate or MinIntervalGate.per_second(1.0)
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Discogs token={self.token}"
        else:
            logger.warning("Discogs token is empty; unauthenticated requests may be rate-limited.")
        return headers

    def _retry_delay(self, resp: Optional[requests.Response], backoff: float) -> float:
        if resp is not None and resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After")
            try:
                return max(float(retry_after), backoff) if retry_after else max(backoff, 3.0)
            except ValueError:
                return max(backoff, 3.0)
        return backoff

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET ``path`` and return the parsed JSON body.

        Transport errors, 429 and 5xx are retried with exponential backoff;
        anything else that is not 2xx raises DiscogsAPIError immediately.
        """
        url = f"{DISCOGS_API_BASE}{path}"
        backoff = 1.0
        last_status: Optional[int] = None
        last_body: Any = None

        for attempt in range(1, self.max_retries + 1):
            self.gate.wait()
            resp: Optional[requests.Response] = None
            try:
                resp = self.session.get(
                    url, headers=self._headers(), params=params or {}, timeout=self.timeout
                )
            except requests.exceptions.RequestException as exc:
                logger.warning(
                    "Discogs GET failed (attempt %d/%d) %s: %s",
                    attempt,
                    self.max_retries,
                    url,
                    exc,
                )
                last_status, last_body = None, str(exc)
            else:
                if resp.status_code not in RETRY_STATUSES:
                    break
                logger.warning(
                    "Discogs HTTP %s on %s (attempt %d/%d)",
                    resp.status_code,
                    url,
                    attempt,
                    self.max_retries,
                )
                last_status, last_body = resp.status_code, resp.text

            if attempt < self.max_retries:
                self._sleep(self._retry_delay(resp, backoff))
                backoff = min(backoff * 2, 10.0)
        else:
            raise DiscogsAPIError("GET", path, last_status, last_body)

        if not resp.ok:
            raise DiscogsAPIError("GET", path, resp.status_code, resp.text)

        remaining = resp.headers.get("X-Discogs-Ratelimit-Remaining")
        try:
            if remaining is not None and int(remaining) < 5:
                logger.debug("Discogs rate limit nearly exhausted (%s left); pausing", remaining)
                self._sleep(1.0)
        except ValueError:
            pass

        try:
            return resp.json()
        except ValueError as exc:
            raise DiscogsAPIError("GET", path, resp.status_code, f"invalid JSON: {exc}") from exc

    def collection_folder_page(
        self,
        folder_id: str,
        page: int = 1,
        per_page: int = 50,
        sort: str = "added",
        sort_order: str = "desc",
    ) -> FolderPage:
        """Fetch one page of a collection folder, newest additions first."""
        path = f"/users/{self.username}/collection/folders/{folder_id}/releases"
        data = self.get(
            path,
            {
                "per_page": per_page,
                "page": page,
                "sort": sort,
                "sort_order": sort_order,
            },
        )
        if not isinstance(data, dict):
            raise DiscogsAPIError("GET", path, 200, f"expected a JSON object, got {type(data).__name__}")
        pagination = data.get("pagination") or {}
        releases = data.get("releases") or []
        if not isinstance(pagination, dict) or not isinstance(releases, list):
            raise DiscogsAPIError("GET", path, 200, "malformed pagination or releases block")
        try:
            pages = pagination.get("pages")
            return FolderPage(
                releases=releases,
                page=int(pagination.get("page") or page),
                pages=int(pages) if pages is not None else None,
                items=pagination.get("items"),
            )
        except (TypeError, ValueError) as exc:
            raise DiscogsAPIError("GET", path, 200, f"malformed pagination: {pagination}") from exc
