from __future__ import annotations

from typing import Any, Iterable, List, Optional


class SyncError(Exception):
    """Base class for errors raised by the sync pipeline."""


class ConfigError(SyncError):
    """Required configuration is missing or invalid."""

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems: List[str] = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class APIError(SyncError):
    """Non-2xx response (or exhausted retries) from an external HTTP API."""

    service = "API"

    def __init__(
        self,
        method: str,
        path: str,
        status: Optional[int],
        body: Any = None,
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.status = status
        self.body = body
        super().__init__(
            f"{self.service} {self.method} {path} -> {status if status is not None else 'no response'}: {body}"
        )


class DiscogsAPIError(APIError):
    service = "Discogs"


class ShopifyAPIError(APIError):
    service = "Shopify"


class ShopifyValidationError(ShopifyAPIError):
    """
    422 response whose ``errors`` object is keyed by field name, e.g.
    ``{"errors": {"handle": ["has already been taken"]}}``.
    """

    def __init__(self, method: str, path: str, status: Optional[int], body: Any = None) -> None:
        super().__init__(method, path, status, body)
        errors = body.get("errors") if isinstance(body, dict) else None
        self.fields: List[str] = sorted(errors) if isinstance(errors, dict) else []

    def conflicts_on(self, field: str) -> bool:
        return field in self.fields
