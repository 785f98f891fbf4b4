"""
Runtime configuration for the Discogs → Shopify sync.

Everything is read from the environment once at startup into a frozen
``SyncConfig`` which is then passed explicitly to the clients, the reconciler
and the runner. ``load_env_files`` pulls in ``.env.local`` / ``.env`` without
overriding variables that are already set, so CI and production env wins.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from discogs_sync.errors import ConfigError

REQUIRED_ENVS = [
    "DISCOGS_USERNAME",
    "DISCOGS_TOKEN",
    "SHOPIFY_STORE_DOMAIN",
    "SHOPIFY_ADMIN_TOKEN",
]
PRODUCT_STATUSES = ("draft", "active")
DEFAULT_API_VERSION = "2025-01"
DEFAULT_LOG_DIR = "~/.discogs_shopify_sync/logs"

_TRUTHY = ("1", "true", "yes", "y", "on")
_FALSY = ("", "0", "false", "no", "n", "off")


@dataclass(frozen=True)
class SyncConfig:
    discogs_username: str
    discogs_token: str
    shopify_domain: str
    shopify_token: str
    shopify_api_version: str = DEFAULT_API_VERSION
    folders: Tuple[str, ...] = ("0",)
    page_size: int = 50
    default_status: str = "active"
    collection_handle: Optional[str] = None
    item_delay: float = 0.5
    metafield_delay: float = 0.2
    fail_on_errors: bool = False
    log_dir: str = field(default=DEFAULT_LOG_DIR)


def load_env_files(extra: Optional[str] = None) -> None:
    """Load dotenv files. Order: explicit file, .env.local, then .env."""
    if extra:
        load_dotenv(extra, override=False)
    load_dotenv(".env.local", override=False)
    load_dotenv(find_dotenv(filename=".env", usecwd=True), override=False)


def _parse_folders(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_config(environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """
    Build a SyncConfig from ``environ`` (defaults to ``os.environ``).

    Raises ConfigError listing every missing or malformed variable.
    """
    env = os.environ if environ is None else environ

    def get(name: str, default: str = "") -> str:
        return (env.get(name) or default).strip()

    problems: List[str] = []
    missing = [name for name in REQUIRED_ENVS if not get(name)]
    if missing:
        problems.append("missing required environment variables: " + ", ".join(missing))

    folders = _parse_folders(get("SYNC_FOLDERS", "0"))
    if not folders:
        problems.append("SYNC_FOLDERS must list at least one folder id")

    page_size = 50
    try:
        page_size = int(get("SYNC_PAGE_SIZE", "50"))
        if not 1 <= page_size <= 100:
            problems.append(f"SYNC_PAGE_SIZE must be between 1 and 100, got {page_size}")
    except ValueError:
        problems.append(f"SYNC_PAGE_SIZE is not an integer: {get('SYNC_PAGE_SIZE')!r}")

    status = get("DEFAULT_PRODUCT_STATUS", "active").lower()
    if status not in PRODUCT_STATUSES:
        problems.append(
            f"DEFAULT_PRODUCT_STATUS must be one of {', '.join(PRODUCT_STATUSES)}, got {status!r}"
        )

    delays = {}
    for name, default in (("SYNC_ITEM_DELAY", "0.5"), ("SYNC_METAFIELD_DELAY", "0.2")):
        try:
            delays[name] = float(get(name, default))
            if delays[name] < 0:
                problems.append(f"{name} must not be negative")
        except ValueError:
            problems.append(f"{name} is not a number: {get(name)!r}")

    fail_raw = get("SYNC_FAIL_ON_ERRORS").lower()
    if fail_raw not in _TRUTHY + _FALSY:
        problems.append(f"SYNC_FAIL_ON_ERRORS is not a boolean: {fail_raw!r}")

    if problems:
        raise ConfigError(problems)

    domain = get("SHOPIFY_STORE_DOMAIN")
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]

    return SyncConfig(
        discogs_username=get("DISCOGS_USERNAME"),
        discogs_token=get("DISCOGS_TOKEN"),
        shopify_domain=domain.rstrip("/"),
        shopify_token=get("SHOPIFY_ADMIN_TOKEN"),
        shopify_api_version=get("SHOPIFY_API_VERSION", DEFAULT_API_VERSION),
        folders=folders,
        page_size=page_size,
        default_status=status,
        collection_handle=get("COLLECTION_HANDLE") or None,
        item_delay=delays["SYNC_ITEM_DELAY"],
        metafield_delay=delays["SYNC_METAFIELD_DELAY"],
        fail_on_errors=fail_raw in _TRUTHY,
        log_dir=os.path.expanduser(get("SYNC_LOG_DIR", DEFAULT_LOG_DIR)),
    )
