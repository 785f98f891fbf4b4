#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
discogs_shopify_sync.py

Command-line entry point: syncs the configured Discogs collection folders
into Shopify products. All settings come from the environment (optionally
via .env / .env.local); see discogs_sync/config.py.
"""

import argparse
import logging
import sys
from typing import List, Optional

from discogs_sync.clients.discogs import DiscogsClient
from discogs_sync.clients.shopify import ShopifyClient
from discogs_sync.config import SyncConfig, load_config, load_env_files
from discogs_sync.errors import ConfigError
from discogs_sync.pacing import MinIntervalGate
from discogs_sync.processing import SyncRunner
from discogs_sync.reconcile import ShopifyReconciler
from sync_logging import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync a Discogs collection into Shopify products."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Extra dotenv file to load before .env.local/.env",
    )
    return parser.parse_args(argv)


def build_runner(config: SyncConfig) -> SyncRunner:
    discogs = DiscogsClient(username=config.discogs_username, token=config.discogs_token)
    shopify = ShopifyClient(
        store_domain=config.shopify_domain,
        access_token=config.shopify_token,
        api_version=config.shopify_api_version,
    )
    reconciler = ShopifyReconciler(
        client=shopify,
        default_status=config.default_status,
        collection_handle=config.collection_handle,
        metafield_gate=MinIntervalGate(config.metafield_delay),
    )
    return SyncRunner(
        discogs_client=discogs,
        reconciler=reconciler,
        page_size=config.page_size,
        item_gate=MinIntervalGate(config.item_delay),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    load_env_files(args.env_file)

    try:
        config = load_config()
    except ConfigError as e:
        # setup_logging needs the config; report with a bare console handler
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
        logger.error("%s. Please check .env.", e)
        return 1

    setup_logging(level=getattr(logging, args.log_level), log_root=config.log_dir)
    summary = build_runner(config).run(config.folders)

    if config.fail_on_errors and summary.failures:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
