from __future__ import annotations

import logging
from typing import Iterable, Optional

from discogs_sync.clients.discogs import DiscogsClient
from discogs_sync.errors import DiscogsAPIError
from discogs_sync.models import (
    CollectionItem,
    FolderResult,
    SyncFailure,
    SyncSummary,
)
from discogs_sync.pacing import MinIntervalGate
from discogs_sync.reconcile import ShopifyReconciler

SUMMARY_FAILURE_LIMIT = 20


class SyncRunner:
    """Walks Discogs collection folders page by page and reconciles every item."""

    def __init__(
        self,
        discogs_client: DiscogsClient,
        reconciler: ShopifyReconciler,
        page_size: int = 50,
        item_gate: Optional[MinIntervalGate] = None,
    ) -> None:
        self.discogs_client = discogs_client
        self.reconciler = reconciler
        self.page_size = page_size
        self.item_gate = item_gate or MinIntervalGate(0.5)
        self.logger = logging.getLogger(__name__)

    def sync_folder(self, folder_id: str) -> FolderResult:
        """
        Reconcile every item of one folder. A failing item is recorded and
        skipped; a failing page fetch ends this folder only.
        """
        result = FolderResult(folder_id=str(folder_id))
        page = 1
        while True:
            try:
                data = self.discogs_client.collection_folder_page(
                    folder_id, page=page, per_page=self.page_size
                )
            except DiscogsAPIError as exc:
                self.logger.error("Failed to fetch folder %s page %d: %s", folder_id, page, exc)
                result.failures.append(SyncFailure(str(folder_id), None, str(exc)))
                return result
            result.pages_fetched += 1
            self.logger.info(
                "Folder %s page %d/%s: %d items",
                folder_id,
                page,
                data.pages if data.pages is not None else "?",
                len(data.releases),
            )

            for raw in data.releases:
                result.items_seen += 1
                instance_id = raw.get("instance_id") if isinstance(raw, dict) else None
                self.item_gate.wait()
                try:
                    item = CollectionItem.from_api(raw, folder_id=str(folder_id))
                    self.reconciler.reconcile(item)
                except Exception as exc:
                    self.logger.error("Failed item instance_id=%s: %s", instance_id, exc)
                    self.logger.debug("Traceback for instance_id=%s", instance_id, exc_info=True)
                    result.failures.append(
                        SyncFailure(
                            str(folder_id),
                            str(instance_id) if instance_id is not None else None,
                            str(exc),
                        )
                    )

            if data.pages is None or page >= data.pages:
                break
            page += 1
        return result

    def run(self, folders: Iterable[str]) -> SyncSummary:
        """Sync folders sequentially and log a summary."""
        self.logger.info("Starting Discogs → Shopify sync…")
        results = []
        for folder_id in folders:
            self.logger.info("Syncing Discogs folder %s", folder_id)
            results.append(self.sync_folder(folder_id))

        summary = SyncSummary(
            folders=results,
            created_count=len(self.reconciler.created_ids),
            updated_count=len(self.reconciler.updated_ids),
        )
        self.log_summary(summary)
        return summary

    def log_summary(self, summary: SyncSummary) -> None:
        failures = summary.failures
        self.logger.info(
            "Sync complete: items=%d created=%d updated=%d failures=%d",
            summary.items_seen,
            summary.created_count,
            summary.updated_count,
            len(failures),
        )
        for failure in failures[:SUMMARY_FAILURE_LIMIT]:
            self.logger.warning("  %s", failure)
        if len(failures) > SUMMARY_FAILURE_LIMIT:
            self.logger.warning("  … and %d more", len(failures) - SUMMARY_FAILURE_LIMIT)
