from unittest.mock import MagicMock

import pytest

from discogs_sync.clients.discogs import DiscogsClient
from discogs_sync.errors import DiscogsAPIError, ShopifyAPIError
from discogs_sync.models import FolderPage
from discogs_sync.pacing import no_wait
from discogs_sync.processing import SyncRunner


def _release(instance_id, title="Record"):
    return {"instance_id": instance_id, "basic_information": {"title": title}}


def _pages(folder_pages):
    """Discogs client mock serving {folder: [[releases page 1], [page 2], ...]}."""
    client = MagicMock()

    def page_for(folder_id, page=1, per_page=50):
        pages = folder_pages[folder_id]
        return FolderPage(releases=pages[page - 1], page=page, pages=len(pages))

    client.collection_folder_page.side_effect = page_for
    return client


def _runner(discogs, reconciler=None, item_gate=None):
    if reconciler is None:
        reconciler = MagicMock()
        reconciler.created_ids = []
        reconciler.updated_ids = []
    return SyncRunner(discogs, reconciler, page_size=2, item_gate=item_gate or no_wait())


def test_pagination_stops_at_last_page():
    discogs = _pages({"0": [[_release(1), _release(2)], [_release(3), _release(4)], [_release(5)]]})
    runner = _runner(discogs)

    result = runner.sync_folder("0")

    assert discogs.collection_folder_page.call_count == 3
    assert [c.kwargs["page"] for c in discogs.collection_folder_page.call_args_list] == [1, 2, 3]
    assert all(c.kwargs["per_page"] == 2 for c in discogs.collection_folder_page.call_args_list)
    assert result.items_seen == 5
    assert result.pages_fetched == 3
    assert runner.reconciler.reconcile.call_count == 5


def test_empty_folder_fetches_one_page():
    discogs = MagicMock()
    discogs.collection_folder_page.return_value = FolderPage(releases=[], page=1, pages=0)

    result = _runner(discogs).sync_folder("0")

    assert discogs.collection_folder_page.call_count == 1
    assert result.items_seen == 0


def test_missing_pagination_stops_after_current_page():
    discogs = MagicMock()
    discogs.collection_folder_page.return_value = FolderPage(releases=[_release(1)], page=1, pages=None)

    _runner(discogs).sync_folder("0")

    assert discogs.collection_folder_page.call_count == 1


def test_item_failure_does_not_stop_the_run():
    discogs = _pages({"0": [[_release(1), _release(2)], [_release(3)]]})
    reconciler = MagicMock()
    reconciler.created_ids = []
    reconciler.updated_ids = []

    def reconcile(item):
        if item.instance_id == "2":
            raise ShopifyAPIError("POST", "products.json", 500, "boom")

    reconciler.reconcile.side_effect = reconcile

    result = _runner(discogs, reconciler).sync_folder("0")

    assert reconciler.reconcile.call_count == 3
    assert len(result.failures) == 1
    assert result.failures[0].instance_id == "2"
    assert "products.json -> 500" in result.failures[0].message


def test_malformed_item_is_recorded():
    discogs = _pages({"0": [[{"basic_information": {"title": "No id"}}, _release(2)]]})
    runner = _runner(discogs)

    result = runner.sync_folder("0")

    assert len(result.failures) == 1
    assert result.failures[0].instance_id is None
    assert runner.reconciler.reconcile.call_count == 1


def test_page_fetch_failure_moves_on_to_next_folder():
    discogs = MagicMock()

    def page_for(folder_id, page=1, per_page=50):
        if folder_id == "1":
            raise DiscogsAPIError("GET", "/users/me/collection/folders/1/releases", 404, "nope")
        return FolderPage(releases=[_release(9)], page=1, pages=1)

    discogs.collection_folder_page.side_effect = page_for
    runner = _runner(discogs)

    summary = runner.run(["1", "2"])

    assert [f.folder_id for f in summary.folders] == ["1", "2"]
    assert summary.folders[0].failures[0].instance_id is None
    assert summary.folders[1].items_seen == 1
    assert runner.reconciler.reconcile.call_count == 1


def test_items_are_paced():
    gate = MagicMock()
    discogs = _pages({"0": [[_release(1), _release(2)], [_release(3)]]})

    _runner(discogs, item_gate=gate).sync_folder("0")

    assert gate.wait.call_count == 3


def test_run_reports_summary(caplog):
    releases = [_release(i) for i in range(1, 26)]
    discogs = _pages({"0": [releases]})
    reconciler = MagicMock()
    reconciler.created_ids = [1, 2]
    reconciler.updated_ids = [3]
    reconciler.reconcile.side_effect = RuntimeError("nope")
    runner = _runner(discogs, reconciler)

    with caplog.at_level("INFO"):
        summary = runner.run(["0"])

    assert summary.items_seen == 25
    assert len(summary.failures) == 25
    assert summary.created_count == 2
    assert summary.updated_count == 1
    assert "failures=25" in caplog.text
    assert "and 5 more" in caplog.text
    listed = [r for r in caplog.records if r.getMessage().startswith("  folder=")]
    assert len(listed) == 20


@pytest.mark.parametrize("folders", [["0"], ["0", "1"]])
def test_folders_run_in_order(folders):
    discogs = _pages({f: [[_release(int(f) + 100)]] for f in folders})

    summary = _runner(discogs).run(folders)

    assert [f.folder_id for f in summary.folders] == folders
    called = [c.args[0] for c in discogs.collection_folder_page.call_args_list]
    assert called == folders


def test_malformed_page_body_ends_only_that_folder(make_response):
    session = MagicMock()

    def get(url, headers=None, params=None, timeout=None):
        if "/folders/1/" in url:
            return make_response(200, [{"instance_id": 1}])
        return make_response(200, {"pagination": {"page": 1, "pages": 1}, "releases": [_release(9)]})

    session.get.side_effect = get
    discogs = DiscogsClient("collector", "dtoken", session=session, gate=no_wait())
    runner = _runner(discogs)

    summary = runner.run(["1", "2"])

    assert summary.folders[0].failures[0].instance_id is None
    assert "expected a JSON object" in summary.folders[0].failures[0].message
    assert summary.folders[1].items_seen == 1
    assert runner.reconciler.reconcile.call_count == 1
