"""Tests for last-write-wins batch merging and incremental pulls."""

import pytest

from holarchy.storage import StorageError
from holarchy.sync import MalformedPayloadError, SyncReconciler, coerce_item

T1 = "2024-01-01T00:00:00Z"
T2 = "2024-01-02T00:00:00Z"
T3 = "2024-01-03T00:00:00Z"


def _item(page_id, updated_at, **fields):
    item = {"id": page_id, "updated_at": updated_at}
    item.update(fields)
    return item


class TestMergeBatch:
    def test_insert_honours_client_id(self, reconciler, page_store):
        result = reconciler.merge_batch([_item(5, T1, title="A")])

        assert (result.applied, result.skipped) == (1, 0)
        page = page_store.read(5)
        assert page.title == "A"
        assert page.rev == 1
        assert page.updated_at == "2024-01-01T00:00:00.000000+00:00"
        assert page.created_at == page.updated_at

    def test_insert_without_id_gets_next_id(self, reconciler, page_store):
        page_store.create()
        reconciler.merge_batch([{"title": "offline", "updated_at": T1}])
        assert [p.title for p in page_store.export_rows()] == ["Untitled", "offline"]

    def test_newer_overwrites(self, reconciler, page_store):
        reconciler.merge_batch([_item(7, T1, title="old", content="x")])
        result = reconciler.merge_batch([_item(7, T2, title="new", rev=4)])
        assert result.applied == 1
        page = page_store.read(7)
        assert page.title == "new"
        assert page.content == "x"
        assert page.rev == 4

    def test_older_and_equal_are_skipped(self, reconciler, page_store):
        reconciler.merge_batch([_item(7, T2, title="new")])
        result = reconciler.merge_batch([_item(7, T1, title="old"), _item(7, T2, title="same")])
        assert (result.applied, result.skipped) == (0, 2)
        assert page_store.read(7).title == "new"

    def test_arrival_order_does_not_matter(self, tmp_path, clock):
        from holarchy.storage import SQLitePageStore

        older, newer = _item(7, T1, title="old"), _item(7, T2, title="new")
        forward = SyncReconciler(SQLitePageStore(tmp_path / "a.db"), now_fn=clock)
        backward = SyncReconciler(SQLitePageStore(tmp_path / "b.db"), now_fn=clock)
        forward.merge_batch([older])
        forward.merge_batch([newer])
        backward.merge_batch([newer])
        backward.merge_batch([older])
        assert forward.store.read(7).title == backward.store.read(7).title == "new"

    @pytest.mark.parametrize("newer_first", [False, True])
    def test_two_item_batch_converges(self, reconciler, page_store, newer_first):
        batch = [_item(7, T1, title="old"), _item(7, T2, title="new")]
        if newer_first:
            batch.reverse()
        reconciler.merge_batch(batch)
        page = page_store.read(7)
        assert page.title == "new"
        assert page.updated_at == "2024-01-02T00:00:00.000000+00:00"

    def test_missing_rev_increments(self, reconciler, page_store):
        reconciler.merge_batch([_item(1, T1, title="a", rev=3)])
        reconciler.merge_batch([_item(1, T2, content="b")])
        assert page_store.read(1).rev == 4

    def test_idempotent(self, reconciler, page_store):
        batch = [_item(1, T1, title="a"), _item(2, T2, title="b", deleted=True)]
        reconciler.merge_batch(batch)
        snapshot = [p.to_dict() for p in page_store.export_rows()]
        result = reconciler.merge_batch(batch)
        assert result.applied == 0
        assert [p.to_dict() for p in page_store.export_rows()] == snapshot

    def test_tombstone_via_sync(self, reconciler, page_store):
        reconciler.merge_batch([_item(3, T1, title="x")])
        reconciler.merge_batch([{"id": 3, "deleted": 1, "updated_at": T2}])
        assert page_store.read(3) is None
        assert page_store.read(3, include_deleted=True).title == "x"

    def test_unstamped_item_uses_server_time(self, reconciler, page_store):
        reconciler.merge_batch([{"id": 4, "title": "now"}])
        assert page_store.read(4).updated_at.startswith("2024-01-01T00:00:01")

    def test_later_item_in_batch_sees_earlier(self, reconciler, page_store):
        result = reconciler.merge_batch([_item(8, T2, title="first"), _item(8, T1, title="stale")])
        assert (result.applied, result.skipped) == (1, 1)
        assert page_store.read(8).title == "first"


class TestMalformedBatches:
    @pytest.mark.parametrize(
        "payload",
        [
            "not a list",
            {"id": 1},
            [_item(1, T1), "oops"],
            [_item(1, T1), _item(2, "garbage")],
            [_item(1, T1, title=5)],
            [_item(1, T1, rev="many")],
        ],
    )
    def test_rejected_without_writes(self, reconciler, page_store, payload):
        with pytest.raises(MalformedPayloadError):
            reconciler.merge_batch(payload)
        assert page_store.export_rows() == []

    def test_storage_failure_rolls_back(self, reconciler, page_store, monkeypatch):
        reconciler.merge_batch([_item(1, T1, title="kept")])
        real_put = page_store.put
        calls = []

        def flaky_put(page):
            calls.append(page)
            if len(calls) == 2:
                raise StorageError("disk full")
            return real_put(page)

        monkeypatch.setattr(page_store, "put", flaky_put)
        with pytest.raises(StorageError):
            reconciler.merge_batch([_item(1, T2, title="changed"), _item(2, T2, title="new")])

        monkeypatch.undo()
        assert [p.title for p in page_store.export_rows()] == ["kept"]


class TestCoerceItem:
    def test_ids(self):
        assert coerce_item({"id": "12"}).id == 12
        assert coerce_item({"id": 0}).id is None
        assert coerce_item({"id": "temp-3"}).id is None
        assert coerce_item({"id": True}).id is None

    def test_flags(self):
        assert coerce_item({"deleted": 1}).deleted is True
        assert coerce_item({"deleted": "false"}).deleted is False
        assert coerce_item({}).deleted is None


class TestChangesSince:
    def test_subset_after_mark(self, reconciler):
        reconciler.merge_batch([_item(1, T1), _item(2, T3), _item(3, T2)])
        result = reconciler.changes_since("2024-01-01T12:00:00Z")
        assert [c["id"] for c in result["changes"]] == [3, 2]
        assert result["serverTime"]

    def test_everything_without_mark(self, reconciler):
        reconciler.merge_batch([_item(1, T1), _item(2, T2, deleted=True)])
        result = reconciler.changes_since(None)
        assert [c["id"] for c in result["changes"]] == [1, 2]
        assert result["changes"][1]["deleted"] is True

    def test_bad_mark(self, reconciler):
        with pytest.raises(MalformedPayloadError):
            reconciler.changes_since("last tuesday")


class TestExportImport:
    def test_export_shape(self, reconciler, page_store):
        page_store.create(title="a")
        data = reconciler.export()
        assert data["exportedAt"]
        assert data["rows"][0]["title"] == "a"

    def test_import_ignores_timestamps(self, reconciler, page_store):
        reconciler.merge_batch([_item(1, T3, title="newer")])
        count = reconciler.import_rows([_item(1, T1, title="restored")])
        assert count == 1
        assert page_store.read(1).title == "restored"

    def test_replace_clears_first(self, reconciler, page_store):
        page_store.create(title="a")
        page_store.create(title="b")
        reconciler.import_rows([_item(9, T1, title="only")], replace=True)
        assert [p.id for p in page_store.export_rows()] == [9]

    def test_malformed_import_keeps_store(self, reconciler, page_store):
        page_store.create(title="a")
        with pytest.raises(MalformedPayloadError):
            reconciler.import_rows([{"title": ["x"]}], replace=True)
        assert len(page_store.export_rows()) == 1
