"""Tests for the sync pull/push routes."""

import logging


def _item(page_id, updated_at, **fields):
    item = {"id": page_id, "updated_at": updated_at}
    item.update(fields)
    return item


class TestPull:
    def test_empty_store(self, client):
        response = client.get("/api/sync/changes")
        assert response.status_code == 200
        data = response.json()
        assert data["changes"] == []
        assert data["serverTime"]

    def test_since_filters_and_orders(self, client):
        client.post(
            "/api/sync/changes",
            json=[
                _item(1, "2024-01-01T00:00:00Z", title="a"),
                _item(2, "2024-03-01T00:00:00Z", title="b"),
                _item(3, "2024-02-01T00:00:00Z", title="c"),
            ],
        )
        data = client.get(
            "/api/sync/changes", params={"since": "2024-01-15T00:00:00Z"}
        ).json()
        assert [c["id"] for c in data["changes"]] == [3, 2]

    def test_bad_since_is_400(self, client):
        response = client.get("/api/sync/changes", params={"since": "not-a-time"})
        assert response.status_code == 400
        assert "error" in response.json()


class TestPush:
    def test_insert_with_client_id(self, client, events):
        response = client.post(
            "/api/sync/changes",
            json={"changes": [_item(5, "2024-01-01T00:00:00Z", title="A")]},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["serverTime"]
        assert events == [{"type": "sync", "serverTime": body["serverTime"]}]

        page = client.get("/api/pages/5").json()
        assert page["title"] == "A"
        assert page["rev"] == 1

    def test_older_write_loses(self, client):
        client.post("/api/sync/changes", json=[_item(7, "2024-01-02T00:00:00Z", title="new")])
        client.post("/api/sync/changes", json=[_item(7, "2024-01-01T00:00:00Z", title="old")])
        assert client.get("/api/pages/7").json()["title"] == "new"

    def test_newer_write_wins(self, client):
        client.post("/api/sync/changes", json=[_item(7, "2024-01-01T00:00:00Z", title="old")])
        client.post("/api/sync/changes", json=[_item(7, "2024-01-02T00:00:00Z", title="new")])
        assert client.get("/api/pages/7").json()["title"] == "new"

    def test_push_is_idempotent(self, client):
        batch = [_item(1, "2024-01-01T00:00:00Z", title="x", rev=3)]
        client.post("/api/sync/changes", json=batch)
        first = client.get("/api/sync/changes").json()["changes"]
        client.post("/api/sync/changes", json=batch)
        second = client.get("/api/sync/changes").json()["changes"]
        assert first == second

    def test_push_logs_batch_summary(self, client, caplog):
        caplog.set_level(logging.INFO, logger="holarchy.sync")
        client.post("/api/sync/changes", json=[_item(7, "2024-01-02T00:00:00Z", title="new")])
        client.post(
            "/api/sync/changes",
            json=[_item(7, "2024-01-01T00:00:00Z"), _item(8, "2024-01-01T00:00:00Z")],
        )
        lines = [r.getMessage() for r in caplog.records if r.name == "holarchy.sync"]
        assert "PUSH | items=2 | applied=1 | skipped=1" in lines

    def test_non_list_is_400(self, client, events):
        response = client.post("/api/sync/changes", json="nope")
        assert response.status_code == 400
        assert response.json()["error"] == "Malformed sync payload"
        assert events == []

    def test_invalid_json_is_400(self, client):
        response = client.post(
            "/api/sync/changes",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_malformed_item_rejects_whole_batch(self, client):
        response = client.post(
            "/api/sync/changes",
            json=[
                _item(1, "2024-01-01T00:00:00Z", title="ok"),
                _item(2, "garbage-time", title="bad"),
            ],
        )
        assert response.status_code == 400
        assert client.get("/api/sync/changes").json()["changes"] == []
