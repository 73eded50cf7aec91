"""Tests for page CRUD routes."""

import inspect

from fastapi.routing import APIRoute


class TestRootEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "holarchy-pages"

    def test_health_reports_backend(self, client, storage_backend):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["storage"] == storage_backend
        assert data["subscribers"] == 0


class TestCreatePage:
    def test_create_defaults(self, client, events):
        response = client.post("/api/pages", json={})
        assert response.status_code == 201
        page = response.json()
        assert page["id"] == 1
        assert page["title"] == "Untitled"
        assert page["content"] == ""
        assert page["rev"] == 1
        assert page["deleted"] is False
        assert page["created_at"] == page["updated_at"]

        assert len(events) == 1
        assert events[0]["type"] == "page"
        assert events[0]["action"] == "created"
        assert events[0]["row"]["id"] == 1
        assert "serverTime" in events[0]

    def test_ids_increase(self, client):
        first = client.post("/api/pages", json={"title": "a"}).json()
        second = client.post("/api/pages", json={"title": "b"}).json()
        assert second["id"] > first["id"]


class TestReadPages:
    def test_get_missing_is_404(self, client):
        response = client.get("/api/pages/99")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_list_is_newest_first_without_content(self, client):
        client.post("/api/pages", json={"title": "older", "content": "x"})
        client.post("/api/pages", json={"title": "newer"})
        client.put("/api/pages/1", json={"content": "touched"})

        pages = client.get("/api/pages").json()
        assert [p["title"] for p in pages] == ["older", "newer"]
        assert "content" not in pages[0]


class TestUpdatePage:
    def test_partial_update_keeps_other_fields(self, client, events):
        created = client.post("/api/pages", json={"title": "T", "content": "body"}).json()

        response = client.put(f"/api/pages/{created['id']}", json={"title": "T2"})
        assert response.status_code == 200
        page = response.json()
        assert page["title"] == "T2"
        assert page["content"] == "body"
        assert page["rev"] == 2
        assert page["updated_at"] > created["updated_at"]
        assert events[-1]["action"] == "updated"

    def test_client_timestamp_is_kept(self, client):
        client.post("/api/pages", json={"title": "T"})
        page = client.put(
            "/api/pages/1", json={"content": "c", "updated_at": "2030-01-01T00:00:00Z"}
        ).json()
        assert page["updated_at"].startswith("2030-01-01T00:00:00")

    def test_bad_timestamp_is_400(self, client):
        client.post("/api/pages", json={"title": "T"})
        response = client.put("/api/pages/1", json={"updated_at": "yesterday-ish"})
        assert response.status_code == 400

    def test_update_missing_is_404(self, client, events):
        response = client.put("/api/pages/42", json={"title": "x"})
        assert response.status_code == 404
        assert events == []


class TestDeletePage:
    def test_delete_tombstones(self, client, events):
        client.post("/api/pages", json={"title": "gone"})

        response = client.delete("/api/pages/1")
        assert response.status_code == 204
        assert client.get("/api/pages/1").status_code == 404
        assert client.get("/api/pages").json() == []
        assert events[-1] == {
            "type": "page",
            "action": "deleted",
            "id": 1,
            "serverTime": events[-1]["serverTime"],
        }

        # The tombstone still syncs
        changes = client.get("/api/sync/changes").json()["changes"]
        assert changes[0]["deleted"] is True
        assert changes[0]["rev"] == 2

    def test_delete_missing_is_404(self, client):
        assert client.delete("/api/pages/5").status_code == 404


class TestHandlersStayOnEventLoop:
    def test_store_routes_are_coroutines(self, api_app):
        # Sync handlers would run in the threadpool and interleave store writes.
        routes = [r for r in api_app.routes if isinstance(r, APIRoute) and r.path.startswith("/api")]
        assert routes
        for route in routes:
            assert inspect.iscoroutinefunction(route.endpoint), route.path
