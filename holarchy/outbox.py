"""Client-side outbox and sync loop for holarchy pages.

Every local create/update/delete is sent to the server and also queued in
a JSON outbox. ``flush`` pushes the whole outbox to the sync endpoint and
drops the pushed entries only once the server confirms; ``pull`` fetches
changes since the last server time it saw. Network failures are logged and
leave the outbox for the next round. There is no backoff and no poison
detection: a bad entry is retried on every flush.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx

from holarchy.storage import StorageError
from holarchy.storage.flat_files import write_json_atomic
from holarchy.types import utc_now

logger = logging.getLogger(__name__)

SYNC_INTERVAL_SECONDS = 10.0
DEFAULT_TIMEOUT = 10.0


class Outbox:
    """Pending changes awaiting server acknowledgment, kept in a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> List[Dict[str, Any]]:
        try:
            with open(self.path, encoding="utf-8") as f:
                items = json.load(f)
        except FileNotFoundError:
            return []
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Unreadable outbox {self.path} ({e}), treating as empty")
            return []
        return items if isinstance(items, list) else []

    def _write(self, items: List[Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(self.path, items)
        except OSError as e:
            raise StorageError(f"Cannot write outbox {self.path}: {e}") from e

    def append(self, item: Dict[str, Any]) -> None:
        items = self.read()
        items.append(item)
        self._write(items)

    def drop(self, count: int) -> None:
        """Remove the oldest ``count`` entries (the ones just pushed)."""
        self._write(self.read()[count:])

    def clear(self) -> None:
        self._write([])

    def __len__(self) -> int:
        return len(self.read())


class SyncClient:
    """Talks to the pages API and keeps the outbox in step.

    Args:
        base_url: Server root, e.g. ``http://localhost:3000``.
        outbox: Pending change queue.
        state_path: JSON file remembering the last server time pulled.
        client: Optional preconfigured httpx.Client (tests pass a mock transport).
        now_fn: Timestamp source for local edits.
    """

    def __init__(
        self,
        base_url: str,
        outbox: Outbox,
        state_path: Path,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        now_fn: Callable[[], str] = utc_now,
    ):
        self.outbox = outbox
        self.state_path = Path(state_path)
        self._now = now_fn
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "SyncClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # === Sync state ===

    @property
    def last_sync(self) -> Optional[str]:
        try:
            with open(self.state_path, encoding="utf-8") as f:
                return json.load(f).get("last_sync")
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError, AttributeError) as e:
            logger.warning(f"Unreadable sync state {self.state_path} ({e}), pulling everything")
            return None

    def _set_last_sync(self, value: str) -> None:
        try:
            self.state_path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(self.state_path, {"last_sync": value})
        except OSError as e:
            raise StorageError(f"Cannot write sync state {self.state_path}: {e}") from e

    # === Local edits ===

    def create_page(self, title: str = "New Page", content: str = "") -> Dict[str, Any]:
        """Create a page on the server and queue it. Offline, queue it without an id."""
        stamp = self._now()
        try:
            response = self._client.post(
                "/api/pages", json={"title": title, "content": content, "updated_at": stamp}
            )
            response.raise_for_status()
            page = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Create failed, queued for sync: {e}")
            page = {"id": None, "title": title, "content": content, "rev": 1}

        self.outbox.append(
            {
                "id": page.get("id"),
                "title": page.get("title", title),
                "content": page.get("content", content),
                "rev": page.get("rev") or 1,
                "deleted": 0,
                "updated_at": page.get("updated_at") or stamp,
            }
        )
        return page

    def update_page(
        self, page_id: int, title: Optional[str] = None, content: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Update a page and queue the edit. Returns None if the server has no such page."""
        stamp = self._now()
        payload: Dict[str, Any] = {"updated_at": stamp}
        if title is not None:
            payload["title"] = title
        if content is not None:
            payload["content"] = content

        page: Optional[Dict[str, Any]] = None
        try:
            response = self._client.put(f"/api/pages/{page_id}", json=payload)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            page = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Update of page {page_id} failed, queued for sync: {e}")

        self.outbox.append(
            {
                "id": page_id,
                "title": title,
                "content": content,
                "rev": None,
                "deleted": 0,
                "updated_at": stamp,
            }
        )
        return page if page is not None else dict(payload, id=page_id)

    def delete_page(self, page_id: int) -> bool:
        """Soft-delete a page and queue the tombstone."""
        try:
            response = self._client.delete(f"/api/pages/{page_id}")
            if response.status_code == 404:
                return False
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Delete of page {page_id} failed, queued for sync: {e}")

        self.outbox.append({"id": page_id, "deleted": 1, "updated_at": self._now()})
        return True

    # === Sync ===

    def flush(self) -> bool:
        """Push the outbox. Entries are dropped only after a 2xx response."""
        items = self.outbox.read()
        if not items:
            return True
        try:
            response = self._client.post("/api/sync/changes", json=items)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Sync push failed, keeping {len(items)} queued changes: {e}")
            return False
        self.outbox.drop(len(items))
        logger.info(f"Pushed {len(items)} queued changes")
        return True

    def pull(self) -> Optional[List[Dict[str, Any]]]:
        """Fetch changes since the last server time. None on failure."""
        since = self.last_sync
        params = {"since": since} if since else None
        try:
            response = self._client.get("/api/sync/changes", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Sync pull failed: {e}")
            return None
        self._set_last_sync(data.get("serverTime") or self._now())
        changes = data.get("changes", [])
        logger.debug(f"Pulled {len(changes)} changes since {since}")
        return changes

    def sync_once(self) -> Dict[str, Any]:
        """Flush, then pull regardless of the flush outcome."""
        pushed = self.flush()
        changes = self.pull()
        return {
            "pushed": pushed,
            "pending": len(self.outbox),
            "pulled": None if changes is None else len(changes),
            "last_sync": self.last_sync,
        }

    def run(
        self,
        interval: float = SYNC_INTERVAL_SECONDS,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        """Sync every ``interval`` seconds until ``stop_event`` is set."""
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            self.sync_once()
            stop_event.wait(interval)
