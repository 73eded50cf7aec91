"""Flat file page store for holarchy.

Fallback used when SQLite cannot be opened. The whole table lives in one
human-readable JSON document::

    {"nextId": 3, "pages": [{...}, {...}]}

Every write rewrites the file through a temp file and an atomic rename,
so a failed write leaves the previous contents in place.
"""

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from holarchy.types import advance_timestamp, normalize_timestamp, parse_datetime, utc_now

from .base import DEFAULT_TITLE, Page, PageStore, StorageError

logger = logging.getLogger(__name__)


def _empty_db() -> Dict[str, Any]:
    return {"nextId": 1, "pages": []}


def _page_from_json(raw: Dict[str, Any]) -> Page:
    return Page(
        id=int(raw["id"]),
        title=raw.get("title", DEFAULT_TITLE),
        content=raw.get("content") or "",
        rev=int(raw.get("rev") or 1),
        deleted=bool(raw.get("deleted")),
        created_at=raw.get("created_at"),
        updated_at=raw.get("updated_at"),
    )


def _page_to_json(page: Page) -> Dict[str, Any]:
    data = page.to_dict()
    data["deleted"] = int(page.deleted)
    return data


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON next to ``path`` and rename it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


class JsonPageStore(PageStore):
    """Page store backed by a JSON file.

    Args:
        json_path: The JSON document; created on first use.
        now_fn: Timestamp source, injectable for tests.
    """

    def __init__(self, json_path: Path, now_fn: Callable[[], str] = utc_now):
        super().__init__(now_fn)
        self.json_path = Path(json_path)
        self._batch_db: Optional[Dict[str, Any]] = None

        try:
            self.json_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.json_path.parent}: {e}") from e
        if not self.json_path.exists():
            self._save(_empty_db())

    @property
    def backend(self) -> str:
        return "json"

    # === File access ===

    def _load(self) -> Dict[str, Any]:
        if self._batch_db is not None:
            return self._batch_db
        try:
            with open(self.json_path, encoding="utf-8") as f:
                db = json.load(f)
        except FileNotFoundError:
            return _empty_db()
        except json.JSONDecodeError as e:
            # Unreadable contents are replaced, matching a fresh install.
            logger.warning(f"Corrupt page file {self.json_path} ({e}), resetting")
            db = _empty_db()
            self._save(db)
            return db
        except OSError as e:
            raise StorageError(f"Cannot read {self.json_path}: {e}") from e
        db.setdefault("nextId", 1)
        db.setdefault("pages", [])
        return db

    def _save(self, db: Dict[str, Any]) -> None:
        if self._batch_db is not None:
            return
        try:
            write_json_atomic(self.json_path, db)
        except OSError as e:
            raise StorageError(f"Cannot write {self.json_path}: {e}") from e

    @contextlib.contextmanager
    def batch(self) -> Iterator["JsonPageStore"]:
        """Apply writes to an in-memory copy and save it once at the end."""
        if self._batch_db is not None:
            yield self
            return

        db = self._load()
        self._batch_db = db
        try:
            yield self
        finally:
            self._batch_db = None
        # Only reached when the body succeeded; a failed batch is dropped unsaved.
        self._save(db)

    @staticmethod
    def _find(db: Dict[str, Any], page_id: int) -> Optional[Dict[str, Any]]:
        for raw in db["pages"]:
            if int(raw["id"]) == page_id:
                return raw
        return None

    # === Contract ===

    def create(self, title: Optional[str] = None, content: Optional[str] = None) -> Page:
        now = self._now()
        db = self._load()
        page = Page(
            id=int(db["nextId"]),
            title=title or DEFAULT_TITLE,
            content=content or "",
            rev=1,
            deleted=False,
            created_at=now,
            updated_at=now,
        )
        db["nextId"] = page.id + 1
        db["pages"].append(_page_to_json(page))
        self._save(db)
        return page

    def read(self, page_id: int, include_deleted: bool = False) -> Optional[Page]:
        raw = self._find(self._load(), page_id)
        if raw is None:
            return None
        page = _page_from_json(raw)
        if page.deleted and not include_deleted:
            return None
        return page

    def update(
        self,
        page_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        updated_at: Optional[str] = None,
    ) -> Optional[Page]:
        db = self._load()
        raw = self._find(db, page_id)
        if raw is None:
            return None
        if title is not None:
            raw["title"] = title
        if content is not None:
            raw["content"] = content
        raw["rev"] = int(raw.get("rev") or 1) + 1
        raw["updated_at"] = normalize_timestamp(updated_at) or advance_timestamp(
            self._now(), raw.get("updated_at")
        )
        self._save(db)
        return _page_from_json(raw)

    def soft_delete(self, page_id: int) -> bool:
        db = self._load()
        raw = self._find(db, page_id)
        if raw is None:
            return False
        raw["deleted"] = 1
        raw["rev"] = int(raw.get("rev") or 1) + 1
        raw["updated_at"] = advance_timestamp(self._now(), raw.get("updated_at"))
        self._save(db)
        return True

    def changes_since(self, since: Optional[str] = None) -> List[Page]:
        pages = sorted(
            (_page_from_json(r) for r in self._load()["pages"]),
            key=lambda p: (parse_datetime(p.updated_at), p.id),
        )
        if since:
            cutoff = parse_datetime(since)
            pages = [p for p in pages if parse_datetime(p.updated_at) > cutoff]
        return pages

    def list_pages(self) -> List[Page]:
        pages = [_page_from_json(r) for r in self._load()["pages"] if not r.get("deleted")]
        return sorted(pages, key=lambda p: (parse_datetime(p.updated_at), p.id), reverse=True)

    def export_rows(self) -> List[Page]:
        return sorted((_page_from_json(r) for r in self._load()["pages"]), key=lambda p: p.id)

    def put(self, page: Page) -> Page:
        db = self._load()
        if page.id is None:
            page = page.copy(id=int(db["nextId"]))
        raw = self._find(db, page.id)
        if raw is None:
            db["pages"].append(_page_to_json(page))
        else:
            # created_at survives an overwrite, as in the SQLite upsert.
            created_at = raw.get("created_at")
            raw.update(_page_to_json(page))
            raw["created_at"] = created_at
        if page.id >= int(db["nextId"]):
            db["nextId"] = page.id + 1
        self._save(db)
        return _page_from_json(self._find(db, page.id))

    def clear(self) -> None:
        db = self._load()
        db["pages"] = []
        db["nextId"] = 1
        self._save(db)
