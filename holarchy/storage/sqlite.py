"""SQLite page store for holarchy.

Local-first storage of the pages table. Connections are opened per
operation (or once per batch) and always closed.
"""

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from holarchy.types import advance_timestamp, normalize_timestamp, utc_now

from .base import DEFAULT_TITLE, Page, PageStore, StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    content TEXT DEFAULT '',
    rev INTEGER DEFAULT 1,
    deleted INTEGER DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_pages_updated_at ON pages(updated_at);
"""


def _row_to_page(row: sqlite3.Row) -> Page:
    """Convert a database row to a Page."""
    return Page(
        id=row["id"],
        title=row["title"],
        content=row["content"] if row["content"] is not None else "",
        rev=row["rev"] if row["rev"] is not None else 1,
        deleted=bool(row["deleted"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SQLitePageStore(PageStore):
    """Page store backed by a single SQLite file.

    Args:
        db_path: Database file; parent directories are created.
        now_fn: Timestamp source, injectable for tests.
    """

    def __init__(self, db_path: Path, now_fn: Callable[[], str] = utc_now):
        super().__init__(now_fn)
        self.db_path = Path(db_path)
        self._batch_conn: Optional[sqlite3.Connection] = None

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.db_path.parent}: {e}") from e
        self._init_db()

    @property
    def backend(self) -> str:
        return "sqlite"

    def _init_db(self):
        """Create the pages table if needed."""
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager that handles transactions AND closes connection.

        Inside a batch the batch connection is reused and commit is left to
        the batch. SQLite errors surface as StorageError.
        """
        if self._batch_conn is not None:
            try:
                yield self._batch_conn
            except sqlite3.Error as e:
                raise StorageError(f"SQLite operation failed: {e}") from e
            return

        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise StorageError(f"SQLite operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextlib.contextmanager
    def batch(self) -> Iterator["SQLitePageStore"]:
        """Run every write inside one transaction."""
        if self._batch_conn is not None:
            yield self
            return

        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e
        self._batch_conn = conn
        try:
            yield self
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"SQLite batch failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self._batch_conn = None
            conn.close()

    def _fetch(self, conn: sqlite3.Connection, page_id: int) -> Optional[Page]:
        row = conn.execute("SELECT * FROM pages WHERE id = ?", (page_id,)).fetchone()
        return _row_to_page(row) if row else None

    # === Contract ===

    def create(self, title: Optional[str] = None, content: Optional[str] = None) -> Page:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO pages (title, content, rev, deleted, created_at, updated_at) "
                "VALUES (?, ?, 1, 0, ?, ?)",
                (title or DEFAULT_TITLE, content or "", now, now),
            )
            return self._fetch(conn, cursor.lastrowid)

    def read(self, page_id: int, include_deleted: bool = False) -> Optional[Page]:
        with self._connect() as conn:
            page = self._fetch(conn, page_id)
        if page is None or (page.deleted and not include_deleted):
            return None
        return page

    def update(
        self,
        page_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        updated_at: Optional[str] = None,
    ) -> Optional[Page]:
        with self._connect() as conn:
            existing = self._fetch(conn, page_id)
            if existing is None:
                return None
            stamp = normalize_timestamp(updated_at) or advance_timestamp(
                self._now(), existing.updated_at
            )
            conn.execute(
                "UPDATE pages SET title = COALESCE(?, title), content = COALESCE(?, content), "
                "rev = rev + 1, updated_at = ? WHERE id = ?",
                (title, content, stamp, page_id),
            )
            return self._fetch(conn, page_id)

    def soft_delete(self, page_id: int) -> bool:
        with self._connect() as conn:
            existing = self._fetch(conn, page_id)
            if existing is None:
                return False
            stamp = advance_timestamp(self._now(), existing.updated_at)
            result = conn.execute(
                "UPDATE pages SET deleted = 1, rev = rev + 1, updated_at = ? WHERE id = ?",
                (stamp, page_id),
            )
            return result.rowcount > 0

    def changes_since(self, since: Optional[str] = None) -> List[Page]:
        since = normalize_timestamp(since)
        with self._connect() as conn:
            if since:
                rows = conn.execute(
                    "SELECT * FROM pages WHERE updated_at > ? ORDER BY updated_at ASC, id ASC",
                    (since,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM pages ORDER BY updated_at ASC, id ASC"
                ).fetchall()
        return [_row_to_page(r) for r in rows]

    def list_pages(self) -> List[Page]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM pages WHERE deleted = 0 ORDER BY updated_at DESC, id DESC"
            ).fetchall()
        return [_row_to_page(r) for r in rows]

    def export_rows(self) -> List[Page]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM pages ORDER BY id").fetchall()
        return [_row_to_page(r) for r in rows]

    def put(self, page: Page) -> Page:
        values = (
            page.title,
            page.content,
            page.rev,
            int(page.deleted),
            page.created_at,
            page.updated_at,
        )
        with self._connect() as conn:
            if page.id is None:
                cursor = conn.execute(
                    "INSERT INTO pages (title, content, rev, deleted, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    values,
                )
                page_id = cursor.lastrowid
            else:
                # AUTOINCREMENT moves sqlite_sequence past any explicit id.
                conn.execute(
                    """INSERT INTO pages (id, title, content, rev, deleted, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)
                       ON CONFLICT(id) DO UPDATE SET
                           title = excluded.title,
                           content = excluded.content,
                           rev = excluded.rev,
                           deleted = excluded.deleted,
                           updated_at = excluded.updated_at""",
                    (page.id,) + values,
                )
                page_id = page.id
            return self._fetch(conn, page_id)

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM pages")
            conn.execute("DELETE FROM sqlite_sequence WHERE name = 'pages'")
