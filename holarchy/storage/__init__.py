"""Holarchy storage backends.

This module provides the page storage abstraction. SQLite is preferred;
when it cannot be opened the JSON flat file store is used instead. The
choice is made once, here, and callers only ever see PageStore.
"""

import logging
from pathlib import Path
from typing import Callable

from holarchy.types import utc_now

from .base import DEFAULT_TITLE, Page, PageStore, StorageError
from .flat_files import JsonPageStore
from .graph_files import load_graph, save_graph
from .sqlite import SQLitePageStore

logger = logging.getLogger(__name__)

SQLITE_FILENAME = "browser.db"
JSON_FILENAME = "browser.json"
BACKENDS = ("auto", "sqlite", "json")


def open_page_store(
    data_dir: Path,
    backend: str = "auto",
    now_fn: Callable[[], str] = utc_now,
) -> PageStore:
    """Open the page store under ``data_dir``.

    ``auto`` probes SQLite by opening and initialising the database and
    falls back to the JSON file when that fails. ``sqlite`` and ``json``
    force a backend; a forced SQLite failure is raised.
    """
    if backend not in BACKENDS:
        raise ValueError(f"Unknown storage backend {backend!r}; expected one of {BACKENDS}")

    data_dir = Path(data_dir)
    if backend in ("auto", "sqlite"):
        try:
            store = SQLitePageStore(data_dir / SQLITE_FILENAME, now_fn=now_fn)
            logger.info(f"Using SQLite persistence at {store.db_path}")
            return store
        except StorageError as e:
            if backend == "sqlite":
                raise
            logger.warning(f"SQLite unavailable ({e}), falling back to JSON file store")

    store = JsonPageStore(data_dir / JSON_FILENAME, now_fn=now_fn)
    logger.info(f"Using JSON file persistence at {store.json_path}")
    return store


__all__ = [
    "DEFAULT_TITLE",
    "Page",
    "PageStore",
    "StorageError",
    "SQLitePageStore",
    "JsonPageStore",
    "open_page_store",
    "load_graph",
    "save_graph",
]
