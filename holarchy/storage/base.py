"""Page store contract for holarchy.

This defines the interface that both page storage backends implement.
Currently supported:
- SQLitePageStore: embedded relational store (preferred)
- JsonPageStore: flat JSON file fallback

Callers must not be able to tell the two apart.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from holarchy.types import utc_now

DEFAULT_TITLE = "Untitled"


class StorageError(RuntimeError):
    """Underlying persistence failed. Fatal for the triggering operation."""


@dataclass
class Page:
    """A page record on the sync side."""

    id: Optional[int]
    title: str = DEFAULT_TITLE
    content: str = ""
    rev: int = 1
    deleted: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "rev": self.rev,
            "deleted": self.deleted,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def copy(self, **changes: Any) -> "Page":
        return replace(self, **changes)


class PageStore(ABC):
    """Persistence for pages keyed by integer id.

    The store owns id, revision and server timestamp assignment. Absent
    ids are reported as None/False; I/O failures raise StorageError.
    """

    def __init__(self, now_fn: Callable[[], str] = utc_now):
        self._now_fn = now_fn

    def _now(self) -> str:
        return self._now_fn()

    @property
    @abstractmethod
    def backend(self) -> str:
        """Short backend name, for logs and health output only."""

    @abstractmethod
    def create(self, title: Optional[str] = None, content: Optional[str] = None) -> Page:
        """Insert a new page with the next id, rev 1."""

    @abstractmethod
    def read(self, page_id: int, include_deleted: bool = False) -> Optional[Page]:
        """Get one page. Tombstones are not-found unless include_deleted."""

    @abstractmethod
    def update(
        self,
        page_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        updated_at: Optional[str] = None,
    ) -> Optional[Page]:
        """Patch a page; None fields keep their value. rev += 1."""

    @abstractmethod
    def soft_delete(self, page_id: int) -> bool:
        """Mark a page deleted. False if the id is absent."""

    @abstractmethod
    def changes_since(self, since: Optional[str] = None) -> List[Page]:
        """Pages with updated_at > since, ascending. None returns everything."""

    @abstractmethod
    def list_pages(self) -> List[Page]:
        """Non-deleted pages, most recently updated first."""

    @abstractmethod
    def export_rows(self) -> List[Page]:
        """Every page including tombstones, ordered by id."""

    @abstractmethod
    def put(self, page: Page) -> Page:
        """Write a full record.

        A page with an id is inserted or overwritten under that id and the
        id counter moves past it. A page without an id gets the next one.
        """

    @abstractmethod
    def clear(self) -> None:
        """Remove every page and reset the id counter."""

    @abstractmethod
    def batch(self) -> AbstractContextManager:
        """Group writes so they persist together or not at all."""

    def close(self) -> None:
        """Release resources. Connections are per operation, so usually a no-op."""
