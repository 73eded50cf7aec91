"""Page synchronization for holarchy.

SyncReconciler merges client batches into a PageStore with last-write-wins
on ``updated_at`` and answers incremental "what changed since T" pulls.

Merge rules per incoming item, applied in batch order against the current
store state:

- unknown id: insert (client id honoured when it is a positive integer)
- known id, strictly newer ``updated_at``: overwrite title, content, rev,
  deleted and updated_at; fields the item omits keep their value
- known id, same or older ``updated_at``: skip the item entirely

Re-applying a batch is therefore a no-op. The whole batch is validated up
front and written inside one store batch, so a malformed item or an I/O
failure leaves the store untouched.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from holarchy.storage import DEFAULT_TITLE, Page, PageStore
from holarchy.types import ParseDatetimeError, normalize_timestamp, parse_datetime, utc_now

logger = logging.getLogger(__name__)


class MalformedPayloadError(ValueError):
    """A sync or import payload could not be interpreted. Nothing was written."""


@dataclass
class MergeResult:
    """Outcome of a batch merge."""

    applied: int = 0  # Items inserted or overwritten
    skipped: int = 0  # Items that lost the timestamp comparison

    @property
    def total(self) -> int:
        return self.applied + self.skipped


@dataclass
class IncomingChange:
    """A coerced client item. None means the client did not send the field."""

    id: Optional[int]
    title: Optional[str] = None
    content: Optional[str] = None
    rev: Optional[int] = None
    deleted: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


def _coerce_id(value: Any) -> Optional[int]:
    """Positive integer ids are honoured; anything else lets the store assign one."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


def _coerce_flag(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _coerce_text(value: Any, field_name: str, position: int) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    raise MalformedPayloadError(f"Item {position}: {field_name} must be a string")


def _coerce_rev(value: Any, position: int) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedPayloadError(f"Item {position}: rev must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedPayloadError(f"Item {position}: rev must be an integer")


def _coerce_timestamp(value: Any, field_name: str, position: int) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        return normalize_timestamp(value)
    except ParseDatetimeError as e:
        raise MalformedPayloadError(f"Item {position}: {field_name}: {e}") from e


def coerce_item(item: Any, position: int = 0) -> IncomingChange:
    """Turn one raw client mapping into an IncomingChange."""
    if not isinstance(item, Mapping):
        raise MalformedPayloadError(f"Item {position} is not an object")
    return IncomingChange(
        id=_coerce_id(item.get("id")),
        title=_coerce_text(item.get("title"), "title", position),
        content=_coerce_text(item.get("content"), "content", position),
        rev=_coerce_rev(item.get("rev"), position),
        deleted=_coerce_flag(item.get("deleted")),
        created_at=_coerce_timestamp(item.get("created_at"), "created_at", position),
        updated_at=_coerce_timestamp(item.get("updated_at"), "updated_at", position),
    )


class SyncReconciler:
    """Reconciles client batches with a PageStore.

    Args:
        store: The page store to merge into.
        now_fn: Timestamp source for server times and unstamped items.
    """

    def __init__(self, store: PageStore, now_fn: Callable[[], str] = utc_now):
        self._store = store
        self._now = now_fn

    @property
    def store(self) -> PageStore:
        return self._store

    def _coerce_all(self, items: Iterable[Any]) -> List[IncomingChange]:
        if isinstance(items, (str, bytes, Mapping)):
            raise MalformedPayloadError("Expected a list of records")
        try:
            return [coerce_item(item, pos) for pos, item in enumerate(items)]
        except TypeError as e:
            raise MalformedPayloadError(f"Expected a list of records: {e}") from e

    def _insert(self, change: IncomingChange) -> Page:
        return self._store.put(
            Page(
                id=change.id,
                title=change.title or DEFAULT_TITLE,
                content=change.content or "",
                rev=change.rev or 1,
                deleted=bool(change.deleted),
                created_at=change.created_at or change.updated_at,
                updated_at=change.updated_at,
            )
        )

    def _overwrite(self, existing: Page, change: IncomingChange) -> Page:
        return self._store.put(
            existing.copy(
                title=change.title if change.title is not None else existing.title,
                content=change.content if change.content is not None else existing.content,
                rev=change.rev if change.rev is not None else existing.rev + 1,
                deleted=change.deleted if change.deleted is not None else existing.deleted,
                updated_at=change.updated_at,
            )
        )

    def _apply(self, change: IncomingChange, force: bool) -> bool:
        """Apply one change. Returns False when it lost to the stored record."""
        if change.updated_at is None:
            change.updated_at = self._now()

        existing = None
        if change.id is not None:
            existing = self._store.read(change.id, include_deleted=True)

        if existing is None:
            self._insert(change)
            return True

        if not force and parse_datetime(change.updated_at) <= parse_datetime(existing.updated_at):
            logger.debug(
                f"Skipping page {existing.id}: incoming {change.updated_at} "
                f"not newer than {existing.updated_at}"
            )
            return False

        self._overwrite(existing, change)
        return True

    # === Operations ===

    def merge_batch(self, items: Iterable[Any]) -> MergeResult:
        """Merge client items with last-write-wins, all or nothing."""
        changes = self._coerce_all(items)
        result = MergeResult()

        with self._store.batch():
            for change in changes:
                if self._apply(change, force=False):
                    result.applied += 1
                else:
                    result.skipped += 1

        logger.info(f"Merged batch: applied={result.applied} skipped={result.skipped}")
        return result

    def changes_since(self, since: Optional[str] = None) -> Dict[str, Any]:
        """Changes after ``since`` plus the server time to use as the next mark."""
        if since:
            try:
                parse_datetime(since)
            except ParseDatetimeError as e:
                raise MalformedPayloadError(str(e)) from e
        server_time = self._now()
        changes = self._store.changes_since(since or None)
        return {"serverTime": server_time, "changes": [p.to_dict() for p in changes]}

    def export(self) -> Dict[str, Any]:
        """Every record, tombstones included, ordered by id."""
        return {
            "exportedAt": self._now(),
            "rows": [p.to_dict() for p in self._store.export_rows()],
        }

    def import_rows(self, rows: Iterable[Any], replace: bool = False) -> int:
        """Overwrite-upsert rows regardless of timestamps.

        With ``replace`` the store is cleared first. Returns rows written.
        """
        changes = self._coerce_all(rows)
        with self._store.batch():
            if replace:
                self._store.clear()
            for change in changes:
                self._apply(change, force=True)
        logger.info(f"Imported {len(changes)} rows (replace={replace})")
        return len(changes)
