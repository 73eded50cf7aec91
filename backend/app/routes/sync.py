"""Sync routes: incremental pull and last-write-wins push of page batches.

Like the page routes, handlers run the blocking store calls on the event
loop; a pushed batch is merged without another write interleaving.
"""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError

from holarchy.storage import StorageError
from holarchy.sync import MalformedPayloadError
from holarchy.types import utc_now

from ..database import Broadcaster, Reconciler
from ..logging_config import get_logger, log_sync_operation
from ..models import ErrorResponse, SyncItem, SyncPullResponse, SyncPushResponse
from ..rate_limit import bulk_write_limit, limiter

logger = get_logger("sync")
router = APIRouter(prefix="/api/sync", tags=["sync"])

_items_adapter = TypeAdapter(list[SyncItem])


def bad_request(error: str, detail: Any = None) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": error, "detail": detail})


async def read_batch(request: Request, key: str) -> list[dict[str, Any]]:
    """Read a JSON body that is either a bare array or ``{key: [...]}``.

    Raises:
        MalformedPayloadError: Invalid JSON, wrong shape, or an invalid item.
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise MalformedPayloadError(f"Invalid JSON body: {e}") from e

    if isinstance(body, dict):
        body = body.get(key, [])
    if not isinstance(body, list):
        raise MalformedPayloadError(f"Expected an array or an object with '{key}'")

    try:
        items = _items_adapter.validate_python(body)
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid {key}: {e.error_count()} error(s)") from e
    return [item.model_dump() for item in items]


@router.get("/changes", response_model=SyncPullResponse, responses={400: {"model": ErrorResponse}})
async def pull_changes(reconciler: Reconciler, since: str | None = None):
    """Records changed after ``since`` (all records when omitted), oldest first."""
    try:
        result = reconciler.changes_since(since)
    except MalformedPayloadError as e:
        log_sync_operation("pull", 0, False, error=str(e))
        return bad_request("Invalid since", str(e))
    log_sync_operation("pull", len(result["changes"]), True)
    return result


@router.post(
    "/changes",
    response_model=SyncPushResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
@limiter.limit(bulk_write_limit)
async def push_changes(request: Request, reconciler: Reconciler, broadcaster: Broadcaster):
    """Merge a client batch. The batch is applied completely or not at all."""
    try:
        items = await read_batch(request, "changes")
        result = reconciler.merge_batch(items)
    except MalformedPayloadError as e:
        log_sync_operation("push", 0, False, error=str(e))
        return bad_request("Malformed sync payload", str(e))
    except StorageError as e:
        logger.error(f"PUSH failed: {e}")
        log_sync_operation("push", 0, False, error="storage")
        return JSONResponse(status_code=500, content={"error": "sync failed"})

    log_sync_operation("push", result.total, True, applied=result.applied, skipped=result.skipped)
    server_time = utc_now()
    broadcaster.broadcast({"type": "sync", "serverTime": server_time})
    return {"ok": True, "serverTime": server_time}
