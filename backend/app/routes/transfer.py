"""Whole-store export and import.

An import replaces the table in one store batch, run on the event loop so
no page write lands between the clear and the reinsert.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from holarchy.storage import StorageError
from holarchy.sync import MalformedPayloadError
from holarchy.types import utc_now

from ..database import Broadcaster, Reconciler
from ..logging_config import get_logger, log_sync_operation
from ..models import ErrorResponse, ExportResponse
from ..rate_limit import bulk_write_limit, limiter
from .sync import bad_request, read_batch

logger = get_logger("transfer")
router = APIRouter(prefix="/api", tags=["transfer"])


@router.get("/export", response_model=ExportResponse)
async def export_pages(reconciler: Reconciler):
    """Every record, tombstones included."""
    return reconciler.export()


@router.post("/import", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
@limiter.limit(bulk_write_limit)
async def import_pages(
    request: Request,
    reconciler: Reconciler,
    broadcaster: Broadcaster,
    replace: bool = False,
):
    """Overwrite-upsert rows without timestamp checks; ``replace=1`` clears first."""
    try:
        rows = await read_batch(request, "rows")
        count = reconciler.import_rows(rows, replace=replace)
    except MalformedPayloadError as e:
        log_sync_operation("import", 0, False, error=str(e))
        return bad_request("Malformed import payload", str(e))
    except StorageError as e:
        logger.error(f"IMPORT failed: {e}")
        log_sync_operation("import", 0, False, error="storage")
        return JSONResponse(status_code=500, content={"error": "import failed"})

    log_sync_operation("import", count, True, applied=count)
    broadcaster.broadcast({"type": "import", "serverTime": utc_now()})
    return {"ok": True}
