"""Page CRUD routes.

Handlers are `async def` and call the store synchronously on the event
loop, so writes to one store never overlap (a single writer) and each
broadcast follows its commit. Every committed mutation is broadcast to
event-stream subscribers after the response body is built.
"""

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from holarchy.types import ParseDatetimeError, utc_now

from ..database import Broadcaster, Store
from ..logging_config import get_logger
from ..models import PageCreate, PageRecord, PageSummary, PageUpdate

logger = get_logger("pages")
router = APIRouter(prefix="/api/pages", tags=["pages"])

NOT_FOUND = {"error": "Not found"}


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content=NOT_FOUND)


@router.get("", response_model=list[PageSummary])
async def list_pages(store: Store):
    """Non-deleted pages, most recently updated first."""
    return [p.summary() for p in store.list_pages()]


@router.get("/{page_id}", response_model=PageRecord, responses={404: {"description": "Not found"}})
async def get_page(page_id: int, store: Store):
    page = store.read(page_id)
    if page is None:
        return _not_found()
    return page.to_dict()


@router.post("", status_code=201, response_model=PageRecord)
async def create_page(body: PageCreate, store: Store, broadcaster: Broadcaster):
    page = store.create(title=body.title, content=body.content)
    row = page.to_dict()
    logger.info(f"CREATE | page {page.id}")
    broadcaster.broadcast(
        {"type": "page", "action": "created", "row": row, "serverTime": utc_now()}
    )
    return row


@router.put("/{page_id}", response_model=PageRecord, responses={404: {"description": "Not found"}})
async def update_page(page_id: int, body: PageUpdate, store: Store, broadcaster: Broadcaster):
    try:
        page = store.update(
            page_id, title=body.title, content=body.content, updated_at=body.updated_at
        )
    except ParseDatetimeError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid updated_at", "detail": str(e)})
    if page is None:
        return _not_found()
    row = page.to_dict()
    logger.info(f"UPDATE | page {page.id} rev={page.rev}")
    broadcaster.broadcast(
        {"type": "page", "action": "updated", "row": row, "serverTime": utc_now()}
    )
    return row


@router.delete("/{page_id}", status_code=204, responses={404: {"description": "Not found"}})
async def delete_page(page_id: int, store: Store, broadcaster: Broadcaster):
    if not store.soft_delete(page_id):
        return _not_found()
    logger.info(f"DELETE | page {page_id}")
    broadcaster.broadcast(
        {"type": "page", "action": "deleted", "id": page_id, "serverTime": utc_now()}
    )
    return Response(status_code=204)
