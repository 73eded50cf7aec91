"""Server-sent change events."""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ..database import AppSettings, Broadcaster

router = APIRouter(tags=["events"])


@router.get("/events")
async def events(broadcaster: Broadcaster, settings: AppSettings):
    """Stream page, sync and import notifications until the client disconnects."""
    return StreamingResponse(
        broadcaster.stream(settings.sse_retry_ms, settings.sse_heartbeat_seconds),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
