"""API routes."""

from .events import router as events_router
from .pages import router as pages_router
from .sync import router as sync_router
from .transfer import router as transfer_router

__all__ = [
    "events_router",
    "pages_router",
    "sync_router",
    "transfer_router",
]
