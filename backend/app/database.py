"""Page store wiring for FastAPI.

The store, reconciler and broadcaster are created once per app (see
``main.create_app``) and handed to routes through these dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from holarchy.storage import PageStore, open_page_store
from holarchy.sync import SyncReconciler

from .config import Settings
from .events import EventBroadcaster


def open_store(settings: Settings) -> PageStore:
    """Open the configured page store (SQLite, or the JSON fallback)."""
    return open_page_store(settings.data_dir, backend=settings.storage_backend)


def get_store(request: Request) -> PageStore:
    """FastAPI dependency for the app's page store."""
    return request.app.state.store


def get_reconciler(request: Request) -> SyncReconciler:
    """FastAPI dependency for the app's sync reconciler."""
    return request.app.state.reconciler


def get_broadcaster(request: Request) -> EventBroadcaster:
    """FastAPI dependency for the app's event broadcaster."""
    return request.app.state.broadcaster


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# Type aliases for dependency injection
Store = Annotated[PageStore, Depends(get_store)]
Reconciler = Annotated[SyncReconciler, Depends(get_reconciler)]
Broadcaster = Annotated[EventBroadcaster, Depends(get_broadcaster)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
