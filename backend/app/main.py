"""Holarchy Pages API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from holarchy.storage import StorageError
from holarchy.sync import SyncReconciler

from .config import Settings, get_settings
from .database import open_store
from .events import EventBroadcaster
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import events_router, pages_router, sync_router, transfer_router

logger = get_logger("main")

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = app.state.settings
    store = app.state.store
    logger.info(
        f"Starting Holarchy Pages API (backend={store.backend}, "
        f"data_dir={settings.data_dir}, debug={settings.debug})"
    )
    yield
    logger.info("Shutting down Holarchy Pages API")
    store.close()


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "storage failure"})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app with its own store, reconciler and broadcaster."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Holarchy Pages API",
        description="Page CRUD, offline sync and change events for the Holarchy Browser",
        version=VERSION,
        lifespan=lifespan,
    )

    store = open_store(settings)
    app.state.settings = settings
    app.state.store = store
    app.state.reconciler = SyncReconciler(store)
    app.state.broadcaster = EventBroadcaster(queue_size=settings.subscriber_queue_size)

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StorageError, storage_error_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(pages_router)
    app.include_router(sync_router)
    app.include_router(transfer_router)
    app.include_router(events_router)

    @app.get("/")
    async def root():
        """Service banner."""
        return {
            "service": "holarchy-pages",
            "version": VERSION,
            "status": "ok",
        }

    @app.get("/health")
    async def health():
        """Storage backend and live subscriber count."""
        return {
            "status": "healthy",
            "storage": app.state.store.backend,
            "subscribers": app.state.broadcaster.subscriber_count,
        }

    return app


app = create_app()
