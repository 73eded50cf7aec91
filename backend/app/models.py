"""Pydantic models for API requests and responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict

# =============================================================================
# Page Models
# =============================================================================


class PageCreate(BaseModel):
    """Request to create a page. Extra client fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    content: str | None = None


class PageUpdate(BaseModel):
    """Partial page update; omitted fields keep their value."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    content: str | None = None
    updated_at: str | None = None


class PageSummary(BaseModel):
    """A page in the list view."""

    id: int
    title: str
    created_at: str | None
    updated_at: str | None


class PageRecord(PageSummary):
    """A full page record."""

    content: str
    rev: int
    deleted: bool


# =============================================================================
# Sync Models
# =============================================================================


class SyncItem(BaseModel):
    """One client record in a sync push or import. Every field is optional."""

    model_config = ConfigDict(extra="ignore")

    id: int | str | None = None
    title: str | None = None
    content: str | None = None
    rev: int | None = None
    deleted: bool | int | None = None
    created_at: str | None = None
    updated_at: str | None = None


class SyncPushResponse(BaseModel):
    ok: bool = True
    serverTime: str


class SyncPullResponse(BaseModel):
    serverTime: str
    changes: list[PageRecord]


class ExportResponse(BaseModel):
    exportedAt: str
    rows: list[PageRecord]


class ErrorResponse(BaseModel):
    error: str
    detail: Any = None
