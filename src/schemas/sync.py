"""Sync and conflict schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import SyncSource, SyncStatus


class SyncConfigCreate(BaseModel):
    """Bind a list to an external sync source."""

    source: SyncSource
    sync_id: str | None = Field(None, max_length=255)
    version: int | None = None


class SyncResultResponse(BaseModel):
    """Outcome of a sync pass."""

    model_config = ConfigDict(from_attributes=True)

    list_id: int
    status: SyncStatus
    conflicts_created: int
    items_added: int


class ConflictResponse(BaseModel):
    """Sync conflict response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    list_id: int
    item_id: int | None
    type: str
    local_data: dict[str, Any]
    remote_data: dict[str, Any]
    resolution: str | None
    resolved_at: datetime | None
    created_at: datetime


class ConflictResolve(BaseModel):
    """Resolve a conflict: 'accept_local' or 'accept_remote'."""

    resolution: str = Field(..., max_length=20)
