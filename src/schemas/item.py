"""Item schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ItemCreate(BaseModel):
    """Create a new item."""

    name: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    weight: float | None = Field(None, gt=0)
    external_id: str | None = Field(None, max_length=255)
    metadata: dict[str, Any] | None = None


class ItemUpdate(BaseModel):
    """Update an item."""

    name: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    weight: float | None = Field(None, gt=0)
    metadata: dict[str, Any] | None = None


class ItemResponse(BaseModel):
    """Item response."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    list_id: int
    name: str
    description: str | None
    weight: float | None
    last_used_at: datetime | None
    use_count: int
    external_id: str | None
    metadata: dict[str, Any] | None = Field(None, validation_alias="item_metadata")
    created_at: datetime
    updated_at: datetime
