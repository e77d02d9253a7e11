"""List, owner and share schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import ListType, OwnerType, SyncSource, Visibility
from src.schemas.item import ItemResponse


class ListCreate(BaseModel):
    """Create a new list."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    type: ListType = ListType.GENERAL
    visibility: Visibility = Visibility.PRIVATE
    default_weight: float = Field(1.0, gt=0)
    cooldown_days: int | None = Field(None, ge=0)
    max_items: int | None = Field(None, gt=0)
    sync_source: SyncSource = SyncSource.NONE
    sync_id: str | None = Field(None, max_length=255)
    # Create the list on behalf of a tribe the caller belongs to
    owner_tribe_id: str | None = Field(None, max_length=64)


class ListUpdate(BaseModel):
    """Update a list. ``version`` is the version the client last read."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    type: ListType | None = None
    visibility: Visibility | None = None
    default_weight: float | None = Field(None, gt=0)
    cooldown_days: int | None = Field(None, ge=0)
    max_items: int | None = Field(None, gt=0)
    version: int | None = None


class OwnerCreate(BaseModel):
    """Add an owner to a list."""

    owner_id: str = Field(..., min_length=1, max_length=64)
    owner_type: str = Field(..., max_length=10)  # 'user' or 'tribe'


class OwnerResponse(BaseModel):
    """List owner response."""

    model_config = ConfigDict(from_attributes=True)

    list_id: int
    owner_id: str
    owner_type: OwnerType
    version: int
    created_at: datetime


class ShareCreate(BaseModel):
    """Share a list with a tribe."""

    tribe_id: str = Field(..., min_length=1, max_length=64)
    expires_at: datetime | None = None
    version: int | None = None


class ShareResponse(BaseModel):
    """List share response."""

    model_config = ConfigDict(from_attributes=True)

    list_id: int
    tribe_id: str
    shared_by: str
    expires_at: datetime | None
    version: int
    created_at: datetime
    updated_at: datetime


class ListResponse(BaseModel):
    """List response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    type: ListType
    visibility: Visibility
    default_weight: float
    cooldown_days: int | None
    max_items: int | None
    sync_status: str
    sync_source: str
    sync_id: str | None
    last_sync_at: datetime | None
    version: int
    created_at: datetime
    updated_at: datetime


class ListDetailResponse(ListResponse):
    """List response with its items, owners and shares."""

    items: list[ItemResponse] = []
    owners: list[OwnerResponse] = []
    shares: list[ShareResponse] = []
