"""Pydantic schemas for API requests and responses."""

from src.schemas.admin import CleanupResponse
from src.schemas.item import ItemCreate, ItemResponse, ItemUpdate
from src.schemas.list import (
    ListCreate,
    ListDetailResponse,
    ListResponse,
    ListUpdate,
    OwnerCreate,
    OwnerResponse,
    ShareCreate,
    ShareResponse,
)
from src.schemas.menu import MenuEntry, MenuRequest, MenuResponse
from src.schemas.sync import ConflictResolve, ConflictResponse, SyncConfigCreate, SyncResultResponse

__all__ = [
    "CleanupResponse",
    "ListCreate",
    "ListUpdate",
    "ListResponse",
    "ListDetailResponse",
    "OwnerCreate",
    "OwnerResponse",
    "ShareCreate",
    "ShareResponse",
    "ItemCreate",
    "ItemUpdate",
    "ItemResponse",
    "MenuRequest",
    "MenuEntry",
    "MenuResponse",
    "SyncConfigCreate",
    "SyncResultResponse",
    "ConflictResponse",
    "ConflictResolve",
]
