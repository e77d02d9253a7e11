"""Menu schemas."""

from pydantic import BaseModel, Field

from src.schemas.item import ItemResponse


class MenuRequest(BaseModel):
    """Generate a menu from one or more lists."""

    list_ids: list[int] = Field(..., min_length=1)
    cooldown_days: int | None = Field(None, ge=0)
    max_items: int | None = None
    exclude_item_ids: list[int] = []


class MenuEntry(BaseModel):
    """A picked item."""

    list_id: int
    weight: float
    item: ItemResponse


class MenuResponse(BaseModel):
    """Generated menu."""

    items: list[MenuEntry]
