"""List service: list and item lifecycle, batch loading of related rows."""

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from src.database import storage_errors, transaction
from src.models.enums import OwnerType, SyncSource, SyncStatus, Visibility
from src.models.item import ListItem
from src.models.list import LIST_NAME_MAX_LENGTH, List
from src.models.mixins import utcnow
from src.models.owner import ListOwner, Owner, TribeOwner, UserOwner
from src.models.share import ListShare
from src.schemas.item import ItemCreate, ItemUpdate
from src.schemas.list import ListCreate, ListUpdate
from src.services.errors import (
    DuplicateError,
    InvalidInputError,
    NotFoundError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)

# Columns a partial update may change but never clear
REQUIRED_LIST_FIELDS = ("name", "type", "visibility", "default_weight")


def normalize_list_name(name: str | None) -> str:
    """Trim and validate a list name."""
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("List name cannot be empty")
    if len(name) > LIST_NAME_MAX_LENGTH:
        raise InvalidInputError(f"List name cannot exceed {LIST_NAME_MAX_LENGTH} characters")
    return name


def check_version(current: int, expected: int | None) -> None:
    """Reject writes carrying a stale version."""
    if expected is not None and current != expected:
        raise VersionConflictError()


def active_share_filter(now=None):
    """SQL predicate for shares that are neither deleted nor expired."""
    now = now or utcnow()
    return (
        ListShare.deleted_at.is_(None),
        or_(ListShare.expires_at.is_(None), ListShare.expires_at > now),
    )


class ListService:
    """Service for list and list item operations."""

    def __init__(self, db: Session):
        self.db = db

    # Lists

    def get_list(self, list_id: int) -> List:
        """Get an active list or raise NotFoundError."""
        with storage_errors("get_list", list_id):
            list_obj = (
                self.db.query(List).filter(List.id == list_id, List.deleted_at.is_(None)).first()
            )
        if list_obj is None:
            raise NotFoundError(f"List {list_id} not found")
        return list_obj

    def load_lists(self, list_ids: Iterable[int]) -> list[List]:
        """Load lists with their active items, owners and unexpired shares.

        Issues one query for the lists plus one per related entity type,
        whatever the number of lists.
        """
        ids = list(dict.fromkeys(list_ids))
        if not ids:
            return []

        with storage_errors("load_lists", ids):
            return (
                self.db.query(List)
                .filter(List.id.in_(ids), List.deleted_at.is_(None))
                .options(
                    selectinload(List.items.and_(ListItem.deleted_at.is_(None))),
                    selectinload(List.owners.and_(ListOwner.deleted_at.is_(None))),
                    selectinload(List.shares.and_(*active_share_filter())),
                )
                .order_by(List.id)
                .all()
            )

    def get_visible_list_ids(self, user_id: str, tribe_ids: Iterable[str] = ()) -> list[int]:
        """IDs of lists a user owns, a user's tribe owns, or are shared with a user's tribe."""
        tribe_ids = list(tribe_ids)
        owner_match = (ListOwner.owner_type == OwnerType.USER.value) & (
            ListOwner.owner_id == user_id
        )
        if tribe_ids:
            owner_match = owner_match | (
                (ListOwner.owner_type == OwnerType.TRIBE.value)
                & ListOwner.owner_id.in_(tribe_ids)
            )

        with storage_errors("get_visible_list_ids", user_id):
            owned = (
                self.db.query(ListOwner.list_id)
                .filter(owner_match, ListOwner.deleted_at.is_(None))
                .distinct()
                .all()
            )
            shared = []
            if tribe_ids:
                shared = (
                    self.db.query(ListShare.list_id)
                    .filter(ListShare.tribe_id.in_(tribe_ids), *active_share_filter())
                    .distinct()
                    .all()
                )

        return sorted({list_id for (list_id,) in owned} | {list_id for (list_id,) in shared})

    def get_public_list_ids(self, list_ids: Iterable[int]) -> set[int]:
        """Which of ``list_ids`` are active public lists."""
        ids = list(dict.fromkeys(list_ids))
        if not ids:
            return set()
        with storage_errors("get_public_list_ids", ids):
            rows = (
                self.db.query(List.id)
                .filter(
                    List.id.in_(ids),
                    List.deleted_at.is_(None),
                    List.visibility == Visibility.PUBLIC.value,
                )
                .all()
            )
        return {list_id for (list_id,) in rows}

    def create_list(self, data: ListCreate, owner: Owner) -> List:
        """Create a list together with its single initial owner."""
        if not isinstance(owner, UserOwner | TribeOwner):
            raise InvalidInputError("A list must be created with a user or tribe owner")
        name = normalize_list_name(data.name)
        self._check_duplicate_name(name, owner)

        sync_source = data.sync_source.value if data.sync_source else SyncSource.NONE.value
        if sync_source == SyncSource.GOOGLE_MAPS.value and not data.sync_id:
            raise InvalidInputError("Google Maps sync requires a sync ID")

        with transaction(self.db, "create_list", name):
            new_list = List(
                name=name,
                description=data.description.strip() if data.description else None,
                type=data.type.value,
                visibility=data.visibility.value,
                default_weight=data.default_weight,
                cooldown_days=data.cooldown_days,
                max_items=data.max_items,
                sync_source=sync_source,
                sync_id=data.sync_id if sync_source != SyncSource.NONE.value else None,
                sync_status=SyncStatus.NONE.value,
                version=1,
            )
            self.db.add(new_list)
            self.db.flush()
            # The only place an initial owner is created.
            self.db.add(
                ListOwner(
                    list_id=new_list.id,
                    owner_id=owner.id,
                    owner_type=owner.owner_type.value,
                    version=1,
                )
            )

        self.db.refresh(new_list)
        logger.info(f"Created list {new_list.id} owned by {owner.owner_type.value} {owner.id}")
        return new_list

    def _check_duplicate_name(self, name: str, owner: Owner, exclude_id: int | None = None) -> None:
        query = (
            self.db.query(List)
            .join(ListOwner, ListOwner.list_id == List.id)
            .filter(
                ListOwner.owner_id == owner.id,
                ListOwner.owner_type == owner.owner_type.value,
                ListOwner.deleted_at.is_(None),
                List.deleted_at.is_(None),
                func.lower(List.name) == name.lower(),
            )
        )
        if exclude_id is not None:
            query = query.filter(List.id != exclude_id)
        with storage_errors("check_duplicate_name", name):
            existing = query.first()
        if existing is not None:
            raise DuplicateError(f"A list named '{existing.name}' already exists", existing=existing)

    def update_list(self, list_id: int, data: ListUpdate, expected_version: int | None = None) -> List:
        """Apply a partial update; bumps the version once."""
        list_obj = self.get_list(list_id)
        check_version(list_obj.version, expected_version)

        changes: dict[str, Any] = data.model_dump(exclude_unset=True, exclude={"version"})
        for field in REQUIRED_LIST_FIELDS:
            if field in changes and changes[field] is None:
                raise InvalidInputError(f"'{field}' cannot be null")
        if "name" in changes:
            changes["name"] = normalize_list_name(changes["name"])
            owners = (
                self.db.query(ListOwner)
                .filter(ListOwner.list_id == list_id, ListOwner.deleted_at.is_(None))
                .all()
            )
            for owner_row in owners:
                self._check_duplicate_name(changes["name"], owner_row.owner, exclude_id=list_id)
        for field in ("type", "visibility"):
            if changes.get(field) is not None:
                changes[field] = changes[field].value
        if not changes:
            return list_obj

        with transaction(self.db, "update_list", list_id):
            for field, value in changes.items():
                setattr(list_obj, field, value)
            list_obj.bump_version()

        self.db.refresh(list_obj)
        return list_obj

    def delete_list(self, list_id: int, expected_version: int | None = None) -> None:
        """Soft delete a list."""
        list_obj = self.get_list(list_id)
        check_version(list_obj.version, expected_version)
        with transaction(self.db, "delete_list", list_id):
            list_obj.soft_delete()
            list_obj.bump_version()
        logger.info(f"Deleted list {list_id}")

    # Items

    def get_items(self, list_id: int) -> list[ListItem]:
        self.get_list(list_id)
        with storage_errors("get_items", list_id):
            return (
                self.db.query(ListItem)
                .filter(ListItem.list_id == list_id, ListItem.deleted_at.is_(None))
                .order_by(ListItem.id)
                .all()
            )

    def get_item(self, list_id: int, item_id: int) -> ListItem:
        with storage_errors("get_item", item_id):
            item = (
                self.db.query(ListItem)
                .join(List, List.id == ListItem.list_id)
                .filter(
                    ListItem.id == item_id,
                    ListItem.list_id == list_id,
                    ListItem.deleted_at.is_(None),
                    List.deleted_at.is_(None),
                )
                .first()
            )
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")
        return item

    def add_item(self, list_id: int, data: ItemCreate) -> ListItem:
        self.get_list(list_id)
        name = data.name.strip()
        if not name:
            raise InvalidInputError("Item name is required")

        with transaction(self.db, "add_item", list_id):
            item = ListItem(
                list_id=list_id,
                name=name,
                description=data.description,
                weight=data.weight,
                external_id=data.external_id,
                item_metadata=data.metadata,
                use_count=0,
            )
            self.db.add(item)

        self.db.refresh(item)
        return item

    def update_item(self, list_id: int, item_id: int, data: ItemUpdate) -> ListItem:
        item = self.get_item(list_id, item_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise InvalidInputError("Item name is required")
        if "metadata" in changes:
            changes["item_metadata"] = changes.pop("metadata")

        with transaction(self.db, "update_item", item_id):
            for field, value in changes.items():
                setattr(item, field, value)

        self.db.refresh(item)
        return item

    def remove_item(self, list_id: int, item_id: int) -> None:
        item = self.get_item(list_id, item_id)
        with transaction(self.db, "remove_item", item_id):
            item.soft_delete()

    def mark_item_used(self, list_id: int, item_id: int) -> ListItem:
        """Record that an item was actually used; starts its cooldown."""
        item = self.get_item(list_id, item_id)
        with transaction(self.db, "mark_item_used", item_id):
            item.last_used_at = utcnow()
            item.use_count = (item.use_count or 0) + 1

        self.db.refresh(item)
        return item
