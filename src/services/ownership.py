"""Ownership registry: who may act as an owner of a list."""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from src.database import storage_errors, transaction
from src.models.enums import OwnerType
from src.models.list import List
from src.models.owner import ListOwner, Owner, TribeOwner, UserOwner
from src.services.errors import InvalidInputError, NotFoundError
from src.services.tombstone import UpsertOutcome, upsert_with_tombstone

logger = logging.getLogger(__name__)


def _validate_owner(owner: Owner) -> None:
    if not isinstance(owner, UserOwner | TribeOwner):
        raise InvalidInputError(f"Invalid owner type: {type(owner).__name__}")
    if not owner.id:
        raise InvalidInputError("Owner ID is required")


class OwnershipRegistry:
    """Tracks active owners of lists."""

    def __init__(self, db: Session):
        self.db = db

    def _require_list(self, list_id: int) -> List:
        with storage_errors("require_list", list_id):
            list_obj = (
                self.db.query(List).filter(List.id == list_id, List.deleted_at.is_(None)).first()
            )
        if list_obj is None:
            raise NotFoundError(f"List {list_id} not found")
        return list_obj

    def add_owner(self, list_id: int, owner: Owner) -> ListOwner:
        """Make ``owner`` an active owner of the list.

        Idempotent. A previously removed owner is reactivated. An ownership
        that was granted through a share becomes a standalone one, so a later
        unshare leaves it in place.
        """
        _validate_owner(owner)
        self._require_list(list_id)

        with transaction(self.db, "add_owner", list_id):
            row, outcome = upsert_with_tombstone(
                self.db,
                ListOwner,
                key={
                    "list_id": list_id,
                    "owner_id": owner.id,
                    "owner_type": owner.owner_type.value,
                },
                values={"granted_by_share_id": None},
                touch_active=False,
            )

        if outcome != UpsertOutcome.UNCHANGED:
            logger.info(
                f"Owner {owner.owner_type.value} {owner.id} {outcome.value} on list {list_id}"
            )
        self.db.refresh(row)
        return row

    def remove_owner(self, list_id: int, owner: Owner) -> None:
        """Soft delete an ownership. The last remaining owner cannot be removed."""
        _validate_owner(owner)
        self._require_list(list_id)

        with transaction(self.db, "remove_owner", list_id):
            active = (
                self.db.query(ListOwner)
                .filter(ListOwner.list_id == list_id, ListOwner.deleted_at.is_(None))
                .with_for_update()
                .all()
            )
            row = next(
                (
                    o
                    for o in active
                    if o.owner_id == owner.id and o.owner_type == owner.owner_type.value
                ),
                None,
            )
            if row is None:
                raise NotFoundError(f"{owner.owner_type.value} {owner.id} is not an owner of this list")
            if len(active) == 1:
                raise InvalidInputError("Cannot remove the last owner of a list")

            row.soft_delete()
            row.bump_version()

        logger.info(f"Removed owner {owner.owner_type.value} {owner.id} from list {list_id}")

    def get_owners(self, list_id: int) -> list[ListOwner]:
        """Active owners in creation order."""
        self._require_list(list_id)
        with storage_errors("get_owners", list_id):
            return (
                self.db.query(ListOwner)
                .filter(ListOwner.list_id == list_id, ListOwner.deleted_at.is_(None))
                .order_by(ListOwner.id)
                .all()
            )

    def is_owner(self, list_id: int, user_id: str, tribe_ids: Iterable[str] = ()) -> bool:
        """Whether the user owns the list directly or through one of their tribes."""
        tribe_ids = set(tribe_ids)
        with storage_errors("is_owner", list_id):
            rows = (
                self.db.query(ListOwner.owner_type, ListOwner.owner_id)
                .filter(ListOwner.list_id == list_id, ListOwner.deleted_at.is_(None))
                .all()
            )
        for owner_type, owner_id in rows:
            if owner_type == OwnerType.USER.value and owner_id == user_id:
                return True
            if owner_type == OwnerType.TRIBE.value and owner_id in tribe_ids:
                return True
        return False

    def get_owned_list_ids(self, owner: Owner) -> list[int]:
        """IDs of active lists held by ``owner``."""
        _validate_owner(owner)
        with storage_errors("get_owned_list_ids", owner.id):
            rows = (
                self.db.query(ListOwner.list_id)
                .join(List, List.id == ListOwner.list_id)
                .filter(
                    ListOwner.owner_id == owner.id,
                    ListOwner.owner_type == owner.owner_type.value,
                    ListOwner.deleted_at.is_(None),
                    List.deleted_at.is_(None),
                )
                .order_by(ListOwner.list_id)
                .all()
            )
        return [list_id for (list_id,) in rows]
