"""Sharing ledger: time-bounded list visibility granted to tribes."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from src.database import storage_errors, transaction
from src.models.enums import OwnerType
from src.models.list import List
from src.models.mixins import ensure_utc, utcnow
from src.models.owner import ListOwner
from src.models.share import ListShare
from src.services.errors import InvalidInputError, NotFoundError
from src.services.expiration import ExpirationSweeper
from src.services.list_service import ListService, active_share_filter
from src.services.tombstone import upsert_with_tombstone

logger = logging.getLogger(__name__)


class SharingLedger:
    """Grants and revokes list visibility to tribes.

    Callers are expected to have verified that the acting user is an active
    owner of the list before calling share/unshare.
    """

    def __init__(self, db: Session):
        self.db = db
        self.lists = ListService(db)

    def share_with_tribe(
        self,
        list_id: int,
        tribe_id: str,
        shared_by: str,
        expires_at: datetime | None = None,
        expected_version: int | None = None,
    ) -> ListShare:
        """Share a list with a tribe, or refresh an existing share.

        An active share is updated in place, a revoked one is reactivated,
        otherwise a new share is inserted. The tribe also becomes an owner of
        the list unless it already is one; that ownership is tied to the
        share and goes away with it.
        """
        if not tribe_id:
            raise InvalidInputError("Tribe ID is required")
        if not shared_by:
            raise InvalidInputError("User ID is required")
        expires_at = ensure_utc(expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise InvalidInputError("Expiration date must be in the future")

        self.lists.get_list(list_id)

        with transaction(self.db, "share_with_tribe", list_id):
            share, outcome = upsert_with_tombstone(
                self.db,
                ListShare,
                key={"list_id": list_id, "tribe_id": tribe_id},
                values={"shared_by": shared_by, "expires_at": expires_at},
                expected_version=expected_version,
            )
            self._grant_tribe_ownership(list_id, tribe_id, share.id)

        self.db.refresh(share)
        logger.info(
            f"List {list_id} share with tribe {tribe_id} {outcome.value} by {shared_by} "
            f"(version {share.version}, expires {expires_at})"
        )
        return share

    def _grant_tribe_ownership(self, list_id: int, tribe_id: str, share_id: int) -> None:
        key = {"list_id": list_id, "owner_id": tribe_id, "owner_type": OwnerType.TRIBE.value}
        existing = self.db.query(ListOwner).filter_by(**key).one_or_none()
        if existing is not None and not existing.is_deleted:
            return
        upsert_with_tombstone(
            self.db,
            ListOwner,
            key=key,
            values={"granted_by_share_id": share_id},
            touch_active=False,
        )

    def unshare_with_tribe(self, list_id: int, tribe_id: str, by_user: str) -> None:
        """Revoke a tribe's share and any ownership granted through it."""
        self.lists.get_list(list_id)

        with transaction(self.db, "unshare_with_tribe", list_id):
            share = (
                self.db.query(ListShare)
                .filter(
                    ListShare.list_id == list_id,
                    ListShare.tribe_id == tribe_id,
                    ListShare.deleted_at.is_(None),
                )
                .with_for_update()
                .one_or_none()
            )
            if share is None:
                raise NotFoundError("List is not shared with this tribe")

            share.soft_delete()
            share.bump_version()

            granted = (
                self.db.query(ListOwner)
                .filter(
                    ListOwner.granted_by_share_id == share.id,
                    ListOwner.deleted_at.is_(None),
                )
                .all()
            )
            for owner in granted:
                owner.soft_delete()
                owner.bump_version()

        logger.info(
            f"List {list_id} unshared from tribe {tribe_id} by {by_user}, "
            f"revoked {len(granted)} share-granted owners"
        )

    def get_list_shares(self, list_id: int) -> list[ListShare]:
        """Active, unexpired shares of a list."""
        self.lists.get_list(list_id)
        with storage_errors("get_list_shares", list_id):
            return (
                self.db.query(ListShare)
                .filter(ListShare.list_id == list_id, *active_share_filter())
                .order_by(ListShare.id)
                .all()
            )

    def get_shared_lists(self, tribe_id: str) -> list[List]:
        """Lists currently shared with a tribe, with items, owners and shares loaded."""
        ExpirationSweeper(self.db).cleanup_expired_shares()

        with storage_errors("get_shared_lists", tribe_id):
            rows = (
                self.db.query(ListShare.list_id)
                .filter(ListShare.tribe_id == tribe_id, *active_share_filter())
                .all()
            )
        return self.lists.load_lists(list_id for (list_id,) in rows)
