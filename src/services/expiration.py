"""Expiration sweeper for time-bounded list shares."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from src.database import check_deadline, transaction
from src.models.mixins import utcnow
from src.models.owner import ListOwner
from src.models.share import ListShare

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """Deactivates shares whose ``expires_at`` has passed."""

    def __init__(self, db: Session):
        self.db = db

    def cleanup_expired_shares(
        self,
        now: datetime | None = None,
        deadline: datetime | None = None,
    ) -> int:
        """Soft delete every active share with ``expires_at < now``.

        Ownership rows that were granted through those shares are revoked in
        the same transaction. Every update is conditional on the row still
        being active, so overlapping runs (and concurrent unshares) only ever
        do redundant work. Returns the number of shares deactivated.
        """
        now = now or utcnow()
        operation = "cleanup_expired_shares"

        with transaction(self.db, operation):
            check_deadline(deadline, operation)
            expired_ids = [
                share_id
                for (share_id,) in self.db.query(ListShare.id)
                .filter(
                    ListShare.deleted_at.is_(None),
                    ListShare.expires_at.is_not(None),
                    ListShare.expires_at < now,
                )
                .with_for_update(skip_locked=True)
                .all()
            ]
            if not expired_ids:
                logger.debug("No expired shares found")
                return 0

            result = self.db.execute(
                update(ListShare)
                .where(ListShare.id.in_(expired_ids), ListShare.deleted_at.is_(None))
                .values(deleted_at=now, updated_at=now, version=ListShare.version + 1)
                .execution_options(synchronize_session=False)
            )
            processed = result.rowcount

            check_deadline(deadline, operation)
            owners = self.db.execute(
                update(ListOwner)
                .where(
                    ListOwner.granted_by_share_id.in_(expired_ids),
                    ListOwner.deleted_at.is_(None),
                )
                .values(deleted_at=now, updated_at=now, version=ListOwner.version + 1)
                .execution_options(synchronize_session=False)
            )

        logger.info(
            f"Cleaned up {processed} expired shares, revoked {owners.rowcount} share-granted owners"
        )
        return processed
