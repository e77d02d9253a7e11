"""List synchronization against external sources, and conflict resolution."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from src.config import get_settings
from src.database import check_deadline, storage_errors, transaction
from src.models.conflict import SyncConflict
from src.models.enums import ConflictResolution, ConflictType, SyncSource, SyncStatus
from src.models.item import ListItem
from src.models.list import List
from src.models.mixins import ensure_utc, utcnow
from src.services.errors import (
    ConflictAlreadyResolvedError,
    ConflictNotFoundError,
    ExternalSourceTimeoutError,
    InvalidInputError,
    InvalidResolutionError,
    ListEngineError,
    NotFoundError,
    OperationCancelledError,
    SyncDisabledError,
)
from src.services.list_service import ListService, check_version
from src.services.sync_adapters import (
    AdapterRegistry,
    RemoteItem,
    RemoteSnapshot,
    SyncAdapter,
    SyncState,
)

logger = logging.getLogger(__name__)

# Allowed sync status transitions
SYNC_TRANSITIONS: dict[SyncStatus, set[SyncStatus]] = {
    SyncStatus.NONE: {SyncStatus.PENDING},
    SyncStatus.PENDING: {SyncStatus.SYNCED, SyncStatus.CONFLICT, SyncStatus.NONE},
    SyncStatus.SYNCED: {SyncStatus.PENDING, SyncStatus.CONFLICT, SyncStatus.NONE},
    SyncStatus.CONFLICT: {SyncStatus.PENDING, SyncStatus.SYNCED, SyncStatus.NONE},
}


def transition(list_obj: List, new_status: SyncStatus) -> None:
    """Move a list to ``new_status``; the caller bumps the version."""
    current = SyncStatus(list_obj.sync_status)
    if new_status not in SYNC_TRANSITIONS[current]:
        raise InvalidInputError(
            f"Invalid sync transition from '{current.value}' to '{new_status.value}'"
        )
    list_obj.sync_status = new_status.value
    if new_status == SyncStatus.SYNCED:
        list_obj.last_sync_at = utcnow()


def item_snapshot(item: ListItem) -> dict[str, Any]:
    return {
        "external_id": item.external_id,
        "name": item.name,
        "description": item.description,
        "metadata": item.item_metadata,
    }


def _differs(item: ListItem, remote: RemoteItem) -> bool:
    return (
        item.name != remote.name
        or (item.description or None) != (remote.description or None)
        or (item.item_metadata or {}) != (remote.metadata or {})
    )


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a sync pass."""

    list_id: int
    status: SyncStatus
    conflicts_created: int
    items_added: int


class SyncCoordinator:
    """Reconciles lists with their external sync source."""

    def __init__(self, db: Session, adapters: AdapterRegistry | None = None):
        self.db = db
        self.adapters = adapters or AdapterRegistry.from_settings()
        self.lists = ListService(db)
        self.timeout = get_settings().sync_timeout_seconds

    def configure_sync(
        self,
        list_id: int,
        source: SyncSource,
        sync_id: str | None,
        expected_version: int | None = None,
    ) -> List:
        """Bind a list to a sync source. Only allowed while sync is off."""
        list_obj = self.lists.get_list(list_id)
        check_version(list_obj.version, expected_version)
        if list_obj.sync_status != SyncStatus.NONE.value:
            raise InvalidInputError("Sync is already enabled for this list")
        if source == SyncSource.NONE:
            raise InvalidInputError("A sync source is required")
        if source == SyncSource.GOOGLE_MAPS and not sync_id:
            raise InvalidInputError("Google Maps sync requires a sync ID")

        with transaction(self.db, "configure_sync", list_id):
            list_obj.sync_source = source.value
            list_obj.sync_id = sync_id
            list_obj.last_sync_at = None
            list_obj.bump_version()

        self.db.refresh(list_obj)
        logger.info(f"Configured {source.value} sync for list {list_id}")
        return list_obj

    def disable_sync(self, list_id: int, expected_version: int | None = None) -> List:
        """Unbind a list from its source; open conflicts are closed keeping local data."""
        list_obj = self.lists.get_list(list_id)
        check_version(list_obj.version, expected_version)
        if not list_obj.sync_enabled:
            raise SyncDisabledError()

        with transaction(self.db, "disable_sync", list_id):
            if list_obj.sync_status != SyncStatus.NONE.value:
                transition(list_obj, SyncStatus.NONE)
            list_obj.sync_source = SyncSource.NONE.value
            list_obj.sync_id = None
            list_obj.last_sync_at = None
            now = utcnow()
            for conflict in self._open_conflicts(list_id):
                conflict.resolution = ConflictResolution.ACCEPT_LOCAL.value
                conflict.resolved_at = now
            list_obj.bump_version()

        self.db.refresh(list_obj)
        logger.info(f"Disabled sync for list {list_id}")
        return list_obj

    def get_conflicts(self, list_id: int, include_resolved: bool = False) -> list[SyncConflict]:
        self.lists.get_list(list_id)
        query = self.db.query(SyncConflict).filter(SyncConflict.list_id == list_id)
        if not include_resolved:
            query = query.filter(SyncConflict.resolved_at.is_(None))
        with storage_errors("get_conflicts", list_id):
            return query.order_by(SyncConflict.id).all()

    def _open_conflicts(self, list_id: int) -> list[SyncConflict]:
        return (
            self.db.query(SyncConflict)
            .filter(SyncConflict.list_id == list_id, SyncConflict.resolved_at.is_(None))
            .all()
        )

    async def sync_list(self, list_id: int, deadline: datetime | None = None) -> SyncResult:
        """Run one sync pass for a list.

        The list is marked pending, the source is fetched, and divergences
        become conflicts instead of overwriting local data. If the fetch or the
        reconciliation fails, times out or is cancelled, the reconciliation is
        rolled back and the list returns to the status it had before the pass.
        """
        list_obj = self.lists.get_list(list_id)
        if not list_obj.sync_enabled:
            raise SyncDisabledError()
        adapter = self.adapters.get(list_obj.sync_source)

        prior = SyncStatus(list_obj.sync_status)
        state = SyncState(
            source=list_obj.sync_source,
            sync_id=list_obj.sync_id,
            last_sync_at=ensure_utc(list_obj.last_sync_at),
        )

        if prior != SyncStatus.PENDING:
            with transaction(self.db, "sync_list.start", list_id):
                transition(list_obj, SyncStatus.PENDING)
                list_obj.bump_version()

        logger.info(f"Syncing list {list_id} from {state.source} (was {prior.value})")
        try:
            snapshot = await self._fetch(adapter, state, deadline)
            result = self._reconcile(list_id, snapshot, deadline)
        except BaseException as e:
            logger.warning(f"Sync of list {list_id} failed: {e!r}, reverting to {prior.value}")
            self._revert(list_id, prior, state.last_sync_at)
            raise

        logger.info(
            f"Synced list {list_id}: {result.status.value}, "
            f"{result.conflicts_created} new conflicts, {result.items_added} items added"
        )
        return result

    async def _fetch(
        self, adapter: SyncAdapter, state: SyncState, deadline: datetime | None
    ) -> RemoteSnapshot:
        timeout = self.timeout
        if deadline is not None:
            remaining = (deadline - utcnow()).total_seconds()
            if remaining <= 0:
                raise OperationCancelledError("Sync exceeded its deadline")
            timeout = min(timeout, remaining)

        try:
            return await asyncio.wait_for(adapter.fetch(state), timeout=timeout)
        except TimeoutError as e:
            if deadline is not None and utcnow() >= deadline:
                raise OperationCancelledError("Sync exceeded its deadline") from e
            raise ExternalSourceTimeoutError() from e

    def _reconcile(
        self, list_id: int, snapshot: RemoteSnapshot, deadline: datetime | None
    ) -> SyncResult:
        with transaction(self.db, "sync_list.reconcile", list_id):
            check_deadline(deadline, "sync_list")
            list_obj = (
                self.db.query(List)
                .filter(List.id == list_id, List.deleted_at.is_(None))
                .with_for_update()
                .one_or_none()
            )
            if list_obj is None:
                raise NotFoundError(f"List {list_id} not found")

            # Tombstoned rows are included so a local removal is never undone by a re-insert
            local_items = (
                self.db.query(ListItem)
                .filter(ListItem.list_id == list_id)
                .order_by(ListItem.id)
                .all()
            )
            open_conflicts = self._open_conflicts(list_id)
            blocked_item_ids = {c.item_id for c in open_conflicts if c.item_id is not None}
            list_conflict_open = any(c.item_id is None for c in open_conflicts)
            kept_deleted_ids = {
                item_id
                for (item_id,) in self.db.query(SyncConflict.item_id).filter(
                    SyncConflict.list_id == list_id,
                    SyncConflict.type == ConflictType.ITEM_DELETED_LOCAL.value,
                    SyncConflict.resolution == ConflictResolution.ACCEPT_LOCAL.value,
                )
            }

            created: list[SyncConflict] = []

            if snapshot.name is not None and not list_conflict_open:
                local = {"name": list_obj.name, "description": list_obj.description}
                remote = {"name": snapshot.name, "description": snapshot.description}
                if local != remote:
                    created.append(
                        SyncConflict(
                            list_id=list_id,
                            item_id=None,
                            type=ConflictType.LIST_MODIFIED.value,
                            local_data=local,
                            remote_data=remote,
                        )
                    )

            by_external_id: dict[str, ListItem] = {}
            for item in local_items:
                if not item.external_id:
                    continue
                current = by_external_id.get(item.external_id)
                # An active row wins over a tombstone for the same remote item
                if current is None or (current.is_deleted and not item.is_deleted):
                    by_external_id[item.external_id] = item

            seen: set[str] = set()
            added = 0
            for remote_item in snapshot.items:
                if remote_item.external_id in seen:
                    continue
                seen.add(remote_item.external_id)

                local_item = by_external_id.get(remote_item.external_id)
                if local_item is None:
                    self.db.add(
                        ListItem(
                            list_id=list_id,
                            name=remote_item.name,
                            description=remote_item.description,
                            external_id=remote_item.external_id,
                            item_metadata=remote_item.metadata,
                            use_count=0,
                        )
                    )
                    added += 1
                elif local_item.id in blocked_item_ids:
                    continue
                elif local_item.is_deleted:
                    if local_item.id not in kept_deleted_ids:
                        created.append(
                            SyncConflict(
                                list_id=list_id,
                                item_id=local_item.id,
                                type=ConflictType.ITEM_DELETED_LOCAL.value,
                                local_data=item_snapshot(local_item) | {"deleted": True},
                                remote_data=remote_item.as_dict(),
                            )
                        )
                elif _differs(local_item, remote_item):
                    created.append(
                        SyncConflict(
                            list_id=list_id,
                            item_id=local_item.id,
                            type=ConflictType.ITEM_MODIFIED.value,
                            local_data=item_snapshot(local_item),
                            remote_data=remote_item.as_dict(),
                        )
                    )

            for external_id, local_item in by_external_id.items():
                if local_item.is_deleted or local_item.id in blocked_item_ids:
                    continue
                if external_id not in seen:
                    created.append(
                        SyncConflict(
                            list_id=list_id,
                            item_id=local_item.id,
                            type=ConflictType.ITEM_MISSING_REMOTE.value,
                            local_data=item_snapshot(local_item),
                            remote_data={"external_id": external_id, "deleted": True},
                        )
                    )

            self.db.add_all(created)
            check_deadline(deadline, "sync_list")

            status = SyncStatus.CONFLICT if created or open_conflicts else SyncStatus.SYNCED
            transition(list_obj, status)
            list_obj.bump_version()

        return SyncResult(
            list_id=list_id, status=status, conflicts_created=len(created), items_added=added
        )

    def _revert(self, list_id: int, prior: SyncStatus, last_sync_at: datetime | None) -> None:
        try:
            with transaction(self.db, "sync_list.revert", list_id):
                list_obj = self.db.query(List).filter(List.id == list_id).with_for_update().first()
                if list_obj is not None and list_obj.sync_status == SyncStatus.PENDING.value:
                    if prior != SyncStatus.PENDING:
                        transition(list_obj, prior)
                        # A failed pass is not a sync
                        list_obj.last_sync_at = last_sync_at
                        list_obj.bump_version()
        except ListEngineError:
            logger.error(f"Could not revert sync status of list {list_id}", exc_info=True)


class ConflictResolver:
    """Applies resolution decisions to sync conflicts."""

    def __init__(self, db: Session):
        self.db = db

    def resolve_list_conflict(self, list_id: int, conflict_id: int, resolution: str) -> SyncConflict:
        """Resolve one conflict by keeping the local or the remote side.

        Once a list has no open conflicts left it moves back to ``synced``.
        """
        try:
            choice = ConflictResolution(resolution)
        except ValueError as e:
            raise InvalidResolutionError() from e

        with transaction(self.db, "resolve_list_conflict", conflict_id):
            conflict = (
                self.db.query(SyncConflict)
                .filter(SyncConflict.id == conflict_id, SyncConflict.list_id == list_id)
                .with_for_update()
                .one_or_none()
            )
            if conflict is None:
                raise ConflictNotFoundError()
            if conflict.is_resolved:
                raise ConflictAlreadyResolvedError()

            list_obj = (
                self.db.query(List)
                .filter(List.id == list_id, List.deleted_at.is_(None))
                .with_for_update()
                .one_or_none()
            )
            if list_obj is None:
                raise NotFoundError(f"List {list_id} not found")

            list_changed = self._apply(list_obj, conflict, choice)
            conflict.resolution = choice.value
            conflict.resolved_at = utcnow()
            self.db.flush()

            remaining = (
                self.db.query(SyncConflict)
                .filter(SyncConflict.list_id == list_id, SyncConflict.resolved_at.is_(None))
                .count()
            )
            if remaining == 0 and list_obj.sync_status == SyncStatus.CONFLICT.value:
                transition(list_obj, SyncStatus.SYNCED)
                list_changed = True
            if list_changed:
                list_obj.bump_version()

        self.db.refresh(conflict)
        logger.info(
            f"Resolved conflict {conflict_id} on list {list_id} with {choice.value}, "
            f"{remaining} open conflicts left"
        )
        return conflict

    def _apply(self, list_obj: List, conflict: SyncConflict, choice: ConflictResolution) -> bool:
        """Apply the chosen side. Returns True when the list row itself changed."""
        item = None
        if conflict.item_id is not None:
            item = self.db.query(ListItem).filter(ListItem.id == conflict.item_id).one_or_none()

        if choice == ConflictResolution.ACCEPT_LOCAL:
            if conflict.type == ConflictType.ITEM_MISSING_REMOTE.value and item is not None:
                # The item no longer exists remotely; keep it as a local-only item.
                item.external_id = None
            return False

        remote = conflict.remote_data or {}
        if conflict.type == ConflictType.LIST_MODIFIED.value:
            list_obj.name = remote.get("name") or list_obj.name
            list_obj.description = remote.get("description")
            return True
        if item is None:
            return False
        if conflict.type == ConflictType.ITEM_DELETED_LOCAL.value:
            item.restore()
            item.name = remote.get("name") or item.name
            item.description = remote.get("description")
            item.item_metadata = remote.get("metadata")
            return False
        if item.is_deleted:
            return False
        if conflict.type == ConflictType.ITEM_MODIFIED.value:
            item.name = remote.get("name") or item.name
            item.description = remote.get("description")
            item.item_metadata = remote.get("metadata")
        elif conflict.type == ConflictType.ITEM_MISSING_REMOTE.value:
            item.soft_delete()
        return False
