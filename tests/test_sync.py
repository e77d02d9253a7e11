"""Tests for sync coordination and conflict resolution."""

import asyncio
from datetime import timedelta

import pytest

from src.models.conflict import SyncConflict
from src.models.enums import SyncSource, SyncStatus
from src.models.item import ListItem
from src.models.mixins import utcnow
from src.schemas.item import ItemCreate
from src.services.errors import (
    ConflictAlreadyResolvedError,
    ConflictNotFoundError,
    ExternalSourceTimeoutError,
    ExternalSourceUnavailableError,
    InvalidInputError,
    InvalidResolutionError,
    OperationCancelledError,
    SyncDisabledError,
)
from src.services.list_service import ListService
from src.services.sync_adapters import (
    AdapterRegistry,
    RemoteItem,
    RemoteSnapshot,
    SyncAdapter,
    parse_snapshot,
)
from src.services.sync_service import ConflictResolver, SyncCoordinator


class SlowAdapter(SyncAdapter):
    async def fetch(self, state):
        await asyncio.sleep(5)
        return RemoteSnapshot()


@pytest.fixture
def synced_list(db, user_list, adapters):
    """A list bound to a Google Maps list."""
    return SyncCoordinator(db, adapters).configure_sync(
        user_list.id, SyncSource.GOOGLE_MAPS, "gm-date-night"
    )


def _remote(*items, name=None, description=None):
    return RemoteSnapshot(
        items=[RemoteItem(external_id=ext, name=item_name) for ext, item_name in items],
        name=name,
        description=description,
    )


def test_configure_sync_leaves_status_none(db, synced_list):
    assert synced_list.sync_source == "google_maps"
    assert synced_list.sync_id == "gm-date-night"
    assert synced_list.sync_status == SyncStatus.NONE.value
    assert synced_list.version == 2


def test_configure_google_maps_requires_sync_id(db, user_list, adapters):
    with pytest.raises(InvalidInputError):
        SyncCoordinator(db, adapters).configure_sync(user_list.id, SyncSource.GOOGLE_MAPS, None)


@pytest.mark.asyncio
async def test_first_sync_imports_remote_items(db, synced_list, adapters, fake_adapter):
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"), ("p2", "Jazz club"))

    result = await SyncCoordinator(db, adapters).sync_list(synced_list.id)

    assert result.status == SyncStatus.SYNCED
    assert result.items_added == 2
    assert result.conflicts_created == 0
    db.refresh(synced_list)
    assert synced_list.sync_status == "synced"
    assert synced_list.last_sync_at is not None
    assert synced_list.version == 4
    names = [item.name for item in ListService(db).get_items(synced_list.id)]
    assert names == ["Rooftop bar", "Jazz club"]


@pytest.mark.asyncio
async def test_sync_without_source_is_disabled(db, user_list, adapters):
    with pytest.raises(SyncDisabledError):
        await SyncCoordinator(db, adapters).sync_list(user_list.id)


@pytest.mark.asyncio
async def test_remote_change_becomes_conflict_then_resolves(db, synced_list, adapters, fake_adapter):
    """Remote edits never overwrite local data until the conflict is resolved."""
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"))
    await coordinator.sync_list(synced_list.id)

    fake_adapter.snapshot = _remote(("p1", "Rooftop Bar & Grill"))
    result = await coordinator.sync_list(synced_list.id)

    assert result.status == SyncStatus.CONFLICT
    assert result.conflicts_created == 1
    conflicts = coordinator.get_conflicts(synced_list.id)
    assert conflicts[0].type == "item_modified"
    assert conflicts[0].local_data["name"] == "Rooftop bar"
    assert conflicts[0].remote_data["name"] == "Rooftop Bar & Grill"
    item = db.query(ListItem).filter_by(external_id="p1").one()
    assert item.name == "Rooftop bar"

    resolved = ConflictResolver(db).resolve_list_conflict(
        synced_list.id, conflicts[0].id, "accept_remote"
    )

    assert resolved.resolution == "accept_remote"
    assert resolved.resolved_at is not None
    db.refresh(item)
    db.refresh(synced_list)
    assert item.name == "Rooftop Bar & Grill"
    assert synced_list.sync_status == "synced"
    assert coordinator.get_conflicts(synced_list.id) == []
    assert len(coordinator.get_conflicts(synced_list.id, include_resolved=True)) == 1

    with pytest.raises(ConflictAlreadyResolvedError):
        ConflictResolver(db).resolve_list_conflict(synced_list.id, conflicts[0].id, "accept_local")


@pytest.mark.asyncio
async def test_open_conflict_is_not_duplicated(db, synced_list, adapters, fake_adapter):
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"))
    await coordinator.sync_list(synced_list.id)
    fake_adapter.snapshot = _remote(("p1", "Renamed"))

    await coordinator.sync_list(synced_list.id)
    result = await coordinator.sync_list(synced_list.id)

    assert result.conflicts_created == 0
    assert result.status == SyncStatus.CONFLICT
    assert db.query(SyncConflict).filter_by(list_id=synced_list.id).count() == 1


@pytest.mark.asyncio
async def test_missing_remote_item_accept_local_detaches_it(db, synced_list, adapters, fake_adapter):
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"), ("p2", "Jazz club"))
    await coordinator.sync_list(synced_list.id)

    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"))
    await coordinator.sync_list(synced_list.id)
    [conflict] = coordinator.get_conflicts(synced_list.id)
    assert conflict.type == "item_missing_remote"

    ConflictResolver(db).resolve_list_conflict(synced_list.id, conflict.id, "accept_local")

    item = db.query(ListItem).filter_by(name="Jazz club").one()
    assert item.deleted_at is None
    assert item.external_id is None
    result = await coordinator.sync_list(synced_list.id)
    assert result.status == SyncStatus.SYNCED


@pytest.mark.asyncio
async def test_missing_remote_item_accept_remote_removes_it(db, synced_list, adapters, fake_adapter):
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"), ("p2", "Jazz club"))
    await coordinator.sync_list(synced_list.id)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"))
    await coordinator.sync_list(synced_list.id)
    [conflict] = coordinator.get_conflicts(synced_list.id)

    ConflictResolver(db).resolve_list_conflict(synced_list.id, conflict.id, "accept_remote")

    assert [i.name for i in ListService(db).get_items(synced_list.id)] == ["Rooftop bar"]


@pytest.mark.asyncio
async def test_locally_removed_item_is_not_reimported(db, synced_list, adapters, fake_adapter):
    """A synced item removed locally raises a conflict instead of coming back as a duplicate."""
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"), ("p2", "Jazz club"))
    await coordinator.sync_list(synced_list.id)
    removed = db.query(ListItem).filter_by(external_id="p1").one()
    ListService(db).remove_item(synced_list.id, removed.id)

    result = await coordinator.sync_list(synced_list.id)

    assert result.status == SyncStatus.CONFLICT
    assert result.items_added == 0
    assert result.conflicts_created == 1
    assert db.query(ListItem).filter_by(external_id="p1").count() == 1
    [conflict] = coordinator.get_conflicts(synced_list.id)
    assert conflict.type == "item_deleted_local"
    assert conflict.item_id == removed.id
    assert conflict.local_data["deleted"] is True
    assert conflict.remote_data["name"] == "Rooftop bar"

    again = await coordinator.sync_list(synced_list.id)
    assert again.conflicts_created == 0
    assert db.query(ListItem).filter_by(external_id="p1").count() == 1


@pytest.mark.asyncio
async def test_locally_removed_item_accept_remote_restores_it(
    db, synced_list, adapters, fake_adapter
):
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"))
    await coordinator.sync_list(synced_list.id)
    removed = db.query(ListItem).filter_by(external_id="p1").one()
    ListService(db).remove_item(synced_list.id, removed.id)
    fake_adapter.snapshot = _remote(("p1", "Rooftop Bar & Grill"))
    await coordinator.sync_list(synced_list.id)
    [conflict] = coordinator.get_conflicts(synced_list.id)

    ConflictResolver(db).resolve_list_conflict(synced_list.id, conflict.id, "accept_remote")

    db.refresh(removed)
    assert removed.deleted_at is None
    assert removed.name == "Rooftop Bar & Grill"
    assert [i.name for i in ListService(db).get_items(synced_list.id)] == ["Rooftop Bar & Grill"]
    result = await coordinator.sync_list(synced_list.id)
    assert result.status == SyncStatus.SYNCED
    assert result.items_added == 0


@pytest.mark.asyncio
async def test_locally_removed_item_accept_local_stays_removed(
    db, synced_list, adapters, fake_adapter
):
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"))
    await coordinator.sync_list(synced_list.id)
    removed = db.query(ListItem).filter_by(external_id="p1").one()
    ListService(db).remove_item(synced_list.id, removed.id)
    await coordinator.sync_list(synced_list.id)
    [conflict] = coordinator.get_conflicts(synced_list.id)

    ConflictResolver(db).resolve_list_conflict(synced_list.id, conflict.id, "accept_local")

    result = await coordinator.sync_list(synced_list.id)
    assert result.status == SyncStatus.SYNCED
    assert result.conflicts_created == 0
    assert result.items_added == 0
    assert ListService(db).get_items(synced_list.id) == []
    assert db.query(ListItem).filter_by(external_id="p1").count() == 1


@pytest.mark.asyncio
async def test_list_level_conflict_accept_remote_renames(db, synced_list, adapters, fake_adapter):
    coordinator = SyncCoordinator(db, adapters)
    fake_adapter.snapshot = _remote(name="Date Night (Maps)", description="Places to try")
    await coordinator.sync_list(synced_list.id)
    [conflict] = coordinator.get_conflicts(synced_list.id)
    assert conflict.type == "list_modified"
    assert conflict.item_id is None
    db.refresh(synced_list)
    version = synced_list.version

    ConflictResolver(db).resolve_list_conflict(synced_list.id, conflict.id, "accept_remote")

    db.refresh(synced_list)
    assert synced_list.name == "Date Night (Maps)"
    assert synced_list.sync_status == "synced"
    assert synced_list.version == version + 1


@pytest.mark.asyncio
async def test_adapter_timeout_reverts_status(db, synced_list, adapters, fake_adapter):
    fake_adapter.snapshot = _remote(("p1", "Rooftop bar"))
    coordinator = SyncCoordinator(db, adapters)
    await coordinator.sync_list(synced_list.id)
    db.refresh(synced_list)
    last_sync_at = synced_list.last_sync_at

    fake_adapter.error = ExternalSourceTimeoutError()
    with pytest.raises(ExternalSourceTimeoutError):
        await coordinator.sync_list(synced_list.id)

    db.refresh(synced_list)
    assert synced_list.sync_status == "synced"
    assert synced_list.last_sync_at == last_sync_at


@pytest.mark.asyncio
async def test_slow_adapter_times_out(db, synced_list):
    coordinator = SyncCoordinator(db, AdapterRegistry({"google_maps": SlowAdapter()}))
    coordinator.timeout = 0.05

    with pytest.raises(ExternalSourceTimeoutError):
        await coordinator.sync_list(synced_list.id)

    db.refresh(synced_list)
    assert synced_list.sync_status == "none"


@pytest.mark.asyncio
async def test_sync_past_deadline_is_cancelled(db, synced_list, adapters):
    with pytest.raises(OperationCancelledError):
        await SyncCoordinator(db, adapters).sync_list(
            synced_list.id, deadline=utcnow() - timedelta(seconds=1)
        )

    db.refresh(synced_list)
    assert synced_list.sync_status == "none"


@pytest.mark.asyncio
async def test_unconfigured_source_is_unavailable(db, user_list):
    coordinator = SyncCoordinator(db, AdapterRegistry({}))
    coordinator.configure_sync(user_list.id, SyncSource.MANUAL, None)

    with pytest.raises(ExternalSourceUnavailableError):
        await coordinator.sync_list(user_list.id)


@pytest.mark.asyncio
async def test_disable_sync_closes_open_conflicts(db, synced_list, adapters, fake_adapter):
    coordinator = SyncCoordinator(db, adapters)
    ListService(db).add_item(synced_list.id, ItemCreate(name="Old spot", external_id="p9"))
    fake_adapter.snapshot = _remote()
    await coordinator.sync_list(synced_list.id)
    assert len(coordinator.get_conflicts(synced_list.id)) == 1

    disabled = coordinator.disable_sync(synced_list.id)

    assert disabled.sync_source == "none"
    assert disabled.sync_status == "none"
    assert coordinator.get_conflicts(synced_list.id) == []
    with pytest.raises(SyncDisabledError):
        coordinator.disable_sync(synced_list.id)


def test_resolve_rejects_unknown_resolution(db, synced_list):
    with pytest.raises(InvalidResolutionError):
        ConflictResolver(db).resolve_list_conflict(synced_list.id, 1, "merge")


def test_resolve_unknown_conflict(db, synced_list):
    with pytest.raises(ConflictNotFoundError):
        ConflictResolver(db).resolve_list_conflict(synced_list.id, 9999, "accept_local")


def test_parse_snapshot_reads_items():
    snapshot = parse_snapshot(
        {
            "name": "Date Night",
            "items": [{"id": 17, "name": "Rooftop bar", "metadata": {"rating": 4.5}}],
        }
    )

    assert snapshot.name == "Date Night"
    assert snapshot.items[0].external_id == "17"
    assert snapshot.items[0].metadata == {"rating": 4.5}
