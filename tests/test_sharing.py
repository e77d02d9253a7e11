"""Tests for the sharing ledger."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from src.models.mixins import ensure_utc, utcnow
from src.models.owner import ListOwner, TribeOwner
from src.models.share import ListShare
from src.schemas.item import ItemCreate
from src.services import tombstone
from src.services.errors import InvalidInputError, NotFoundError, VersionConflictError
from src.services.list_service import ListService
from src.services.ownership import OwnershipRegistry
from src.services.sharing import SharingLedger


def test_share_grants_tribe_ownership(db, user_list):
    """Sharing makes the tribe an owner tied to the share."""
    share = SharingLedger(db).share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")

    assert share.version == 1
    assert share.deleted_at is None
    owner = (
        db.query(ListOwner)
        .filter_by(list_id=user_list.id, owner_id="tribe-hikers", owner_type="tribe")
        .one()
    )
    assert owner.granted_by_share_id == share.id
    assert OwnershipRegistry(db).is_owner(user_list.id, "user-carol", ["tribe-hikers"])


def test_share_twice_keeps_single_row(db, user_list):
    ledger = SharingLedger(db)

    first = ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")
    second = ledger.share_with_tribe(
        user_list.id, "tribe-hikers", shared_by="user-alice", expires_at=utcnow() + timedelta(days=1)
    )

    assert first.id == second.id
    assert second.version == 2
    assert db.query(ListShare).filter_by(list_id=user_list.id).count() == 1


def test_share_unshare_share_reactivates(db, user_list):
    """A revoked share comes back as the same row with a higher version."""
    ledger = SharingLedger(db)
    share = ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")

    ledger.unshare_with_tribe(user_list.id, "tribe-hikers", by_user="user-alice")
    assert ledger.get_list_shares(user_list.id) == []

    again = ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-bob")

    assert again.id == share.id
    assert again.deleted_at is None
    assert again.version == 3
    assert again.shared_by == "user-bob"
    assert [s.id for s in ledger.get_list_shares(user_list.id)] == [share.id]


def test_unshare_revokes_share_granted_owner(db, user_list):
    ledger = SharingLedger(db)
    registry = OwnershipRegistry(db)
    ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")

    ledger.unshare_with_tribe(user_list.id, "tribe-hikers", by_user="user-alice")

    assert not registry.is_owner(user_list.id, "user-carol", ["tribe-hikers"])
    assert [o.owner_id for o in registry.get_owners(user_list.id)] == ["user-alice"]


def test_unshare_keeps_standalone_tribe_owner(db, user_list):
    """Ownership added directly is not tied to the share and survives unsharing."""
    ledger = SharingLedger(db)
    registry = OwnershipRegistry(db)
    registry.add_owner(user_list.id, TribeOwner("tribe-hikers"))
    ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")

    ledger.unshare_with_tribe(user_list.id, "tribe-hikers", by_user="user-alice")

    assert registry.is_owner(user_list.id, "user-carol", ["tribe-hikers"])


def test_unshare_without_share_not_found(db, user_list):
    with pytest.raises(NotFoundError):
        SharingLedger(db).unshare_with_tribe(user_list.id, "tribe-hikers", by_user="user-alice")


def test_share_with_past_expiration_rejected(db, user_list):
    with pytest.raises(InvalidInputError):
        SharingLedger(db).share_with_tribe(
            user_list.id,
            "tribe-hikers",
            shared_by="user-alice",
            expires_at=utcnow() - timedelta(minutes=1),
        )


def test_share_missing_list(db):
    with pytest.raises(NotFoundError):
        SharingLedger(db).share_with_tribe(9999, "tribe-hikers", shared_by="user-alice")


def test_share_with_stale_version(db, user_list):
    ledger = SharingLedger(db)
    ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")
    ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice", expected_version=1)

    with pytest.raises(VersionConflictError):
        ledger.share_with_tribe(
            user_list.id, "tribe-hikers", shared_by="user-alice", expected_version=1
        )


def test_get_shared_lists_loads_related_rows(db, user_list):
    service = ListService(db)
    service.add_item(user_list.id, ItemCreate(name="Rooftop bar"))
    removed = service.add_item(user_list.id, ItemCreate(name="Closed diner"))
    service.remove_item(user_list.id, removed.id)
    SharingLedger(db).share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")

    lists = SharingLedger(db).get_shared_lists("tribe-hikers")

    assert [lst.id for lst in lists] == [user_list.id]
    assert [item.name for item in lists[0].items] == ["Rooftop bar"]
    assert {o.owner_id for o in lists[0].owners} == {"user-alice", "tribe-hikers"}
    assert [s.tribe_id for s in lists[0].shares] == ["tribe-hikers"]
    assert SharingLedger(db).get_shared_lists("tribe-other") == []


def test_concurrent_share_converges_to_single_row(db, user_list):
    """An insert that loses the race for the same (list, tribe) updates the winner's row."""
    ledger = SharingLedger(db)
    first = ledger.share_with_tribe(
        user_list.id, "tribe-hikers", shared_by="user-alice", expires_at=utcnow() + timedelta(days=1)
    )
    real_find = tombstone._find
    lookups = []

    def find_before_other_commit(session, model, key):
        lookups.append(model)
        # The first lookup ran before the other transaction's insert was visible
        if len(lookups) == 1:
            return None
        return real_find(session, model, key)

    later = utcnow() + timedelta(days=2)
    with patch("src.services.tombstone._find", side_effect=find_before_other_commit):
        second = ledger.share_with_tribe(
            user_list.id, "tribe-hikers", shared_by="user-bob", expires_at=later
        )

    assert second.id == first.id
    assert second.version == 2
    assert second.shared_by == "user-bob"
    assert ensure_utc(second.expires_at) == later
    assert db.query(ListShare).filter_by(list_id=user_list.id, tribe_id="tribe-hikers").count() == 1


def test_share_round_trip(db, user_list):
    ledger = SharingLedger(db)

    ledger.share_with_tribe(user_list.id, "tribe-hikers", shared_by="user-alice")
    assert [s.tribe_id for s in ledger.get_list_shares(user_list.id)] == ["tribe-hikers"]

    ledger.unshare_with_tribe(user_list.id, "tribe-hikers", by_user="user-alice")
    assert ledger.get_list_shares(user_list.id) == []
