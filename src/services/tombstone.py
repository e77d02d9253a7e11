"""Upsert-with-tombstone for soft-deleted rows keyed by a natural key."""

import logging
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.services.errors import VersionConflictError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class UpsertOutcome(str, Enum):
    """What upsert_with_tombstone did to the row."""

    CREATED = "created"
    REACTIVATED = "reactivated"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def _find(db: Session, model: type[ModelT], key: dict[str, Any]) -> ModelT | None:
    # Soft-deleted rows are included on purpose: they are reactivated, never duplicated.
    return db.query(model).filter_by(**key).with_for_update().one_or_none()


def upsert_with_tombstone(
    db: Session,
    model: type[ModelT],
    key: dict[str, Any],
    values: dict[str, Any],
    *,
    touch_active: bool = True,
    expected_version: int | None = None,
) -> tuple[ModelT, UpsertOutcome]:
    """Insert, reactivate or update the row identified by ``key``.

    Lookup includes soft-deleted rows. A tombstoned row is restored, gets
    ``values`` applied and its version bumped. An active row is updated and
    bumped when ``touch_active`` is set, otherwise only when ``values`` differ
    from what is stored. With no row at all a new one is inserted at
    version 1; an insert that loses a race against a concurrent one for the
    same key is retried as an update of the winner's row.

    Must run inside a transaction; nothing is committed here.
    """
    row = _find(db, model, key)

    if row is None:
        if expected_version is not None:
            raise VersionConflictError()
        candidate = model(**key, **values, version=1)
        try:
            with db.begin_nested():
                db.add(candidate)
                db.flush()
            return candidate, UpsertOutcome.CREATED
        except IntegrityError:
            logger.info(f"Concurrent insert for {model.__name__} {key}, updating instead")
            row = _find(db, model, key)
            if row is None:
                raise

    if expected_version is not None and row.version != expected_version:
        raise VersionConflictError()

    if row.is_deleted:
        outcome = UpsertOutcome.REACTIVATED
        row.restore()
    elif touch_active or any(getattr(row, name) != value for name, value in values.items()):
        outcome = UpsertOutcome.UPDATED
    else:
        return row, UpsertOutcome.UNCHANGED

    for name, value in values.items():
        setattr(row, name, value)
    row.bump_version()
    db.flush()
    return row, outcome
