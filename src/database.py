"""Database configuration and session management."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from src.config import get_settings
from src.services.errors import (
    DuplicateError,
    InternalError,
    InvalidInputError,
    ListEngineError,
    OperationCancelledError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)

settings = get_settings()


def _connect_args(database_url: str) -> dict[str, Any]:
    """Per-dialect connection arguments; PostgreSQL gets a statement timeout."""
    if database_url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={settings.statement_timeout_ms}"}
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
    pool_timeout=10,
    connect_args=_connect_args(settings.database_url),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize the database by creating all tables."""
    # Import all models here so they are registered with Base.metadata
    from src import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def _is_unique_violation(error: IntegrityError) -> bool:
    """PostgreSQL reports SQLSTATE 23505; SQLite only says so in the message."""
    if getattr(error.orig, "pgcode", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(error.orig)


@contextmanager
def storage_errors(operation: str, entity_id: Any = None) -> Iterator[None]:
    """Translate storage exceptions into the domain error taxonomy.

    Domain errors pass through untouched. Anything unclassified is logged with
    the operation and entity id and surfaces as a generic ``InternalError``.
    """
    try:
        yield
    except ListEngineError:
        raise
    except IntegrityError as e:
        if _is_unique_violation(e):
            logger.info(f"{operation}: unique constraint hit for {entity_id}: {e.orig}")
            raise DuplicateError() from e
        # NOT NULL, CHECK and foreign key violations are bad input, not duplicates
        logger.info(f"{operation}: constraint violation for {entity_id}: {e.orig}")
        raise InvalidInputError() from e
    except StaleDataError as e:
        logger.info(f"{operation}: stale version for {entity_id}")
        raise VersionConflictError() from e
    except SQLAlchemyError as e:
        logger.error(f"{operation} failed for {entity_id}: {e}", exc_info=True)
        raise InternalError() from e


@contextmanager
def transaction(db: Session, operation: str, entity_id: Any = None) -> Iterator[Session]:
    """Run a unit of work: commit on success, roll back on any exception.

    Cancellation (``asyncio.CancelledError``, ``KeyboardInterrupt``) also rolls
    back, so a multi-step mutation is never partially applied.
    """
    try:
        with storage_errors(operation, entity_id):
            yield db
            db.commit()
    except BaseException:
        db.rollback()
        raise


def check_deadline(deadline: datetime | None, operation: str) -> None:
    """Raise ``OperationCancelledError`` once ``deadline`` has passed."""
    if deadline is not None and datetime.now(UTC) >= deadline:
        logger.warning(f"{operation}: deadline {deadline.isoformat()} exceeded, aborting")
        raise OperationCancelledError(f"{operation} exceeded its deadline")
