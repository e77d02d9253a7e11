"""Pytest configuration and fixtures."""

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.api.dependencies import get_adapter_registry, get_membership_client
from src.database import Base, get_db
from src.main import app
from src.models.owner import TribeOwner, UserOwner
from src.schemas.list import ListCreate
from src.services.auth import create_access_token
from src.services.list_service import ListService
from src.services.sync_adapters import AdapterRegistry, RemoteSnapshot, SyncAdapter


class AuthHeaders(dict):
    """Dict subclass that also stores user_id."""

    def __init__(self, *args, user_id: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id


class FakeMembershipClient:
    """In-memory stand-in for the tribe membership service."""

    def __init__(self):
        self.tribes: dict[str, list[str]] = {}

    async def get_user_tribe_ids(self, user_id: str) -> list[str]:
        return list(self.tribes.get(user_id, []))

    async def is_member(self, user_id: str, tribe_id: str) -> bool:
        return tribe_id in self.tribes.get(user_id, [])


class FakeSyncAdapter(SyncAdapter):
    """Returns a preset snapshot, or raises a preset error."""

    def __init__(self, snapshot: RemoteSnapshot | None = None):
        self.snapshot = snapshot or RemoteSnapshot()
        self.error: Exception | None = None
        self.calls = 0

    async def fetch(self, state):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/tribe_lists", "/tribe_lists_test")
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        # For PostgreSQL, create the test database
        from sqlalchemy_utils import create_database, database_exists

        # Create test database if it doesn't exist
        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield
    # Don't drop database - just leave it for next run (each test cleans up after itself)


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def membership():
    """Fake membership service; fill ``membership.tribes[user_id]`` in tests."""
    return FakeMembershipClient()


@pytest.fixture
def fake_adapter():
    return FakeSyncAdapter()


@pytest.fixture
def adapters(fake_adapter):
    return AdapterRegistry({"google_maps": fake_adapter, "manual": fake_adapter})


@pytest.fixture(scope="function")
def client(db, membership, adapters):
    """Create a test client with database, membership and sync overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_membership_client] = lambda: membership
    app.dependency_overrides[get_adapter_registry] = lambda: adapters
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_auth_headers(user_id: str) -> AuthHeaders:
    token = create_access_token(user_id)
    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=user_id)


@pytest.fixture
def auth_headers():
    """Auth headers for the default test user."""
    return make_auth_headers("user-alice")


@pytest.fixture
def other_auth_headers():
    """Auth headers for a second user."""
    return make_auth_headers("user-bob")


@pytest.fixture
def user_list(db):
    """A list owned by user-alice."""
    return ListService(db).create_list(
        ListCreate(name="Date Night Spots", description="Places to try"), UserOwner("user-alice")
    )


@pytest.fixture
def tribe_list(db):
    """A list owned by tribe-hikers."""
    return ListService(db).create_list(ListCreate(name="Trail Ideas"), TribeOwner("tribe-hikers"))
