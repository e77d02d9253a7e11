"""FastAPI dependencies for identity, membership and services."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.database import get_db
from src.services.auth import decode_access_token
from src.services.list_service import ListService
from src.services.membership import MembershipClient
from src.services.ownership import OwnershipRegistry
from src.services.sharing import SharingLedger
from src.services.sync_adapters import AdapterRegistry
from src.services.sync_service import ConflictResolver, SyncCoordinator

security = HTTPBearer()


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """Get the verified user identifier from the bearer token."""
    payload = decode_access_token(credentials.credentials)

    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(payload["sub"])


def get_membership_client() -> MembershipClient:
    """Get membership service client."""
    return MembershipClient()


async def get_current_user_tribe_ids(
    user_id: Annotated[str, Depends(get_current_user_id)],
    membership: Annotated[MembershipClient, Depends(get_membership_client)],
) -> list[str]:
    """Tribes the current user belongs to."""
    return await membership.get_user_tribe_ids(user_id)


@lru_cache
def get_adapter_registry() -> AdapterRegistry:
    """Sync adapters configured for this process."""
    return AdapterRegistry.from_settings()


def get_list_service(db: Annotated[Session, Depends(get_db)]) -> ListService:
    return ListService(db)


def get_ownership_registry(db: Annotated[Session, Depends(get_db)]) -> OwnershipRegistry:
    return OwnershipRegistry(db)


def get_sharing_ledger(db: Annotated[Session, Depends(get_db)]) -> SharingLedger:
    return SharingLedger(db)


def get_sync_coordinator(
    db: Annotated[Session, Depends(get_db)],
    adapters: Annotated[AdapterRegistry, Depends(get_adapter_registry)],
) -> SyncCoordinator:
    return SyncCoordinator(db, adapters)


def get_conflict_resolver(db: Annotated[Session, Depends(get_db)]) -> ConflictResolver:
    return ConflictResolver(db)
