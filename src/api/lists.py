"""List API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.api.dependencies import (
    get_conflict_resolver,
    get_current_user_id,
    get_current_user_tribe_ids,
    get_list_service,
    get_ownership_registry,
    get_sharing_ledger,
    get_sync_coordinator,
)
from src.database import get_db
from src.models.enums import Visibility
from src.models.list import List
from src.models.owner import TribeOwner, UserOwner, make_owner
from src.schemas.item import ItemCreate, ItemResponse, ItemUpdate
from src.schemas.list import (
    ListCreate,
    ListDetailResponse,
    ListResponse,
    ListUpdate,
    OwnerCreate,
    OwnerResponse,
    ShareCreate,
    ShareResponse,
)
from src.schemas.menu import MenuEntry, MenuRequest, MenuResponse
from src.schemas.sync import (
    ConflictResolve,
    ConflictResponse,
    SyncConfigCreate,
    SyncResultResponse,
)
from src.services.errors import ForbiddenError, NotFoundError
from src.services.list_service import ListService
from src.services.menu_service import MenuGenerator
from src.services.ownership import OwnershipRegistry
from src.services.sharing import SharingLedger
from src.services.sync_service import ConflictResolver, SyncCoordinator

router = APIRouter(prefix="/api/v1/lists", tags=["lists"])

UserId = Annotated[str, Depends(get_current_user_id)]
TribeIds = Annotated[list[str], Depends(get_current_user_tribe_ids)]
Lists = Annotated[ListService, Depends(get_list_service)]
Owners = Annotated[OwnershipRegistry, Depends(get_ownership_registry)]


def get_visible_list(
    lists: ListService, list_id: int, user_id: str, tribe_ids: list[str]
) -> List:
    """Get a list the user owns, can see through a tribe share, or that is public."""
    list_obj = lists.get_list(list_id)
    if list_obj.visibility == Visibility.PUBLIC.value:
        return list_obj
    if list_id in lists.get_visible_list_ids(user_id, tribe_ids):
        return list_obj
    raise NotFoundError(f"List {list_id} not found")


def get_owned_list(
    lists: ListService,
    owners: OwnershipRegistry,
    list_id: int,
    user_id: str,
    tribe_ids: list[str],
) -> List:
    """Get a list the user owns directly or through one of their tribes."""
    list_obj = get_visible_list(lists, list_id, user_id, tribe_ids)
    if not owners.is_owner(list_id, user_id, tribe_ids):
        raise ForbiddenError("Only owners can modify this list")
    return list_obj


def _detail(lists: ListService, list_id: int) -> ListDetailResponse:
    loaded = lists.load_lists([list_id])
    if not loaded:
        raise NotFoundError(f"List {list_id} not found")
    return ListDetailResponse.model_validate(loaded[0])


@router.get("", response_model=list[ListDetailResponse])
async def get_lists(user_id: UserId, tribe_ids: TribeIds, lists: Lists):
    """Get all lists owned by or shared with the current user."""
    list_ids = lists.get_visible_list_ids(user_id, tribe_ids)
    return [ListDetailResponse.model_validate(lst) for lst in lists.load_lists(list_ids)]


@router.post("", response_model=ListResponse, status_code=status.HTTP_201_CREATED)
async def create_list(list_data: ListCreate, user_id: UserId, tribe_ids: TribeIds, lists: Lists):
    """Create a new list owned by the current user or one of their tribes."""
    if list_data.owner_tribe_id is not None:
        if list_data.owner_tribe_id not in tribe_ids:
            raise ForbiddenError("You can only create lists for tribes you belong to")
        owner = TribeOwner(list_data.owner_tribe_id)
    else:
        owner = UserOwner(user_id)
    return lists.create_list(list_data, owner)


@router.post("/menu", response_model=MenuResponse)
async def generate_menu(
    menu_request: MenuRequest,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    db: Annotated[Session, Depends(get_db)],
):
    """Pick weighted items from several lists, skipping recently used ones."""
    visible = set(lists.get_visible_list_ids(user_id, tribe_ids))
    visible |= lists.get_public_list_ids(menu_request.list_ids)
    for list_id in menu_request.list_ids:
        if list_id not in visible:
            raise NotFoundError(f"List {list_id} not found")

    selections = MenuGenerator(db).generate_menu(
        menu_request.list_ids,
        cooldown_days=menu_request.cooldown_days,
        max_items=menu_request.max_items,
        exclude_item_ids=menu_request.exclude_item_ids,
    )
    return MenuResponse(
        items=[
            MenuEntry(
                list_id=s.list_id, weight=s.weight, item=ItemResponse.model_validate(s.item)
            )
            for s in selections
        ]
    )


@router.get("/{list_id}", response_model=ListDetailResponse)
async def get_list(list_id: int, user_id: UserId, tribe_ids: TribeIds, lists: Lists):
    """Get a specific list with its items, owners and shares."""
    get_visible_list(lists, list_id, user_id, tribe_ids)
    return _detail(lists, list_id)


@router.put("/{list_id}", response_model=ListResponse)
async def update_list(
    list_id: int,
    list_data: ListUpdate,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
):
    """Update a list. A stale ``version`` is rejected with 409."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return lists.update_list(list_id, list_data, expected_version=list_data.version)


@router.delete("/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_list(
    list_id: int, user_id: UserId, tribe_ids: TribeIds, lists: Lists, owners: Owners
):
    """Soft delete a list (owners only)."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    lists.delete_list(list_id)


# Items


@router.get("/{list_id}/items", response_model=list[ItemResponse])
async def get_items(list_id: int, user_id: UserId, tribe_ids: TribeIds, lists: Lists):
    """Get the items of a list."""
    get_visible_list(lists, list_id, user_id, tribe_ids)
    return lists.get_items(list_id)


@router.post(
    "/{list_id}/items", response_model=ItemResponse, status_code=status.HTTP_201_CREATED
)
async def add_item(
    list_id: int,
    item_data: ItemCreate,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
):
    """Add an item to a list."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return lists.add_item(list_id, item_data)


@router.put("/{list_id}/items/{item_id}", response_model=ItemResponse)
async def update_item(
    list_id: int,
    item_id: int,
    item_data: ItemUpdate,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
):
    """Update an item."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return lists.update_item(list_id, item_id, item_data)


@router.delete("/{list_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_item(
    list_id: int,
    item_id: int,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
):
    """Soft delete an item."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    lists.remove_item(list_id, item_id)


@router.post("/{list_id}/items/{item_id}/use", response_model=ItemResponse)
async def mark_item_used(
    list_id: int,
    item_id: int,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
):
    """Record that an item was actually used (starts its cooldown)."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return lists.mark_item_used(list_id, item_id)


# Owners


@router.get("/{list_id}/owners", response_model=list[OwnerResponse])
async def get_owners(
    list_id: int, user_id: UserId, tribe_ids: TribeIds, lists: Lists, owners: Owners
):
    """Get the active owners of a list."""
    get_visible_list(lists, list_id, user_id, tribe_ids)
    return owners.get_owners(list_id)


@router.post(
    "/{list_id}/owners", response_model=OwnerResponse, status_code=status.HTTP_201_CREATED
)
async def add_owner(
    list_id: int,
    owner_data: OwnerCreate,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
):
    """Add a user or tribe as owner."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return owners.add_owner(list_id, make_owner(owner_data.owner_type, owner_data.owner_id))


@router.delete("/{list_id}/owners/{owner_type}/{owner_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_owner(
    list_id: int,
    owner_type: str,
    owner_id: str,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
):
    """Remove an owner. The last owner cannot be removed."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    owners.remove_owner(list_id, make_owner(owner_type, owner_id))


# Shares


@router.get("/{list_id}/shares", response_model=list[ShareResponse])
async def get_list_shares(
    list_id: int,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    sharing: Annotated[SharingLedger, Depends(get_sharing_ledger)],
):
    """Get the active shares of a list."""
    get_visible_list(lists, list_id, user_id, tribe_ids)
    return sharing.get_list_shares(list_id)


@router.post(
    "/{list_id}/shares", response_model=ShareResponse, status_code=status.HTTP_201_CREATED
)
async def share_list(
    list_id: int,
    share_data: ShareCreate,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
    sharing: Annotated[SharingLedger, Depends(get_sharing_ledger)],
):
    """Share a list with a tribe, or refresh an existing share (owners only)."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return sharing.share_with_tribe(
        list_id,
        share_data.tribe_id,
        shared_by=user_id,
        expires_at=share_data.expires_at,
        expected_version=share_data.version,
    )


@router.delete("/{list_id}/shares/{tribe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unshare_list(
    list_id: int,
    tribe_id: str,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
    sharing: Annotated[SharingLedger, Depends(get_sharing_ledger)],
):
    """Remove a tribe's access to a list (owners only)."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    sharing.unshare_with_tribe(list_id, tribe_id, by_user=user_id)


# Sync


@router.put("/{list_id}/sync", response_model=ListResponse)
async def configure_sync(
    list_id: int,
    config: SyncConfigCreate,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
    sync: Annotated[SyncCoordinator, Depends(get_sync_coordinator)],
):
    """Bind a list to an external sync source."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return sync.configure_sync(list_id, config.source, config.sync_id, config.version)


@router.delete("/{list_id}/sync", response_model=ListResponse)
async def disable_sync(
    list_id: int,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
    sync: Annotated[SyncCoordinator, Depends(get_sync_coordinator)],
):
    """Stop syncing a list."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return sync.disable_sync(list_id)


@router.post("/{list_id}/sync", response_model=SyncResultResponse)
async def sync_list(
    list_id: int,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
    sync: Annotated[SyncCoordinator, Depends(get_sync_coordinator)],
):
    """Run a sync pass against the list's external source."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return await sync.sync_list(list_id)


@router.get("/{list_id}/conflicts", response_model=list[ConflictResponse])
async def get_conflicts(
    list_id: int,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    sync: Annotated[SyncCoordinator, Depends(get_sync_coordinator)],
    include_resolved: bool = False,
):
    """Get the sync conflicts of a list."""
    get_visible_list(lists, list_id, user_id, tribe_ids)
    return sync.get_conflicts(list_id, include_resolved=include_resolved)


@router.post("/{list_id}/conflicts/{conflict_id}/resolve", response_model=ConflictResponse)
async def resolve_conflict(
    list_id: int,
    conflict_id: int,
    body: ConflictResolve,
    user_id: UserId,
    tribe_ids: TribeIds,
    lists: Lists,
    owners: Owners,
    resolver: Annotated[ConflictResolver, Depends(get_conflict_resolver)],
):
    """Resolve a sync conflict by keeping the local or the remote data."""
    get_owned_list(lists, owners, list_id, user_id, tribe_ids)
    return resolver.resolve_list_conflict(list_id, conflict_id, body.resolution)
