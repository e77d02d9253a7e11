"""Tribe-facing list endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import get_current_user_id, get_membership_client, get_sharing_ledger
from src.schemas.list import ListDetailResponse
from src.services.errors import ForbiddenError
from src.services.membership import MembershipClient
from src.services.sharing import SharingLedger

router = APIRouter(prefix="/api/v1/tribes", tags=["tribes"])


@router.get("/{tribe_id}/lists", response_model=list[ListDetailResponse])
async def get_shared_lists(
    tribe_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    membership: Annotated[MembershipClient, Depends(get_membership_client)],
    sharing: Annotated[SharingLedger, Depends(get_sharing_ledger)],
):
    """Get the lists currently shared with a tribe the user belongs to."""
    if not await membership.is_member(user_id, tribe_id):
        raise ForbiddenError("You are not a member of this tribe")
    return sharing.get_shared_lists(tribe_id)
