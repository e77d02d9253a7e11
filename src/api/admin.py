"""Administrative endpoints."""

import logging
from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.dependencies import get_current_user_id
from src.config import get_settings
from src.database import get_db
from src.models.mixins import utcnow
from src.schemas.admin import CleanupResponse
from src.services.errors import ForbiddenError
from src.services.expiration import ExpirationSweeper

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


def require_admin(user_id: Annotated[str, Depends(get_current_user_id)]) -> str:
    if user_id not in get_settings().admin_user_ids:
        raise ForbiddenError("Administrator access required")
    return user_id


@router.post("/shares/cleanup", response_model=CleanupResponse)
async def cleanup_expired_shares(
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Deactivate expired shares now instead of waiting for the scheduled run."""
    deadline = utcnow() + timedelta(seconds=get_settings().share_cleanup_timeout_seconds)
    processed = ExpirationSweeper(db).cleanup_expired_shares(deadline=deadline)
    logger.info(f"Share cleanup triggered by {admin_id}: {processed} shares processed")
    return CleanupResponse(processed=processed)
