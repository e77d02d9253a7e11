"""Client for the tribe membership service."""

import logging

import httpx

from src.config import get_settings
from src.services.errors import ExternalSourceUnavailableError

logger = logging.getLogger(__name__)


class MembershipClient:
    """Answers which tribes a user belongs to.

    Membership is computed elsewhere; this only asks.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.membership_service_url).rstrip("/")
        self.timeout = timeout or settings.membership_timeout_seconds

    async def _get(self, path: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}{path}")
                response.raise_for_status()
                return response
        except httpx.HTTPError as e:
            logger.error(f"Membership service call {path} failed: {e}")
            raise ExternalSourceUnavailableError("Membership service is unavailable") from e

    async def get_user_tribe_ids(self, user_id: str) -> list[str]:
        """IDs of the tribes a user is an active member of."""
        response = await self._get(f"/users/{user_id}/tribes")
        return [str(tribe["id"]) for tribe in response.json().get("tribes", [])]

    async def is_member(self, user_id: str, tribe_id: str) -> bool:
        return tribe_id in await self.get_user_tribe_ids(user_id)
