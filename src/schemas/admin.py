"""Administrative schemas."""

from pydantic import BaseModel


class CleanupResponse(BaseModel):
    """Result of an expired-share cleanup pass."""

    processed: int
