"""External sync source adapters.

An adapter fetches the current remote state of a list from its sync source.
Failures are classified as unavailable, timeout or generic errors so the
coordinator can surface them distinctly.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from src.config import get_settings
from src.models.enums import SyncSource
from src.services.errors import (
    ExternalSourceError,
    ExternalSourceTimeoutError,
    ExternalSourceUnavailableError,
    SyncDisabledError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteItem:
    """An item as the sync source reports it."""

    external_id: str
    name: str
    description: str | None = None
    metadata: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "name": self.name,
            "description": self.description,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class RemoteSnapshot:
    """Remote state of a list. ``name`` is None when the source has no list-level data."""

    items: list[RemoteItem] = field(default_factory=list)
    name: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SyncState:
    """What the adapter knows about the previous sync of a list."""

    source: str
    sync_id: str | None
    last_sync_at: datetime | None


class SyncAdapter(ABC):
    """Contract every sync source implements."""

    @abstractmethod
    async def fetch(self, state: SyncState) -> RemoteSnapshot:
        """Return the remote snapshot or raise an ExternalSource* error."""


class HttpSyncAdapter(SyncAdapter):
    """Adapter for sources exposing list items over HTTP/JSON."""

    def __init__(self, base_url: str, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or get_settings().sync_timeout_seconds

    async def fetch(self, state: SyncState) -> RemoteSnapshot:
        if not state.sync_id:
            raise ExternalSourceError("List has no remote identifier")

        params = {}
        if state.last_sync_at is not None:
            params["since"] = state.last_sync_at.isoformat()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/lists/{state.sync_id}", params=params
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {state.source} list {state.sync_id}: {e}")
            raise ExternalSourceTimeoutError() from e
        except httpx.TransportError as e:
            logger.warning(f"Cannot reach {state.source} for list {state.sync_id}: {e}")
            raise ExternalSourceUnavailableError() from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"{state.source} answered {status} for list {state.sync_id}")
            if status == 504:
                raise ExternalSourceTimeoutError() from e
            if status in (502, 503, 429):
                raise ExternalSourceUnavailableError() from e
            raise ExternalSourceError() from e
        except ValueError as e:
            logger.warning(f"Invalid JSON from {state.source} for list {state.sync_id}: {e}")
            raise ExternalSourceError("External sync source returned invalid data") from e

        return parse_snapshot(data)


def parse_snapshot(data: Any) -> RemoteSnapshot:
    """Build a snapshot from the JSON payload of a sync source."""
    if not isinstance(data, dict):
        raise ExternalSourceError("External sync source returned invalid data")
    try:
        items = [
            RemoteItem(
                external_id=str(raw["id"]),
                name=str(raw["name"]),
                description=raw.get("description"),
                metadata=raw.get("metadata"),
            )
            for raw in data.get("items", [])
        ]
    except (AttributeError, KeyError, TypeError) as e:
        raise ExternalSourceError("External sync source returned invalid data") from e
    return RemoteSnapshot(items=items, name=data.get("name"), description=data.get("description"))


class AdapterRegistry:
    """Adapters keyed by sync source name."""

    def __init__(self, adapters: dict[str, SyncAdapter] | None = None):
        self._adapters: dict[str, SyncAdapter] = dict(adapters or {})

    @classmethod
    def from_settings(cls) -> "AdapterRegistry":
        settings = get_settings()
        return cls(
            {
                source: HttpSyncAdapter(url, timeout=settings.sync_timeout_seconds)
                for source, url in settings.sync_source_urls.items()
            }
        )

    def register(self, source: str, adapter: SyncAdapter) -> None:
        self._adapters[source] = adapter

    def get(self, source: str) -> SyncAdapter:
        if source == SyncSource.NONE.value:
            raise SyncDisabledError()
        adapter = self._adapters.get(source)
        if adapter is None:
            raise ExternalSourceUnavailableError(f"No adapter configured for sync source '{source}'")
        return adapter
