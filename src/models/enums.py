"""Enums for model fields."""

from enum import Enum


class ListType(str, Enum):
    """Kinds of lists."""

    GENERAL = "general"
    LOCATION = "location"
    ACTIVITY = "activity"
    INTEREST = "interest"
    GOOGLE_MAP = "google_map"


class Visibility(str, Enum):
    """Who can see a list."""

    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


class OwnerType(str, Enum):
    """Kinds of list owners."""

    USER = "user"
    TRIBE = "tribe"


class SyncSource(str, Enum):
    """External systems a list can be mirrored from."""

    NONE = "none"
    GOOGLE_MAPS = "google_maps"
    MANUAL = "manual"
    IMPORTED = "imported"


class SyncStatus(str, Enum):
    """Sync state of a list."""

    NONE = "none"
    PENDING = "pending"
    SYNCED = "synced"
    CONFLICT = "conflict"


class ConflictType(str, Enum):
    """Kinds of divergence detected during a sync pass."""

    LIST_MODIFIED = "list_modified"
    ITEM_MODIFIED = "item_modified"
    ITEM_MISSING_REMOTE = "item_missing_remote"
    # Removed locally but still present in the sync source
    ITEM_DELETED_LOCAL = "item_deleted_local"


class ConflictResolution(str, Enum):
    """Closed vocabulary of conflict resolutions."""

    ACCEPT_LOCAL = "accept_local"
    ACCEPT_REMOTE = "accept_remote"
