"""SQLAlchemy models."""

from src.models.conflict import SyncConflict
from src.models.item import ListItem
from src.models.list import List
from src.models.owner import ListOwner, TribeOwner, UserOwner
from src.models.share import ListShare

__all__ = [
    "List",
    "ListItem",
    "ListOwner",
    "ListShare",
    "SyncConflict",
    "UserOwner",
    "TribeOwner",
]
