"""List owner model and the owner variant."""

from dataclasses import dataclass

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.enums import OwnerType
from src.models.mixins import SoftDeleteMixin, TimestampMixin, VersionedMixin
from src.services.errors import InvalidInputError


@dataclass(frozen=True)
class UserOwner:
    """A single user owning a list."""

    id: str

    owner_type = OwnerType.USER
    # Only the owning user sees the list through this ownership.
    grants_tribe_visibility = False


@dataclass(frozen=True)
class TribeOwner:
    """A tribe owning a list; every member of the tribe sees it."""

    id: str

    owner_type = OwnerType.TRIBE
    grants_tribe_visibility = True


Owner = UserOwner | TribeOwner


def make_owner(owner_type: str, owner_id: str) -> Owner:
    """Build an owner variant from its stored (type, id) pair."""
    if not owner_id:
        raise InvalidInputError("Owner ID is required")
    if owner_type == OwnerType.USER.value:
        return UserOwner(owner_id)
    if owner_type == OwnerType.TRIBE.value:
        return TribeOwner(owner_id)
    raise InvalidInputError(f"Invalid owner type: {owner_type}")


class ListOwner(Base, TimestampMixin, SoftDeleteMixin, VersionedMixin):
    """Ownership of a list by a user or a tribe."""

    __tablename__ = "list_owners"
    __table_args__ = (
        UniqueConstraint("list_id", "owner_id", "owner_type", name="uq_list_owners_natural_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("lists.id"), nullable=False, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    owner_type = Column(String(10), nullable=False)
    # Set when the ownership was granted by sharing the list with a tribe
    granted_by_share_id = Column(Integer, ForeignKey("list_sharing.id"), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    list = relationship("List", back_populates="owners")

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    @property
    def owner(self) -> Owner:
        return make_owner(self.owner_type, self.owner_id)
