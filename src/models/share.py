"""List share model."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import SoftDeleteMixin, TimestampMixin, VersionedMixin


class ListShare(Base, TimestampMixin, SoftDeleteMixin, VersionedMixin):
    """Time-bounded grant of list visibility to a tribe."""

    __tablename__ = "list_sharing"
    __table_args__ = (
        UniqueConstraint("list_id", "tribe_id", name="uq_list_sharing_list_tribe"),
    )

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("lists.id"), nullable=False, index=True)
    tribe_id = Column(String(64), nullable=False, index=True)
    shared_by = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    list = relationship("List", back_populates="shares")

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
