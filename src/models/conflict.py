"""Sync conflict model."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class SyncConflict(Base, TimestampMixin):
    """Divergence between local and remote data awaiting an explicit resolution."""

    __tablename__ = "list_conflicts"

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("lists.id"), nullable=False, index=True)
    # None for list-level conflicts
    item_id = Column(Integer, ForeignKey("list_items.id"), nullable=True, index=True)
    type = Column(String(50), nullable=False)
    local_data = Column(JSON, nullable=False)
    remote_data = Column(JSON, nullable=False)
    resolution = Column(String(20), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Relationships
    list = relationship("List", back_populates="conflicts")
    item = relationship("ListItem")

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None
