"""List item model."""

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import SoftDeleteMixin, TimestampMixin


class ListItem(Base, TimestampMixin, SoftDeleteMixin):
    """An entry in a list: a place, an activity, an interest."""

    __tablename__ = "list_items"

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("lists.id"), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    description = Column(String, nullable=True)
    # None means "use the list's default_weight"
    weight = Column(Float, nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True, index=True)
    use_count = Column(Integer, nullable=False, default=0)
    # Key of this item in the list's sync source
    external_id = Column(String(255), nullable=True, index=True)
    item_metadata = Column("metadata", JSON, nullable=True)

    # Relationships
    list = relationship("List", back_populates="items")

    def effective_weight(self, default_weight: float) -> float:
        """Selection weight, falling back to the owning list's default."""
        return self.weight if self.weight is not None else default_weight
