"""List model."""

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, String
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.enums import ListType, SyncSource, SyncStatus, Visibility
from src.models.mixins import SoftDeleteMixin, TimestampMixin, VersionedMixin

LIST_NAME_MAX_LENGTH = 255


class List(Base, TimestampMixin, SoftDeleteMixin, VersionedMixin):
    """A named, typed collection of items, collaboratively owned and optionally shared."""

    __tablename__ = "lists"
    __table_args__ = (
        CheckConstraint("default_weight > 0", name="ck_lists_default_weight_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(LIST_NAME_MAX_LENGTH), nullable=False)
    description = Column(String, nullable=True)
    type = Column(String(20), nullable=False, default=ListType.GENERAL.value)
    visibility = Column(String(20), nullable=False, default=Visibility.PRIVATE.value)
    default_weight = Column(Float, nullable=False, default=1.0)
    cooldown_days = Column(Integer, nullable=True)
    max_items = Column(Integer, nullable=True)

    # Sync with an external source
    sync_status = Column(String(20), nullable=False, default=SyncStatus.NONE.value, index=True)
    sync_source = Column(String(50), nullable=False, default=SyncSource.NONE.value)
    sync_id = Column(String(255), nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    # Relationships
    items = relationship("ListItem", back_populates="list", order_by="ListItem.id")
    owners = relationship("ListOwner", back_populates="list", order_by="ListOwner.id")
    shares = relationship("ListShare", back_populates="list", order_by="ListShare.id")
    conflicts = relationship("SyncConflict", back_populates="list", order_by="SyncConflict.id")

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    @property
    def sync_enabled(self) -> bool:
        return self.sync_source != SyncSource.NONE.value
