import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SQLAlchemyEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base


class QueueStatus(str, Enum):
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    SERVING = "serving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class QueuePriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"


def _new_id() -> str:
    return str(uuid.uuid4())


class QueueEntry(Base):
    """
    One customer's request for service at a shop, tracked through the
    status lifecycle. Shop and employee are plain identifiers.
    """

    __tablename__ = "queue_entries"

    __table_args__ = (
        Index('ix_queue_entries_shop_status', 'shop_id', 'status'),
        Index('ix_queue_entries_shop_created', 'shop_id', 'created_at'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    shop_id = Column(String(36), nullable=False)
    queue_number = Column(String(32), nullable=False)

    status = Column(
        SQLAlchemyEnum(QueueStatus, name="queue_status_enum", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=QueueStatus.WAITING.value,
    )
    priority = Column(
        SQLAlchemyEnum(QueuePriority, name="queue_priority_enum", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=QueuePriority.NORMAL.value,
    )

    # Minutes
    estimated_wait_time = Column(Integer, nullable=False, default=0)
    actual_wait_time = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    called_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    served_by_employee_id = Column(String(36), nullable=True)
    notes = Column(Text, nullable=True)

    service_lines = relationship(
        "QueueServiceLine",
        back_populates="queue_entry",
        cascade="all, delete-orphan",
        order_by="QueueServiceLine.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<QueueEntry {self.queue_number} shop={self.shop_id} status={self.status}>"


class QueueServiceLine(Base):
    """
    A service requested as part of a queue entry.
    """

    __tablename__ = "queue_service_lines"

    id = Column(String(36), primary_key=True, default=_new_id)
    queue_entry_id = Column(String(36), ForeignKey("queue_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    service_id = Column(String(36), nullable=False, index=True)
    service_name = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)

    queue_entry = relationship("QueueEntry", back_populates="service_lines")
