"""SQLAlchemy model backing the delivery queue."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String, Text

from carenotify.infrastructure.database import Base
from carenotify.utils import now_in_app_naive_datetime


class DeliveryQueueItemModel(Base):
    """Persisted queue item; the autoincrement id doubles as the FIFO sequence."""

    __tablename__ = "delivery_queue_item"
    __table_args__ = (
        Index("ix_delivery_queue_dequeue", "status", "priority", "next_retry_at", "id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(Integer, nullable=False, index=True)
    recipient_id = Column(String(64), nullable=False)
    channels = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="queued")
    attempt_count = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    next_retry_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    leased_by = Column(String(64), nullable=True)
    lease_expires_at = Column(DateTime(), nullable=True)
    last_error = Column(Text, nullable=True)
    digest = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    completed_at = Column(DateTime(), nullable=True)


__all__ = ["DeliveryQueueItemModel"]
