"""SQLAlchemy models for persisted notifications and their recipients."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from carenotify.infrastructure.database import Base
from carenotify.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation of a notification and its immutable content."""

    __tablename__ = "notification"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(80), nullable=False, index=True)
    category = Column(String(30), nullable=False)
    priority = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(String(500), nullable=True)
    action_text = Column(String(120), nullable=True)
    content_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    scheduled_for = Column(DateTime(), nullable=True)
    expires_at = Column(DateTime(), nullable=True)

    recipients = relationship(
        "NotificationRecipientModel",
        back_populates="notification",
        lazy="selectin",
        order_by="NotificationRecipientModel.position",
        cascade="all, delete-orphan",
    )


class NotificationRecipientModel(Base):
    """Per-recipient delivery record; one row per (notification, user)."""

    __tablename__ = "notification_recipient"
    __table_args__ = (UniqueConstraint("notification_id", "user_id"),)

    id = Column(Integer, primary_key=True, index=True)
    notification_id = Column(
        Integer, ForeignKey("notification.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    user_id = Column(String(64), nullable=False, index=True)
    user_role = Column(String(30), nullable=True)
    approved_channels = Column(JSON, nullable=False, default=list)
    delivery_status = Column(JSON, nullable=False, default=dict)
    evaluation_reason = Column(String(60), nullable=True)

    notification = relationship("NotificationModel", back_populates="recipients")


__all__ = ["NotificationModel", "NotificationRecipientModel"]
