"""SQLAlchemy model for stored user notification preferences."""

from sqlalchemy import Column, DateTime, JSON, String

from carenotify.infrastructure.database import Base
from carenotify.utils import now_in_app_naive_datetime


class UserPreferenceModel(Base):
    """One preference document per user."""

    __tablename__ = "user_notification_preferences"

    user_id = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["UserPreferenceModel"]
