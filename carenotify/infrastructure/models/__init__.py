"""ORM models used by the application infrastructure."""

from .notification import NotificationModel, NotificationRecipientModel
from .preference import UserPreferenceModel
from .queue_item import DeliveryQueueItemModel

__all__ = [
    "DeliveryQueueItemModel",
    "NotificationModel",
    "NotificationRecipientModel",
    "UserPreferenceModel",
]
