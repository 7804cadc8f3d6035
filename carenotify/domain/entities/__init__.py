"""Domain entities exposed by the application."""

from .decision import ChannelDecision, DeliveryDecision
from .enums import (
    ALL_CHANNELS,
    Category,
    Channel,
    DeliveryState,
    EmailFrequency,
    GlobalFrequency,
    NotificationType,
    Priority,
    PriorityThreshold,
    UserRole,
)
from .notification import (
    ChannelStatus,
    Notification,
    NotificationContent,
    NotificationInput,
    RecipientEntry,
    RecipientInput,
)
from .preferences import (
    CategoryPreference,
    ChannelPreference,
    ContactInfo,
    GlobalSettings,
    QuietHours,
    TypePreference,
    UserPreferences,
    default_preferences,
)
from .queue_item import (
    QUEUE_STATUS_DELIVERED,
    QUEUE_STATUS_EXPIRED,
    QUEUE_STATUS_FAILED,
    QUEUE_STATUS_LEASED,
    QUEUE_STATUS_QUEUED,
    QUEUE_TERMINAL_STATUSES,
    QueueItem,
)

__all__ = [
    "ALL_CHANNELS",
    "Category",
    "CategoryPreference",
    "Channel",
    "ChannelDecision",
    "ChannelPreference",
    "ChannelStatus",
    "ContactInfo",
    "DeliveryDecision",
    "DeliveryState",
    "EmailFrequency",
    "GlobalFrequency",
    "GlobalSettings",
    "Notification",
    "NotificationContent",
    "NotificationInput",
    "NotificationType",
    "Priority",
    "PriorityThreshold",
    "QUEUE_STATUS_DELIVERED",
    "QUEUE_STATUS_EXPIRED",
    "QUEUE_STATUS_FAILED",
    "QUEUE_STATUS_LEASED",
    "QUEUE_STATUS_QUEUED",
    "QUEUE_TERMINAL_STATUSES",
    "QueueItem",
    "QuietHours",
    "RecipientEntry",
    "RecipientInput",
    "TypePreference",
    "UserPreferences",
    "UserRole",
    "default_preferences",
]
