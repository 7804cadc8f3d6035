"""Enumerations shared by notification entities."""

from __future__ import annotations

from enum import Enum, IntEnum


class Priority(IntEnum):
    """Ordered notification priority; higher values are more urgent."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4
    EMERGENCY = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: "Priority | int | str") -> "Priority":
        """Return the priority named or numbered by ``value``.

        Raises ``ValueError`` for unknown values.
        """

        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid priority: {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in cls.__members__:
                return cls[normalized]
        raise ValueError(f"Invalid priority: {value!r}")


class Channel(str, Enum):
    WEBSOCKET = "websocket"
    EMAIL = "email"
    SMS = "sms"


ALL_CHANNELS: tuple[Channel, ...] = (Channel.WEBSOCKET, Channel.EMAIL, Channel.SMS)


class Category(str, Enum):
    MEDICAL = "medical"
    ADMINISTRATIVE = "administrative"
    SYSTEM = "system"
    MARKETING = "marketing"


class NotificationType(str, Enum):
    """Notification types with built-in category routing."""

    PRESCRIPTION_CREATED = "prescription_created"
    PRESCRIPTION_READY = "prescription_ready"
    ORDER_STATUS_CHANGED = "order_status_changed"
    APPOINTMENT_REMINDER = "appointment_reminder"
    PAYMENT_PROCESSED = "payment_processed"
    INVENTORY_ALERTS = "inventory_alerts"
    SYSTEM_MAINTENANCE = "system_maintenance"
    SECURITY_ALERTS = "security_alerts"


class DeliveryState(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    EXPIRED = "expired"


class PriorityThreshold(str, Enum):
    ALL = "all"
    HIGH = "high"
    CRITICAL = "critical"


class GlobalFrequency(str, Enum):
    IMMEDIATE = "immediate"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class EmailFrequency(str, Enum):
    IMMEDIATE = "immediate"
    DIGEST = "digest"


class UserRole(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    PHARMACY = "pharmacy"
    ADMIN = "admin"


__all__ = [
    "ALL_CHANNELS",
    "Category",
    "Channel",
    "DeliveryState",
    "EmailFrequency",
    "GlobalFrequency",
    "NotificationType",
    "Priority",
    "PriorityThreshold",
    "UserRole",
]
