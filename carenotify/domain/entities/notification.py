"""Domain entities describing notifications and their per-recipient delivery records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .enums import Category, Channel, DeliveryState, Priority


@dataclass(frozen=True)
class NotificationContent:
    """Immutable message body shared by every recipient."""

    title: str
    message: str
    action_url: str | None = None
    action_text: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelStatus:
    """Outcome of the latest attempt on one channel."""

    state: DeliveryState
    timestamp: datetime
    error: str | None = None
    provider_message_id: str | None = None


@dataclass
class RecipientEntry:
    """Delivery record for one recipient, owned by its parent notification."""

    user_id: str
    user_role: str | None = None
    approved_channels: list[Channel] = field(default_factory=list)
    delivery_status: dict[Channel, ChannelStatus] = field(default_factory=dict)
    evaluation_reason: str | None = None
    id: int | None = None

    def record_attempt(
        self,
        channel: Channel,
        state: DeliveryState,
        *,
        error: str | None = None,
        provider_message_id: str | None = None,
        at: datetime | None = None,
    ) -> ChannelStatus:
        status = ChannelStatus(
            state=state,
            timestamp=at or datetime.now(timezone.utc),
            error=error,
            provider_message_id=provider_message_id,
        )
        self.delivery_status[channel] = status
        return status

    def is_satisfied(self) -> bool:
        """Return ``True`` once any channel reached the recipient."""

        return any(
            status.state in (DeliveryState.SENT, DeliveryState.DELIVERED)
            for status in self.delivery_status.values()
        )


@dataclass
class Notification:
    """One message intended for one or more recipients."""

    id: int | None
    type: str
    priority: Priority
    content: NotificationContent
    category: Category | None = None
    recipients: list[RecipientEntry] = field(default_factory=list)
    created_at: datetime | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None

    def recipient(self, user_id: str) -> RecipientEntry | None:
        for entry in self.recipients:
            if entry.user_id == user_id:
                return entry
        return None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass
class RecipientInput:
    user_id: str
    user_role: str | None = None


@dataclass
class NotificationInput:
    """Caller-supplied notification data, before validation and id assignment."""

    type: str
    priority: Priority | int | str
    title: str
    message: str
    recipients: list[RecipientInput] = field(default_factory=list)
    category: Category | str | None = None
    action_url: str | None = None
    action_text: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None


__all__ = [
    "ChannelStatus",
    "Notification",
    "NotificationContent",
    "NotificationInput",
    "RecipientEntry",
    "RecipientInput",
]
