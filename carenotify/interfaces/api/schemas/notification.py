"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from carenotify.domain.entities import (
    Notification,
    NotificationInput,
    RecipientEntry,
    RecipientInput,
)


class RecipientCreate(BaseModel):
    user_id: str
    user_role: str | None = None


class NotificationCreate(BaseModel):
    """Payload used to create a notification.

    Field rules are enforced by the creation use case so that errors carry the name
    of the offending field.
    """

    model_config = ConfigDict(extra="forbid")

    type: str
    priority: int | str = Field(..., description="Priority name (low..emergency) or level 1-5")
    title: str
    message: str
    recipients: list[RecipientCreate] = Field(default_factory=list)
    category: str | None = None
    action_url: str | None = None
    action_text: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None

    def to_input(self) -> NotificationInput:
        return NotificationInput(
            type=self.type,
            priority=self.priority,
            title=self.title,
            message=self.message,
            recipients=[
                RecipientInput(user_id=recipient.user_id, user_role=recipient.user_role)
                for recipient in self.recipients
            ],
            category=self.category,
            action_url=self.action_url,
            action_text=self.action_text,
            metadata=self.metadata,
            scheduled_for=self.scheduled_for,
            expires_at=self.expires_at,
        )


class ChannelStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    state: str
    timestamp: datetime
    error: str | None = None
    provider_message_id: str | None = None


class RecipientRead(BaseModel):
    """Delivery record for one recipient."""

    user_id: str
    user_role: str | None = None
    approved_channels: list[str] = Field(default_factory=list)
    delivery_status: dict[str, ChannelStatusRead] = Field(default_factory=dict)
    evaluation_reason: str | None = None

    @classmethod
    def from_entity(cls, recipient: RecipientEntry) -> "RecipientRead":
        return cls(
            user_id=recipient.user_id,
            user_role=recipient.user_role,
            approved_channels=[channel.value for channel in recipient.approved_channels],
            delivery_status={
                channel.value: ChannelStatusRead(
                    state=status.state.value,
                    timestamp=status.timestamp,
                    error=status.error,
                    provider_message_id=status.provider_message_id,
                )
                for channel, status in recipient.delivery_status.items()
            },
            evaluation_reason=recipient.evaluation_reason,
        )


class NotificationRead(BaseModel):
    """Representation of a notification and its per-recipient delivery state."""

    id: int
    type: str
    category: str
    priority: str
    title: str
    message: str
    action_url: str | None = None
    action_text: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    recipients: list[RecipientRead] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        content = notification.content
        return cls(
            id=notification.id or 0,
            type=notification.type,
            category=getattr(notification.category, "value", notification.category) or "",
            priority=notification.priority.label,
            title=content.title,
            message=content.message,
            action_url=content.action_url,
            action_text=content.action_text,
            metadata=dict(content.metadata or {}),
            created_at=notification.created_at,
            scheduled_for=notification.scheduled_for,
            expires_at=notification.expires_at,
            recipients=[RecipientRead.from_entity(entry) for entry in notification.recipients],
        )


__all__ = [
    "ChannelStatusRead",
    "NotificationCreate",
    "NotificationRead",
    "RecipientCreate",
    "RecipientRead",
]
