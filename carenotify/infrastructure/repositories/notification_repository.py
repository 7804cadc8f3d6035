"""Persistence helpers for notification entities."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from carenotify.domain.entities import (
    Category,
    Channel,
    ChannelStatus,
    DeliveryState,
    Notification,
    NotificationContent,
    Priority,
    RecipientEntry,
)
from carenotify.infrastructure.models import NotificationModel, NotificationRecipientModel
from carenotify.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide persistence operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, notification_id: int) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        if model is None:
            return None
        return self._to_entity(model)

    def list_recent(self, *, limit: int | None = 50) -> list[Notification]:
        query = self.session.query(NotificationModel).order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel()
        self._apply_entity_to_model(model, notification)
        for position, recipient in enumerate(notification.recipients):
            recipient_model = NotificationRecipientModel(position=position)
            self._apply_recipient_to_model(recipient_model, recipient)
            model.recipients.append(recipient_model)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def get_recipient(self, notification_id: int, user_id: str) -> RecipientEntry | None:
        model = self._get_recipient_model(notification_id, user_id)
        if model is None:
            return None
        return self._to_recipient(model)

    def save_recipient(self, notification_id: int, recipient: RecipientEntry) -> RecipientEntry:
        """Persist the approved channels, status map and reason of ``recipient``."""

        model = self._get_recipient_model(notification_id, recipient.user_id)
        if model is None:
            msg = f"Recipient {recipient.user_id} not found on notification {notification_id}"
            raise ValueError(msg)
        self._apply_recipient_to_model(model, recipient)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_recipient(model)

    def _get_recipient_model(
        self, notification_id: int, user_id: str
    ) -> NotificationRecipientModel | None:
        return (
            self.session.query(NotificationRecipientModel)
            .filter(NotificationRecipientModel.notification_id == notification_id)
            .filter(NotificationRecipientModel.user_id == user_id)
            .one_or_none()
        )

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.type = notification.type
        model.category = (
            Category(notification.category).value
            if notification.category is not None
            else Category.ADMINISTRATIVE.value
        )
        model.priority = int(notification.priority)
        model.title = notification.content.title
        model.message = notification.content.message
        model.action_url = notification.content.action_url
        model.action_text = notification.content.action_text
        model.content_metadata = dict(notification.content.metadata or {})
        model.created_at = ensure_app_naive_datetime(
            notification.created_at or now_in_app_timezone()
        )
        model.scheduled_for = ensure_app_naive_datetime(notification.scheduled_for)
        model.expires_at = ensure_app_naive_datetime(notification.expires_at)

    @staticmethod
    def _apply_recipient_to_model(
        model: NotificationRecipientModel, recipient: RecipientEntry
    ) -> None:
        model.user_id = recipient.user_id
        model.user_role = recipient.user_role
        model.approved_channels = [Channel(channel).value for channel in recipient.approved_channels]
        model.delivery_status = {
            Channel(channel).value: _status_to_dict(status)
            for channel, status in recipient.delivery_status.items()
        }
        model.evaluation_reason = recipient.evaluation_reason

    @staticmethod
    def _to_recipient(model: NotificationRecipientModel) -> RecipientEntry:
        return RecipientEntry(
            id=model.id,
            user_id=model.user_id,
            user_role=model.user_role,
            approved_channels=[Channel(value) for value in model.approved_channels or []],
            delivery_status={
                Channel(channel): _status_from_dict(data)
                for channel, data in (model.delivery_status or {}).items()
            },
            evaluation_reason=model.evaluation_reason,
        )

    @classmethod
    def _to_entity(cls, model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            type=model.type,
            category=Category(model.category),
            priority=Priority(model.priority),
            content=NotificationContent(
                title=model.title,
                message=model.message,
                action_url=model.action_url,
                action_text=model.action_text,
                metadata=dict(model.content_metadata or {}),
            ),
            recipients=[cls._to_recipient(recipient) for recipient in model.recipients],
            created_at=ensure_app_timezone(model.created_at),
            scheduled_for=ensure_app_timezone(model.scheduled_for),
            expires_at=ensure_app_timezone(model.expires_at),
        )


def _status_to_dict(status: ChannelStatus) -> dict[str, Any]:
    return {
        "state": DeliveryState(status.state).value,
        "timestamp": status.timestamp.isoformat(),
        "error": status.error,
        "provider_message_id": status.provider_message_id,
    }


def _status_from_dict(data: dict[str, Any]) -> ChannelStatus:
    return ChannelStatus(
        state=DeliveryState(data["state"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
        error=data.get("error"),
        provider_message_id=data.get("provider_message_id"),
    )


__all__ = ["NotificationRepository"]
