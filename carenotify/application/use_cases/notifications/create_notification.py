"""Use case for creating notifications and scheduling their delivery."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy.orm import Session

from carenotify.application.use_cases.preferences import (
    EvaluatedRecipient,
    PreferenceEvaluator,
    is_critical,
    order_channels,
    parse_time,
    resolve_category,
)
from carenotify.domain.entities import (
    Category,
    Channel,
    DeliveryState,
    Notification,
    NotificationContent,
    NotificationInput,
    Priority,
    QueueItem,
    RecipientEntry,
)
from carenotify.domain.errors import NoEligibleRecipientsError, ValidationError
from carenotify.infrastructure.queue import DeliveryQueue
from carenotify.infrastructure.repositories import NotificationRepository
from carenotify.utils import ensure_app_timezone, now_in_app_timezone, resolve_timezone

from .mapper import EventKind, map_event

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_USER_ID_LENGTH = 64


def _validate(data: NotificationInput, now: datetime) -> tuple[Priority, Category | None]:
    notification_type = (data.type or "").strip()
    if not notification_type:
        raise ValidationError("type", "Notification type is required")

    try:
        priority = Priority.parse(data.priority)
    except ValueError as exc:
        raise ValidationError("priority", str(exc)) from exc

    category: Category | None = None
    if data.category not in (None, ""):
        try:
            category = Category(getattr(data.category, "value", data.category))
        except ValueError as exc:
            raise ValidationError("category", f"Unknown category: {data.category}") from exc

    title = (data.title or "").strip()
    if not title:
        raise ValidationError("title", "Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError("title", f"Title must be at most {MAX_TITLE_LENGTH} characters")
    if not (data.message or "").strip():
        raise ValidationError("message", "Message is required")

    if not data.recipients:
        raise ValidationError("recipients", "At least one recipient is required")
    seen: set[str] = set()
    for index, recipient in enumerate(data.recipients):
        user_id = str(recipient.user_id or "").strip()
        if not user_id:
            raise ValidationError(f"recipients[{index}].user_id", "User id is required")
        if len(user_id) > MAX_USER_ID_LENGTH:
            raise ValidationError(f"recipients[{index}].user_id", "User id is too long")
        if user_id in seen:
            raise ValidationError(
                f"recipients[{index}].user_id", f"Duplicate recipient {user_id}"
            )
        seen.add(user_id)

    scheduled_for = ensure_app_timezone(data.scheduled_for)
    expires_at = ensure_app_timezone(data.expires_at)
    if expires_at is not None:
        if expires_at <= now:
            raise ValidationError("expires_at", "Expiry must be in the future")
        if scheduled_for is not None and expires_at <= scheduled_for:
            raise ValidationError("expires_at", "Expiry must be after the scheduled time")

    return priority, category


def build_notification(data: NotificationInput, *, now: datetime | None = None) -> Notification:
    """Validate ``data`` and return an unsaved :class:`Notification`."""

    now = ensure_app_timezone(now) or now_in_app_timezone()
    priority, category = _validate(data, now)
    notification = Notification(
        id=None,
        type=data.type.strip(),
        priority=priority,
        category=category,
        content=NotificationContent(
            title=data.title.strip(),
            message=data.message.strip(),
            action_url=data.action_url,
            action_text=data.action_text,
            metadata=dict(data.metadata or {}),
        ),
        recipients=[
            RecipientEntry(user_id=str(recipient.user_id).strip(), user_role=recipient.user_role)
            for recipient in data.recipients
        ],
        created_at=now,
        scheduled_for=ensure_app_timezone(data.scheduled_for),
        expires_at=ensure_app_timezone(data.expires_at),
    )
    if notification.category is None:
        notification.category = resolve_category(notification)
    return notification


def next_digest_time(evaluated: EvaluatedRecipient, after: datetime) -> datetime:
    """Return the next email digest slot for the recipient, strictly after ``after``."""

    preferences = evaluated.preferences
    email_prefs = preferences.channel(Channel.EMAIL)
    digest_time = email_prefs.digest_time if email_prefs is not None else "09:00"
    try:
        minutes = parse_time(digest_time)
    except (AttributeError, ValueError):
        logger.warning(
            "Invalid digest time %r for user %s; using 09:00", digest_time, evaluated.user_id
        )
        minutes = 9 * 60

    tz = resolve_timezone(preferences.global_settings.quiet_hours.timezone) or timezone.utc
    local = after.astimezone(tz)
    slot = local.replace(hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0)
    if slot <= local:
        slot += timedelta(days=1)
    return ensure_app_timezone(slot)


def _queue_items(
    notification: Notification,
    evaluated: EvaluatedRecipient,
    channels: list[Channel],
    ready_at: datetime,
) -> list[QueueItem]:
    decision = evaluated.decision
    digest_channels = set() if decision.critical else set(decision.digest_channels)
    immediate = [channel for channel in channels if channel not in digest_channels]
    deferred = [channel for channel in channels if channel in digest_channels]

    items: list[QueueItem] = []
    if immediate:
        items.append(
            QueueItem(
                id=None,
                notification_id=notification.id,
                recipient_id=evaluated.user_id,
                priority=notification.priority,
                channels=immediate,
                next_retry_at=ready_at,
            )
        )
    if deferred:
        items.append(
            QueueItem(
                id=None,
                notification_id=notification.id,
                recipient_id=evaluated.user_id,
                priority=notification.priority,
                channels=deferred,
                next_retry_at=next_digest_time(evaluated, ready_at),
                digest=True,
            )
        )
    return items


def _fail_unqueued(
    repository: NotificationRepository,
    notification: Notification,
    error: str,
    at: datetime,
) -> None:
    repository.session.rollback()
    for recipient in notification.recipients:
        if not recipient.approved_channels:
            continue
        for channel in recipient.approved_channels:
            recipient.record_attempt(channel, DeliveryState.FAILED, error=error, at=at)
        repository.save_recipient(notification.id, recipient)


def create_notification(
    session: Session,
    data: NotificationInput,
    *,
    evaluator: PreferenceEvaluator,
    queue: DeliveryQueue,
    now: datetime | None = None,
) -> Notification:
    """Persist a notification, evaluate its recipients and enqueue their deliveries."""

    now = ensure_app_timezone(now) or now_in_app_timezone()
    repository = NotificationRepository(session)
    notification = repository.create(build_notification(data, now=now))

    ready_at = max(notification.scheduled_for or now, now)
    items: list[QueueItem] = []
    reasons: dict[str, str] = {}
    for recipient in notification.recipients:
        # Quiet hours apply to the time the delivery becomes due.
        evaluated = evaluator.evaluate_for_user(
            recipient.user_id, notification, role=recipient.user_role, now=ready_at
        )
        decision = evaluated.decision
        channels = (
            order_channels(decision.channels, notification.priority)
            if decision.should_deliver
            else []
        )
        recipient.approved_channels = channels
        recipient.evaluation_reason = decision.reason
        repository.save_recipient(notification.id, recipient)
        reasons[recipient.user_id] = decision.reason
        if channels:
            items.extend(_queue_items(notification, evaluated, channels, ready_at))

    if items:
        try:
            queue.enqueue_many(items)
        except Exception as exc:
            logger.exception("Could not queue deliveries for notification %s", notification.id)
            _fail_unqueued(repository, notification, f"enqueue failed: {exc}", now)
            raise
    elif not is_critical(notification):
        error = NoEligibleRecipientsError(notification.id, reasons)
        logger.info("%s: %s", error, reasons)

    logger.info(
        "Notification %s (%s, %s) created for %s recipients; %s deliveries queued",
        notification.id,
        notification.type,
        notification.priority.label,
        len(notification.recipients),
        len(items),
    )
    return notification


def publish_event(
    session: Session,
    kind: EventKind | str,
    payload: Mapping[str, Any],
    *,
    evaluator: PreferenceEvaluator,
    queue: DeliveryQueue,
    now: datetime | None = None,
) -> Notification:
    """Map a domain event and create the resulting notification."""

    data = map_event(kind, payload)
    return create_notification(session, data, evaluator=evaluator, queue=queue, now=now)


__all__ = [
    "build_notification",
    "create_notification",
    "next_digest_time",
    "publish_event",
]
