"""Preference evaluation: decide whether, and over which channels, to notify a user.

Every function in this module is pure. Callers fetch preferences (substituting the
defaults when the store fails) and pass the evaluation instant explicitly when they
need deterministic results.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Iterable

from carenotify.domain.entities import (
    ALL_CHANNELS,
    Category,
    Channel,
    ChannelDecision,
    DeliveryDecision,
    EmailFrequency,
    Notification,
    NotificationType,
    Priority,
    QuietHours,
    UserPreferences,
    UserRole,
)
from carenotify.domain.entities.decision import (
    REASON_ALL_CHECKS_PASSED,
    REASON_CATEGORY_DISABLED,
    REASON_CHANNEL_DISABLED,
    REASON_CHANNEL_NOT_ENABLED_FOR_CATEGORY,
    REASON_CHANNEL_NOT_ENABLED_FOR_TYPE,
    REASON_CRITICAL_MINIMUM_DELIVERY,
    REASON_CRITICAL_OVERRIDE,
    REASON_GLOBALLY_DISABLED,
    REASON_NO_CHANNELS_ENABLED,
    REASON_NO_EMAIL_ADDRESS,
    REASON_NO_PHONE_NUMBER,
    REASON_PRIORITY_FILTERED,
    REASON_QUIET_HOURS,
    REASON_ROLE_OVERRIDE_CRITICAL,
    REASON_ROLE_OVERRIDE_SYSTEM,
    REASON_SMS_EMERGENCY_ONLY,
    REASON_TYPE_DISABLED,
    REASON_UNKNOWN_CHANNEL,
)
from carenotify.utils import resolve_timezone

logger = logging.getLogger(__name__)

CRITICAL_TYPES = frozenset(
    {NotificationType.SECURITY_ALERTS.value, NotificationType.SYSTEM_MAINTENANCE.value}
)
EMERGENCY_TYPES = frozenset({NotificationType.SECURITY_ALERTS.value})

TYPE_CATEGORIES: dict[str, Category] = {
    NotificationType.PRESCRIPTION_CREATED.value: Category.MEDICAL,
    NotificationType.PRESCRIPTION_READY.value: Category.MEDICAL,
    NotificationType.APPOINTMENT_REMINDER.value: Category.MEDICAL,
    NotificationType.ORDER_STATUS_CHANGED.value: Category.ADMINISTRATIVE,
    NotificationType.PAYMENT_PROCESSED.value: Category.ADMINISTRATIVE,
    NotificationType.INVENTORY_ALERTS.value: Category.ADMINISTRATIVE,
    NotificationType.SYSTEM_MAINTENANCE.value: Category.SYSTEM,
    NotificationType.SECURITY_ALERTS.value: Category.SYSTEM,
}
DEFAULT_CATEGORY = Category.ADMINISTRATIVE

THRESHOLD_MINIMUM_LEVELS = {"all": 1, "high": 3, "critical": 4}
UNKNOWN_PRIORITY_LEVEL = 2

# Dispatch order per priority: urgent messages reach for sms before email.
CHANNEL_PRIORITIES: dict[Priority, tuple[Channel, ...]] = {
    Priority.EMERGENCY: (Channel.WEBSOCKET, Channel.SMS, Channel.EMAIL),
    Priority.CRITICAL: (Channel.WEBSOCKET, Channel.SMS, Channel.EMAIL),
    Priority.HIGH: (Channel.WEBSOCKET, Channel.EMAIL, Channel.SMS),
    Priority.MEDIUM: (Channel.WEBSOCKET, Channel.EMAIL),
    Priority.LOW: (Channel.WEBSOCKET, Channel.EMAIL),
}


def _type_value(notification: Notification) -> str:
    value = notification.type
    return value.value if isinstance(value, NotificationType) else str(value)


def resolve_category(notification: Notification) -> Category:
    """Return the explicit category, else the one implied by the notification type."""

    if notification.category is not None:
        return Category(notification.category)
    return TYPE_CATEGORIES.get(_type_value(notification), DEFAULT_CATEGORY)


def is_critical(notification: Notification) -> bool:
    """Critical notifications bypass global disablement and quiet hours."""

    return (
        notification.priority >= Priority.CRITICAL
        or _type_value(notification) in CRITICAL_TYPES
        or notification.category == Category.SYSTEM
    )


def is_emergency_level(notification: Notification) -> bool:
    if notification.priority == Priority.EMERGENCY:
        return True
    if _type_value(notification) in EMERGENCY_TYPES:
        return True
    return (
        resolve_category(notification) == Category.MEDICAL
        and notification.priority == Priority.CRITICAL
    )


def parse_time(value: str) -> int:
    """Parse ``HH:MM`` into minutes since midnight."""

    hours_text, _, minutes_text = value.strip().partition(":")
    hours, minutes = int(hours_text), int(minutes_text)
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time format: {value}. Use HH:MM")
    return hours * 60 + minutes


def is_time_in_range(current: int, start: int, end: int) -> bool:
    """Containment test on minutes-since-midnight with overnight wrap."""

    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def is_in_quiet_hours(quiet_hours: QuietHours, now: datetime) -> bool:
    if not quiet_hours.enabled:
        return False

    try:
        start = parse_time(quiet_hours.start_time)
        end = parse_time(quiet_hours.end_time)
    except (AttributeError, ValueError):
        logger.warning(
            "Ignoring quiet hours with invalid bounds %r-%r",
            quiet_hours.start_time,
            quiet_hours.end_time,
        )
        return False

    tz = resolve_timezone(quiet_hours.timezone)
    if tz is None:
        logger.warning("Unknown quiet hours timezone %r; using UTC", quiet_hours.timezone)
        tz = timezone.utc

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)
    return is_time_in_range(local.hour * 60 + local.minute, start, end)


def _priority_level(priority: Priority | str | int) -> int:
    try:
        return int(Priority.parse(priority))
    except ValueError:
        return UNKNOWN_PRIORITY_LEVEL


def priority_meets_threshold(threshold: str | None, priority: Priority | str | int) -> bool:
    minimum = THRESHOLD_MINIMUM_LEVELS.get(str(threshold or "all"), 1)
    return _priority_level(priority) >= minimum


def evaluate_channel(
    preferences: UserPreferences,
    notification: Notification,
    channel: Channel | str,
) -> ChannelDecision:
    """Decide whether ``channel`` may carry ``notification`` for this user.

    Type-level and category-level restrictions must both pass.
    """

    channel_name = channel.value if isinstance(channel, Channel) else str(channel)

    channel_prefs = preferences.channel(channel_name)
    if channel_prefs is not None and not channel_prefs.enabled:
        return ChannelDecision(False, REASON_CHANNEL_DISABLED)

    type_prefs = preferences.notification_type(_type_value(notification))
    if type_prefs is not None:
        if not type_prefs.enabled:
            return ChannelDecision(False, REASON_TYPE_DISABLED)
        if type_prefs.allowed_channels and channel_name not in type_prefs.allowed_channels:
            return ChannelDecision(False, REASON_CHANNEL_NOT_ENABLED_FOR_TYPE)

    category_prefs = preferences.category(resolve_category(notification))
    if category_prefs is not None:
        if not category_prefs.enabled:
            return ChannelDecision(False, REASON_CATEGORY_DISABLED)
        if not priority_meets_threshold(
            category_prefs.priority_threshold, notification.priority
        ):
            return ChannelDecision(False, REASON_PRIORITY_FILTERED)
        if (
            category_prefs.allowed_channels
            and channel_name not in category_prefs.allowed_channels
        ):
            return ChannelDecision(False, REASON_CHANNEL_NOT_ENABLED_FOR_CATEGORY)

    digest = False
    if channel_prefs is not None:
        if (
            channel_name == Channel.SMS.value
            and channel_prefs.emergency_only
            and not is_emergency_level(notification)
        ):
            return ChannelDecision(False, REASON_SMS_EMERGENCY_ONLY)
        if (
            channel_name == Channel.EMAIL.value
            and channel_prefs.frequency == EmailFrequency.DIGEST.value
        ):
            digest = True

    contact = preferences.contact_info
    if channel_name == Channel.EMAIL.value:
        if not (contact.email or "").strip():
            return ChannelDecision(False, REASON_NO_EMAIL_ADDRESS)
    elif channel_name == Channel.SMS.value:
        if not (contact.phone or "").strip():
            return ChannelDecision(False, REASON_NO_PHONE_NUMBER)
    elif channel_name != Channel.WEBSOCKET.value:
        return ChannelDecision(False, REASON_UNKNOWN_CHANNEL)

    return ChannelDecision(True, REASON_ALL_CHECKS_PASSED, digest=digest)


def evaluate(
    preferences: UserPreferences,
    notification: Notification,
    *,
    now: datetime | None = None,
) -> DeliveryDecision:
    """Compute the delivery decision for one recipient."""

    critical = is_critical(notification)
    global_settings = preferences.global_settings

    if not global_settings.enabled:
        if critical:
            return DeliveryDecision(
                should_deliver=True,
                channels=list(ALL_CHANNELS),
                reason=REASON_CRITICAL_OVERRIDE,
                critical=True,
            )
        return DeliveryDecision(
            should_deliver=False, channels=[], reason=REASON_GLOBALLY_DISABLED
        )

    if not critical and is_in_quiet_hours(
        global_settings.quiet_hours, now or datetime.now(timezone.utc)
    ):
        return DeliveryDecision(should_deliver=False, channels=[], reason=REASON_QUIET_HOURS)

    decisions = {
        channel: evaluate_channel(preferences, notification, channel)
        for channel in ALL_CHANNELS
    }
    channels = [channel for channel, decision in decisions.items() if decision.should_use]

    if not channels:
        if critical:
            return DeliveryDecision(
                should_deliver=True,
                channels=[Channel.WEBSOCKET],
                reason=REASON_CRITICAL_MINIMUM_DELIVERY,
                critical=True,
                channel_decisions=decisions,
            )
        return DeliveryDecision(
            should_deliver=False,
            channels=[],
            reason=REASON_NO_CHANNELS_ENABLED,
            channel_decisions=decisions,
        )

    return DeliveryDecision(
        should_deliver=True,
        channels=channels,
        reason=REASON_ALL_CHECKS_PASSED,
        critical=critical,
        channel_decisions=decisions,
    )


def apply_role_overrides(
    decision: DeliveryDecision,
    role: UserRole | str | None,
    notification: Notification,
) -> DeliveryDecision:
    """Administrators always receive system and critical notifications."""

    if role is None or str(getattr(role, "value", role)) != UserRole.ADMIN.value:
        return decision

    if is_critical(notification):
        return dataclasses.replace(
            decision,
            should_deliver=True,
            channels=list(ALL_CHANNELS),
            reason=REASON_ROLE_OVERRIDE_CRITICAL,
            critical=True,
        )
    if resolve_category(notification) == Category.SYSTEM:
        return dataclasses.replace(
            decision,
            should_deliver=True,
            channels=decision.channels or [Channel.WEBSOCKET, Channel.EMAIL],
            reason=REASON_ROLE_OVERRIDE_SYSTEM,
        )
    return decision


def order_channels(channels: Iterable[Channel], priority: Priority) -> list[Channel]:
    """Return ``channels`` in dispatch order for ``priority``.

    Channels the priority table does not rank keep their relative order at the end.
    """

    approved = list(dict.fromkeys(channels))
    ranking = CHANNEL_PRIORITIES.get(priority, ALL_CHANNELS)
    ordered = [channel for channel in ranking if channel in approved]
    ordered.extend(channel for channel in approved if channel not in ordered)
    return ordered


__all__ = [
    "CHANNEL_PRIORITIES",
    "CRITICAL_TYPES",
    "TYPE_CATEGORIES",
    "apply_role_overrides",
    "evaluate",
    "evaluate_channel",
    "is_critical",
    "is_emergency_level",
    "is_in_quiet_hours",
    "is_time_in_range",
    "order_channels",
    "parse_time",
    "priority_meets_threshold",
    "resolve_category",
]
