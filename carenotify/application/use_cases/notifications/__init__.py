"""Notification creation and event publishing use cases."""

from .create_notification import (
    build_notification,
    create_notification,
    next_digest_time,
    publish_event,
)
from .mapper import EventKind, map_event, register, registered_kinds

__all__ = [
    "EventKind",
    "build_notification",
    "create_notification",
    "map_event",
    "next_digest_time",
    "publish_event",
    "register",
    "registered_kinds",
]
