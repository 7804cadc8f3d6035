"""Repository implementations for infrastructure layer."""

from .notification_repository import NotificationRepository
from .preference_repository import (
    InMemoryPreferenceStore,
    PreferenceRepository,
    SqlAlchemyPreferenceStore,
)

__all__ = [
    "InMemoryPreferenceStore",
    "NotificationRepository",
    "PreferenceRepository",
    "SqlAlchemyPreferenceStore",
]
