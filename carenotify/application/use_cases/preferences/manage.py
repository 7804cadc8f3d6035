"""Use cases for reading and changing a user's notification preferences."""

from __future__ import annotations

from typing import Any, Mapping

from carenotify.domain.entities import UserPreferences, default_preferences
from carenotify.domain.errors import PreferenceNotFoundError
from carenotify.domain.ports import PreferenceStore

from .validation import ensure_valid_preferences


def get_user_preferences(
    store: PreferenceStore, user_id: str
) -> tuple[UserPreferences, bool]:
    """Return ``(preferences, is_default)`` for ``user_id``.

    Store failures propagate here; only delivery paths substitute defaults silently.
    """

    try:
        return store.get_preferences(user_id), False
    except PreferenceNotFoundError:
        return default_preferences(), True


def update_user_preferences(
    store: PreferenceStore, user_id: str, changes: Mapping[str, Any]
) -> UserPreferences:
    """Validate ``changes`` and merge them over the current preferences."""

    ensure_valid_preferences(changes)
    current, _ = get_user_preferences(store, user_id)
    updated = current.merged(changes)
    store.set_preferences(user_id, updated)
    return updated


def reset_user_preferences(store: PreferenceStore, user_id: str) -> UserPreferences:
    """Restore the defaults while keeping the user's contact details."""

    current, _ = get_user_preferences(store, user_id)
    preferences = default_preferences(current.contact_info)
    store.set_preferences(user_id, preferences)
    return preferences


__all__ = [
    "get_user_preferences",
    "reset_user_preferences",
    "update_user_preferences",
]
