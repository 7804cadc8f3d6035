"""Interfaces the core consumes from its collaborators."""

from __future__ import annotations

from typing import Protocol

from carenotify.domain.entities import UserPreferences


class PreferenceStore(Protocol):
    """Read/write access to per-user notification preferences.

    ``get_preferences`` raises :class:`~carenotify.domain.errors.PreferenceNotFoundError`
    for users without a stored record and
    :class:`~carenotify.domain.errors.PreferenceFetchError` when the backend fails.
    """

    def get_preferences(self, user_id: str) -> UserPreferences:
        ...

    def set_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        ...


__all__ = ["PreferenceStore"]
