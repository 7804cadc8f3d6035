"""Preference store implementations backed by SQLAlchemy or process memory."""

from __future__ import annotations

import copy
import threading
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carenotify.domain.entities import UserPreferences
from carenotify.domain.errors import PreferenceFetchError, PreferenceNotFoundError
from carenotify.infrastructure.models import UserPreferenceModel


class PreferenceRepository:
    """Read and write :class:`UserPreferences` rows through an open session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> UserPreferences | None:
        model = self.session.get(UserPreferenceModel, user_id)
        if model is None:
            return None
        return UserPreferences.from_dict(model.data)

    def save(self, user_id: str, preferences: UserPreferences) -> UserPreferences:
        model = self.session.get(UserPreferenceModel, user_id)
        if model is None:
            model = UserPreferenceModel(user_id=user_id)
        model.data = preferences.to_dict()
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return UserPreferences.from_dict(model.data)


class SqlAlchemyPreferenceStore:
    """:class:`~carenotify.domain.ports.PreferenceStore` over the relational database.

    Each call opens its own session so the store can be shared by worker threads.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_preferences(self, user_id: str) -> UserPreferences:
        session = self._session_factory()
        try:
            preferences = PreferenceRepository(session).get(user_id)
        except SQLAlchemyError as exc:
            raise PreferenceFetchError(f"Failed to load preferences for {user_id}") from exc
        finally:
            session.close()
        if preferences is None:
            raise PreferenceNotFoundError(user_id)
        return preferences

    def set_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        session = self._session_factory()
        try:
            PreferenceRepository(session).save(user_id, preferences)
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()


class InMemoryPreferenceStore:
    """Dictionary-backed store, used by tests and local tooling."""

    def __init__(self, initial: dict[str, UserPreferences] | None = None) -> None:
        self._lock = threading.Lock()
        self._preferences: dict[str, UserPreferences] = dict(initial or {})
        self.fail_with: Exception | None = None

    def get_preferences(self, user_id: str) -> UserPreferences:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            preferences = self._preferences.get(user_id)
        if preferences is None:
            raise PreferenceNotFoundError(user_id)
        return copy.deepcopy(preferences)

    def set_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        with self._lock:
            self._preferences[user_id] = copy.deepcopy(preferences)


__all__ = ["InMemoryPreferenceStore", "PreferenceRepository", "SqlAlchemyPreferenceStore"]
