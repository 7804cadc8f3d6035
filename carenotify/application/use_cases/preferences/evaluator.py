"""Evaluate notifications against preferences fetched from a store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from carenotify.domain.entities import (
    Channel,
    DeliveryDecision,
    Notification,
    RecipientInput,
    UserPreferences,
    default_preferences,
)
from carenotify.domain.entities.decision import REASON_ERROR_FALLBACK
from carenotify.domain.errors import PreferenceFetchError, PreferenceNotFoundError
from carenotify.domain.ports import PreferenceStore

from .evaluation import apply_role_overrides, evaluate

logger = logging.getLogger(__name__)


def load_preferences(store: PreferenceStore, user_id: str) -> UserPreferences:
    """Return the stored preferences for ``user_id`` or the documented defaults."""

    try:
        return store.get_preferences(user_id)
    except PreferenceNotFoundError:
        logger.debug("No stored preferences for user %s; using defaults", user_id)
    except PreferenceFetchError as exc:
        logger.warning(
            "Could not fetch preferences for user %s (%s); using defaults", user_id, exc
        )
    return default_preferences()


@dataclass
class EvaluatedRecipient:
    user_id: str
    user_role: str | None
    decision: DeliveryDecision
    preferences: UserPreferences


@dataclass
class BulkEvaluation:
    decisions: dict[str, DeliveryDecision] = field(default_factory=dict)
    total: int = 0
    should_deliver: int = 0
    should_not_deliver: int = 0
    errors: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "should_deliver": self.should_deliver,
            "should_not_deliver": self.should_not_deliver,
            "errors": self.errors,
        }


class PreferenceEvaluator:
    """Combine a :class:`PreferenceStore` with the pure evaluation rules."""

    def __init__(self, store: PreferenceStore) -> None:
        self.store = store

    def evaluate_for_user(
        self,
        user_id: str,
        notification: Notification,
        *,
        role: str | None = None,
        now: datetime | None = None,
    ) -> EvaluatedRecipient:
        preferences = load_preferences(self.store, user_id)
        try:
            decision = evaluate(preferences, notification, now=now)
            decision = apply_role_overrides(decision, role, notification)
        except Exception:
            logger.exception(
                "Preference evaluation failed for user %s; falling back to websocket",
                user_id,
            )
            decision = DeliveryDecision(
                should_deliver=True,
                channels=[Channel.WEBSOCKET],
                reason=REASON_ERROR_FALLBACK,
            )
        return EvaluatedRecipient(
            user_id=user_id,
            user_role=role,
            decision=decision,
            preferences=preferences,
        )

    def bulk_evaluate(
        self,
        user_ids: Iterable[str],
        notification: Notification,
        *,
        now: datetime | None = None,
    ) -> BulkEvaluation:
        result = BulkEvaluation()
        for user_id in dict.fromkeys(user_ids):
            evaluated = self.evaluate_for_user(user_id, notification, now=now)
            result.decisions[user_id] = evaluated.decision
            result.total += 1
            if evaluated.decision.reason == REASON_ERROR_FALLBACK:
                result.errors += 1
            if evaluated.decision.should_deliver:
                result.should_deliver += 1
            else:
                result.should_not_deliver += 1
        return result

    def filtered_recipients(
        self,
        recipients: Iterable[RecipientInput],
        notification: Notification,
        *,
        now: datetime | None = None,
    ) -> list[EvaluatedRecipient]:
        """Return only the recipients that should receive ``notification``."""

        evaluated = (
            self.evaluate_for_user(
                recipient.user_id, notification, role=recipient.user_role, now=now
            )
            for recipient in recipients
        )
        return [
            item
            for item in evaluated
            if item.decision.should_deliver and item.decision.channels
        ]


__all__ = [
    "BulkEvaluation",
    "EvaluatedRecipient",
    "PreferenceEvaluator",
    "load_preferences",
]
