"""Routes for reading and changing notification preferences."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from carenotify.application.use_cases.preferences import (
    PreferenceEvaluator,
    get_user_preferences,
    reset_user_preferences,
    update_user_preferences,
)
from carenotify.domain.entities import (
    Category,
    Notification,
    NotificationContent,
    Priority,
)
from carenotify.domain.errors import PreferenceFetchError, ValidationError
from carenotify.domain.ports import PreferenceStore
from carenotify.interfaces.api.dependencies import get_evaluator, get_preference_store
from carenotify.interfaces.api.routes_helpers import validation_exception
from carenotify.interfaces.api.schemas import EvaluationRead, EvaluationRequest, PreferencesRead

router = APIRouter(prefix="/preferences", tags=["preferences"])


def _unavailable(exc: PreferenceFetchError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get("/{user_id}", response_model=PreferencesRead)
def read_preferences(
    user_id: str, store: PreferenceStore = Depends(get_preference_store)
) -> PreferencesRead:
    """Return the stored preferences, or the defaults when none are stored."""

    try:
        preferences, is_default = get_user_preferences(store, user_id)
    except PreferenceFetchError as exc:
        raise _unavailable(exc) from exc
    return PreferencesRead(
        user_id=user_id, is_default=is_default, preferences=preferences.to_dict()
    )


@router.put("/{user_id}", response_model=PreferencesRead)
def update_preferences(
    user_id: str,
    changes: dict[str, Any] = Body(...),
    store: PreferenceStore = Depends(get_preference_store),
) -> PreferencesRead:
    """Validate ``changes`` and merge them over the user's preferences."""

    try:
        preferences = update_user_preferences(store, user_id, changes)
    except ValidationError as exc:
        raise validation_exception(exc) from exc
    except PreferenceFetchError as exc:
        raise _unavailable(exc) from exc
    return PreferencesRead(user_id=user_id, preferences=preferences.to_dict())


@router.delete("/{user_id}", response_model=PreferencesRead)
def reset_preferences(
    user_id: str, store: PreferenceStore = Depends(get_preference_store)
) -> PreferencesRead:
    """Restore the default preferences, keeping contact details."""

    try:
        preferences = reset_user_preferences(store, user_id)
    except PreferenceFetchError as exc:
        raise _unavailable(exc) from exc
    return PreferencesRead(user_id=user_id, is_default=True, preferences=preferences.to_dict())


@router.post("/{user_id}/evaluate", response_model=EvaluationRead)
def evaluate_preferences(
    user_id: str,
    request: EvaluationRequest,
    evaluator: PreferenceEvaluator = Depends(get_evaluator),
) -> EvaluationRead:
    """Dry-run the delivery decision for a hypothetical notification."""

    try:
        priority = Priority.parse(request.priority)
    except ValueError as exc:
        raise validation_exception(ValidationError("priority", str(exc))) from exc
    try:
        category = Category(request.category) if request.category else None
    except ValueError as exc:
        error = ValidationError("category", f"Unknown category: {request.category}")
        raise validation_exception(error) from exc

    notification = Notification(
        id=None,
        type=request.type,
        priority=priority,
        category=category,
        content=NotificationContent(title=request.title, message=request.message),
    )
    evaluated = evaluator.evaluate_for_user(user_id, notification, role=request.user_role)
    return EvaluationRead.from_decision(evaluated.decision)
