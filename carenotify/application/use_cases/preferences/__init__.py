"""Preference evaluation and management use cases."""

from .evaluation import (
    apply_role_overrides,
    evaluate,
    evaluate_channel,
    is_critical,
    is_emergency_level,
    is_in_quiet_hours,
    is_time_in_range,
    order_channels,
    parse_time,
    resolve_category,
)
from .evaluator import (
    BulkEvaluation,
    EvaluatedRecipient,
    PreferenceEvaluator,
    load_preferences,
)
from .manage import (
    get_user_preferences,
    reset_user_preferences,
    update_user_preferences,
)
from .validation import ensure_valid_preferences, validate_preferences

__all__ = [
    "BulkEvaluation",
    "EvaluatedRecipient",
    "PreferenceEvaluator",
    "apply_role_overrides",
    "ensure_valid_preferences",
    "evaluate",
    "evaluate_channel",
    "get_user_preferences",
    "is_critical",
    "is_emergency_level",
    "is_in_quiet_hours",
    "is_time_in_range",
    "load_preferences",
    "order_channels",
    "parse_time",
    "reset_user_preferences",
    "resolve_category",
    "update_user_preferences",
    "validate_preferences",
]
