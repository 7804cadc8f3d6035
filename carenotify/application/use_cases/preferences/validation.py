"""Validation helpers for user-supplied notification preferences.

Only the sections present in the payload are checked so that partial updates can be
validated before they are merged over stored preferences.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from carenotify.domain.entities import (
    Category,
    Channel,
    EmailFrequency,
    GlobalFrequency,
    PriorityThreshold,
)
from carenotify.domain.errors import ValidationError
from carenotify.utils import resolve_timezone

_TIME_PATTERN = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
_PHONE_FORMATTING = re.compile(r"[\s\-()]")

LANGUAGE_CODES = frozenset(
    {
        "en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh",
        "ar", "hi", "tr", "pl", "nl", "sv", "da", "no", "fi", "he",
        "th", "vi", "id", "ms", "tl", "sw", "am", "bn", "gu", "kn",
        "ml", "mr", "pa", "ta", "te", "ur",
    }
)

_CHANNELS = {channel.value for channel in Channel}
_CATEGORIES = {category.value for category in Category}
_THRESHOLDS = {threshold.value for threshold in PriorityThreshold}
_GLOBAL_FREQUENCIES = {frequency.value for frequency in GlobalFrequency}
_EMAIL_FREQUENCIES = {frequency.value for frequency in EmailFrequency}

FieldError = tuple[str, str]


def is_valid_time(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return False
    return int(match.group("hour")) <= 23 and int(match.group("minute")) <= 59


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_PATTERN.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(_PHONE_PATTERN.match(_PHONE_FORMATTING.sub("", value)))


def _check_bool(errors: list[FieldError], data: Mapping[str, Any], key: str, path: str) -> None:
    if key in data and not isinstance(data[key], bool):
        errors.append((f"{path}.{key}", "must be a boolean"))


def _check_channel_list(errors: list[FieldError], value: Any, path: str) -> None:
    if not isinstance(value, list):
        errors.append((path, "must be a list of channels"))
        return
    for channel in value:
        if channel not in _CHANNELS:
            errors.append(
                (path, f"invalid channel {channel!r}; valid channels are {sorted(_CHANNELS)}")
            )


def _validate_quiet_hours(errors: list[FieldError], quiet_hours: Any) -> None:
    path = "global_settings.quiet_hours"
    if not isinstance(quiet_hours, Mapping):
        errors.append((path, "must be an object"))
        return
    _check_bool(errors, quiet_hours, "enabled", path)
    for key in ("start_time", "end_time"):
        if key in quiet_hours and not is_valid_time(quiet_hours[key]):
            errors.append((f"{path}.{key}", "invalid time format, use HH:MM (e.g. 22:00)"))
    if "timezone" in quiet_hours:
        tz_name = quiet_hours["timezone"]
        if not isinstance(tz_name, str) or resolve_timezone(tz_name) is None:
            errors.append((f"{path}.timezone", f"unknown timezone {tz_name!r}"))


def _validate_global_settings(errors: list[FieldError], settings: Any) -> None:
    if not isinstance(settings, Mapping):
        errors.append(("global_settings", "must be an object"))
        return
    _check_bool(errors, settings, "enabled", "global_settings")
    if "quiet_hours" in settings:
        _validate_quiet_hours(errors, settings["quiet_hours"])
    if "frequency" in settings and settings["frequency"] not in _GLOBAL_FREQUENCIES:
        errors.append(
            ("global_settings.frequency", "must be immediate, hourly, daily or weekly")
        )


def _validate_channels(errors: list[FieldError], channels: Any) -> None:
    if not isinstance(channels, Mapping):
        errors.append(("channels", "must be an object"))
        return
    for name, prefs in channels.items():
        path = f"channels.{name}"
        if name not in _CHANNELS:
            errors.append((path, f"invalid channel; valid channels are {sorted(_CHANNELS)}"))
            continue
        if not isinstance(prefs, Mapping):
            errors.append((path, "must be an object"))
            continue
        _check_bool(errors, prefs, "enabled", path)
        if name == Channel.EMAIL.value:
            if "frequency" in prefs and prefs["frequency"] not in _EMAIL_FREQUENCIES:
                errors.append((f"{path}.frequency", "must be immediate or digest"))
            if "digest_time" in prefs and not is_valid_time(prefs["digest_time"]):
                errors.append((f"{path}.digest_time", "invalid time format, use HH:MM (e.g. 09:00)"))
        if name == Channel.SMS.value:
            _check_bool(errors, prefs, "emergency_only", path)


def _validate_categories(errors: list[FieldError], categories: Any) -> None:
    if not isinstance(categories, Mapping):
        errors.append(("categories", "must be an object"))
        return
    for name, prefs in categories.items():
        path = f"categories.{name}"
        if name not in _CATEGORIES:
            errors.append((path, f"invalid category; valid categories are {sorted(_CATEGORIES)}"))
            continue
        if not isinstance(prefs, Mapping):
            errors.append((path, "must be an object"))
            continue
        _check_bool(errors, prefs, "enabled", path)
        if "allowed_channels" in prefs:
            _check_channel_list(errors, prefs["allowed_channels"], f"{path}.allowed_channels")
        if "priority_threshold" in prefs and prefs["priority_threshold"] not in _THRESHOLDS:
            errors.append(
                (f"{path}.priority_threshold", f"must be one of {sorted(_THRESHOLDS)}")
            )


def _validate_notification_types(errors: list[FieldError], types: Any) -> None:
    if not isinstance(types, Mapping):
        errors.append(("notification_types", "must be an object"))
        return
    for name, prefs in types.items():
        path = f"notification_types.{name}"
        if not isinstance(name, str) or not name.strip():
            errors.append(("notification_types", "type names must be non-empty strings"))
            continue
        if not isinstance(prefs, Mapping):
            errors.append((path, "must be an object"))
            continue
        _check_bool(errors, prefs, "enabled", path)
        if "allowed_channels" in prefs:
            _check_channel_list(errors, prefs["allowed_channels"], f"{path}.allowed_channels")


def _validate_contact_info(errors: list[FieldError], contact: Any) -> None:
    if not isinstance(contact, Mapping):
        errors.append(("contact_info", "must be an object"))
        return
    email = contact.get("email")
    if email not in (None, ""):
        if not isinstance(email, str) or not is_valid_email(email):
            errors.append(("contact_info.email", "invalid email format"))
    phone = contact.get("phone")
    if phone not in (None, ""):
        if not isinstance(phone, str) or not is_valid_phone(phone):
            errors.append(
                ("contact_info.phone", "invalid phone format, use international format (e.g. +1234567890)")
            )
    if "language" in contact:
        language = contact["language"]
        if not isinstance(language, str) or language.lower() not in LANGUAGE_CODES:
            errors.append(("contact_info.language", "invalid language code, use ISO 639-1 (e.g. en, es, fr)"))


_SECTIONS = {
    "global_settings": _validate_global_settings,
    "channels": _validate_channels,
    "categories": _validate_categories,
    "notification_types": _validate_notification_types,
    "contact_info": _validate_contact_info,
}


def validate_preferences(payload: Any) -> list[FieldError]:
    """Return ``(field, message)`` pairs for every problem found in ``payload``."""

    if not isinstance(payload, Mapping):
        return [("preferences", "must be an object")]

    errors: list[FieldError] = []
    for key in payload:
        if key not in _SECTIONS:
            errors.append((str(key), "unknown preference section"))
    for key, validator in _SECTIONS.items():
        if key in payload:
            validator(errors, payload[key])
    return errors


def ensure_valid_preferences(payload: Any) -> None:
    """Raise :class:`ValidationError` naming the first invalid field."""

    errors = validate_preferences(payload)
    if errors:
        field, message = errors[0]
        raise ValidationError(field, message)


__all__ = [
    "LANGUAGE_CODES",
    "ensure_valid_preferences",
    "is_valid_email",
    "is_valid_phone",
    "is_valid_time",
    "validate_preferences",
]
