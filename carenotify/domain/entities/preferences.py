"""Domain entities representing per-user notification preferences.

Absence of a channel, category or notification type entry means "inherit/allow";
only an explicit entry can restrict delivery.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from .enums import (
    ALL_CHANNELS,
    Category,
    Channel,
    EmailFrequency,
    GlobalFrequency,
    PriorityThreshold,
)


@dataclass
class QuietHours:
    enabled: bool = False
    start_time: str = "22:00"
    end_time: str = "08:00"
    timezone: str = "UTC"


@dataclass
class GlobalSettings:
    enabled: bool = True
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    frequency: str = GlobalFrequency.IMMEDIATE.value


@dataclass
class ChannelPreference:
    """Per-channel switch plus the knobs only some channels use.

    ``frequency`` and ``digest_time`` apply to email, ``emergency_only`` to sms.
    """

    enabled: bool = True
    frequency: str = EmailFrequency.IMMEDIATE.value
    digest_time: str = "09:00"
    emergency_only: bool = False


@dataclass
class CategoryPreference:
    enabled: bool = True
    allowed_channels: list[str] = field(default_factory=list)
    priority_threshold: str = PriorityThreshold.ALL.value


@dataclass
class TypePreference:
    enabled: bool = True
    allowed_channels: list[str] = field(default_factory=list)


@dataclass
class ContactInfo:
    email: str | None = None
    phone: str | None = None
    language: str = "en"


@dataclass
class UserPreferences:
    """Notification preferences owned by a single user."""

    global_settings: GlobalSettings = field(default_factory=GlobalSettings)
    channels: dict[str, ChannelPreference] = field(default_factory=dict)
    categories: dict[str, CategoryPreference] = field(default_factory=dict)
    notification_types: dict[str, TypePreference] = field(default_factory=dict)
    contact_info: ContactInfo = field(default_factory=ContactInfo)

    def channel(self, channel: Channel | str) -> ChannelPreference | None:
        return self.channels.get(_key(channel))

    def category(self, category: Category | str) -> CategoryPreference | None:
        return self.categories.get(_key(category))

    def notification_type(self, notification_type: str) -> TypePreference | None:
        return self.notification_types.get(_key(notification_type))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def merged(self, changes: Mapping[str, Any]) -> "UserPreferences":
        """Return a copy with ``changes`` deep-merged over the current values."""

        data = self.to_dict()
        _deep_merge(data, changes)
        return UserPreferences.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "UserPreferences":
        data = data or {}
        global_data = dict(data.get("global_settings") or {})
        quiet_hours = QuietHours(**_known(QuietHours, global_data.pop("quiet_hours", None)))
        global_settings = GlobalSettings(
            quiet_hours=quiet_hours, **_known(GlobalSettings, global_data)
        )
        return cls(
            global_settings=global_settings,
            channels={
                _key(name): ChannelPreference(**_known(ChannelPreference, value))
                for name, value in (data.get("channels") or {}).items()
            },
            categories={
                _key(name): CategoryPreference(**_known(CategoryPreference, value))
                for name, value in (data.get("categories") or {}).items()
            },
            notification_types={
                _key(name): TypePreference(**_known(TypePreference, value))
                for name, value in (data.get("notification_types") or {}).items()
            },
            contact_info=ContactInfo(**_known(ContactInfo, data.get("contact_info"))),
        )


def default_preferences(contact_info: ContactInfo | None = None) -> UserPreferences:
    """Return the documented default preferences.

    Every channel is enabled, quiet hours are off and delivery is immediate. Medical,
    administrative and system categories accept all priorities on any channel; the
    marketing category is opt-in.
    """

    return UserPreferences(
        global_settings=GlobalSettings(),
        channels={channel.value: ChannelPreference() for channel in ALL_CHANNELS},
        categories={
            Category.MEDICAL.value: CategoryPreference(),
            Category.ADMINISTRATIVE.value: CategoryPreference(),
            Category.SYSTEM.value: CategoryPreference(),
            Category.MARKETING.value: CategoryPreference(enabled=False),
        },
        notification_types={},
        contact_info=copy.copy(contact_info) if contact_info else ContactInfo(),
    )


def _key(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _known(entity: type, values: Mapping[str, Any] | None) -> dict[str, Any]:
    if not values:
        return {}
    names = entity.__dataclass_fields__.keys()
    return {name: value for name, value in values.items() if name in names}


def _deep_merge(target: dict[str, Any], changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _deep_merge(current, value)
        else:
            target[key] = copy.deepcopy(value)


__all__ = [
    "CategoryPreference",
    "ChannelPreference",
    "ContactInfo",
    "GlobalSettings",
    "QuietHours",
    "TypePreference",
    "UserPreferences",
    "default_preferences",
]
