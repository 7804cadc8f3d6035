"""Results produced by preference evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import Channel

REASON_ALL_CHECKS_PASSED = "all_checks_passed"
REASON_CRITICAL_OVERRIDE = "critical_override"
REASON_GLOBALLY_DISABLED = "globally_disabled"
REASON_QUIET_HOURS = "quiet_hours"
REASON_CRITICAL_MINIMUM_DELIVERY = "critical_minimum_delivery"
REASON_NO_CHANNELS_ENABLED = "no_channels_enabled"
REASON_ERROR_FALLBACK = "error_fallback"
REASON_ROLE_OVERRIDE_SYSTEM = "role_override_system"
REASON_ROLE_OVERRIDE_CRITICAL = "role_override_critical"

REASON_CHANNEL_DISABLED = "channel_disabled"
REASON_TYPE_DISABLED = "notification_type_disabled"
REASON_CHANNEL_NOT_ENABLED_FOR_TYPE = "channel_not_enabled_for_type"
REASON_CATEGORY_DISABLED = "category_disabled"
REASON_PRIORITY_FILTERED = "priority_filtered"
REASON_CHANNEL_NOT_ENABLED_FOR_CATEGORY = "channel_not_enabled_for_category"
REASON_SMS_EMERGENCY_ONLY = "sms_emergency_only"
REASON_NO_EMAIL_ADDRESS = "no_email_address"
REASON_NO_PHONE_NUMBER = "no_phone_number"
REASON_UNKNOWN_CHANNEL = "unknown_channel"


@dataclass(frozen=True)
class ChannelDecision:
    should_use: bool
    reason: str
    digest: bool = False


@dataclass
class DeliveryDecision:
    """Whether, and over which channels, a recipient should be notified."""

    should_deliver: bool
    channels: list[Channel]
    reason: str
    critical: bool = False
    channel_decisions: dict[Channel, ChannelDecision] = field(default_factory=dict)

    @property
    def digest_channels(self) -> list[Channel]:
        return [
            channel
            for channel in self.channels
            if (decision := self.channel_decisions.get(channel)) is not None
            and decision.digest
        ]


__all__ = [
    "ChannelDecision",
    "DeliveryDecision",
    "REASON_ALL_CHECKS_PASSED",
    "REASON_CATEGORY_DISABLED",
    "REASON_CHANNEL_DISABLED",
    "REASON_CHANNEL_NOT_ENABLED_FOR_CATEGORY",
    "REASON_CHANNEL_NOT_ENABLED_FOR_TYPE",
    "REASON_CRITICAL_MINIMUM_DELIVERY",
    "REASON_CRITICAL_OVERRIDE",
    "REASON_ERROR_FALLBACK",
    "REASON_GLOBALLY_DISABLED",
    "REASON_NO_CHANNELS_ENABLED",
    "REASON_NO_EMAIL_ADDRESS",
    "REASON_NO_PHONE_NUMBER",
    "REASON_PRIORITY_FILTERED",
    "REASON_QUIET_HOURS",
    "REASON_ROLE_OVERRIDE_CRITICAL",
    "REASON_ROLE_OVERRIDE_SYSTEM",
    "REASON_SMS_EMERGENCY_ONLY",
    "REASON_TYPE_DISABLED",
    "REASON_UNKNOWN_CHANNEL",
]
