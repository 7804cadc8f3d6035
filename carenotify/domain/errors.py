"""Error taxonomy shared by the notification engine."""

from __future__ import annotations


class CareNotifyError(Exception):
    """Base class for errors raised by the notification engine."""


class PreferenceNotFoundError(CareNotifyError, LookupError):
    """The preference store holds no record for the requested user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No notification preferences stored for user {user_id}")
        self.user_id = user_id


class PreferenceFetchError(CareNotifyError):
    """The preference store could not be read."""


class ValidationError(CareNotifyError, ValueError):
    """Malformed input; ``field`` names the offending attribute."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ChannelSendError(CareNotifyError):
    """A channel sender failed to hand the message to its transport."""

    def __init__(self, channel: str, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.channel = channel
        self.retryable = retryable


class ChannelTimeoutError(ChannelSendError):
    """A channel send call exceeded its time budget."""

    def __init__(self, channel: str, timeout: float) -> None:
        super().__init__(channel, f"{channel} send timed out after {timeout:g}s")
        self.timeout = timeout


class NoEligibleRecipientsError(CareNotifyError):
    """Evaluation left no deliverable recipient for a non-critical notification."""

    def __init__(self, notification_id: int | None, reasons: dict[str, str]) -> None:
        super().__init__(
            f"Notification {notification_id} has no eligible recipients"
        )
        self.notification_id = notification_id
        self.reasons = reasons


class QueueItemNotFoundError(CareNotifyError, LookupError):
    """The delivery queue has no item with the given identifier."""

    def __init__(self, item_id: int) -> None:
        super().__init__(f"Queue item {item_id} not found")
        self.item_id = item_id


__all__ = [
    "CareNotifyError",
    "ChannelSendError",
    "ChannelTimeoutError",
    "NoEligibleRecipientsError",
    "PreferenceFetchError",
    "PreferenceNotFoundError",
    "QueueItemNotFoundError",
    "ValidationError",
]
