"""Ordered primary/fallback channel attempts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Sequence

from carenotify.domain.entities import Channel
from carenotify.domain.errors import ChannelSendError

from .health import ChannelHealthTracker

logger = logging.getLogger(__name__)

_TEMPORARY_ERROR_PATTERN = re.compile(
    r"timeout|timed out|connection|network|rate limit|service unavailable|temporary",
    re.IGNORECASE,
)


def is_temporary_error(error: BaseException | str | None) -> bool:
    """Return ``True`` when ``error`` looks like a transient transport problem."""

    if error is None:
        return False
    if isinstance(error, BaseException) and getattr(error, "retryable", None) is False:
        return False
    return bool(_TEMPORARY_ERROR_PATTERN.search(str(error)))


@dataclass
class FallbackResult:
    success: bool
    channel: Channel | None = None
    fallback_used: bool = False
    attempted: list[Channel] = field(default_factory=list)
    skipped: list[Channel] = field(default_factory=list)
    errors: dict[Channel, ChannelSendError] = field(default_factory=dict)


class FallbackCoordinator:
    """Try the primary channel, then each fallback until one succeeds.

    Fallback channels reported unhealthy are skipped. The primary channel is always
    attempted so that a recovering channel gets the chance to record a success.
    """

    def __init__(self, health: ChannelHealthTracker) -> None:
        self.health = health

    def run(
        self,
        channels: Sequence[Channel],
        attempt: Callable[[Channel], None],
    ) -> FallbackResult:
        result = FallbackResult(success=False)
        for index, channel in enumerate(channels):
            if index > 0 and not self.health.is_available(channel):
                logger.info("Skipping unhealthy fallback channel %s", channel.value)
                result.skipped.append(channel)
                continue

            result.attempted.append(channel)
            try:
                attempt(channel)
            except ChannelSendError as exc:
                self.health.record_failure(channel)
                result.errors[channel] = exc
                logger.warning("Delivery over %s failed: %s", channel.value, exc)
                continue

            self.health.record_success(channel)
            result.success = True
            result.channel = channel
            result.fallback_used = index > 0
            return result

        return result


__all__ = ["FallbackCoordinator", "FallbackResult", "is_temporary_error"]
