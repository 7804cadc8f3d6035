"""Per-channel health tracking used to skip failing fallback channels."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from carenotify.domain.entities import ALL_CHANNELS, Channel

RECENT_FAILURE_LIMIT = 5
RECENT_FAILURE_WINDOW = timedelta(minutes=5)
UNAVAILABLE_FAILURE_LIMIT = 10


@dataclass
class ChannelHealth:
    available: bool = True
    failure_count: int = 0
    last_failure: datetime | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "available": self.available,
            "failure_count": self.failure_count,
            "last_failure": self.last_failure.isoformat() if self.last_failure else None,
        }


class ChannelHealthTracker:
    """Track recent failures per channel.

    A channel is unavailable while it has more than five failures and the latest one
    happened within five minutes, and unconditionally after more than ten failures
    until a success brings the count back down.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._health: dict[Channel, ChannelHealth] = {
            channel: ChannelHealth() for channel in ALL_CHANNELS
        }

    def record_success(self, channel: Channel) -> None:
        with self._lock:
            health = self._health.setdefault(channel, ChannelHealth())
            health.available = True
            health.failure_count = max(0, health.failure_count - 1)

    def record_failure(self, channel: Channel) -> None:
        with self._lock:
            health = self._health.setdefault(channel, ChannelHealth())
            health.failure_count += 1
            health.last_failure = self._clock()
            if health.failure_count > UNAVAILABLE_FAILURE_LIMIT:
                health.available = False

    def is_available(self, channel: Channel) -> bool:
        with self._lock:
            health = self._health.get(channel)
            return health is not None and self._available(health)

    def _available(self, health: ChannelHealth) -> bool:
        if health.failure_count > RECENT_FAILURE_LIMIT and health.last_failure:
            if self._clock() - health.last_failure < RECENT_FAILURE_WINDOW:
                return False
        return health.available

    def reset(self, channel: Channel | None = None) -> None:
        with self._lock:
            targets = [channel] if channel else list(self._health)
            for target in targets:
                self._health[target] = ChannelHealth()

    def snapshot(self) -> dict[str, dict[str, object]]:
        with self._lock:
            return {
                channel.value: {**health.as_dict(), "available": self._available(health)}
                for channel, health in self._health.items()
            }


__all__ = ["ChannelHealth", "ChannelHealthTracker"]
