"""In-process delivery counters exposed on the health endpoint."""

from __future__ import annotations

import threading
from collections import defaultdict

from carenotify.domain.entities import ALL_CHANNELS, Channel


class DeliveryStats:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[Channel, dict[str, int]] = defaultdict(
            lambda: {"attempts": 0, "successes": 0, "failures": 0, "timeouts": 0}
        )
        for channel in ALL_CHANNELS:
            self._channels[channel]
        self.fallbacks_used = 0
        self.recipients_delivered = 0
        self.recipients_failed = 0
        self.recipients_expired = 0

    def record_attempt(self, channel: Channel, *, success: bool, timeout: bool = False) -> None:
        with self._lock:
            counters = self._channels[channel]
            counters["attempts"] += 1
            if success:
                counters["successes"] += 1
            else:
                counters["failures"] += 1
                if timeout:
                    counters["timeouts"] += 1

    def record_outcome(self, *, delivered: bool, fallback_used: bool = False) -> None:
        with self._lock:
            if delivered:
                self.recipients_delivered += 1
            if fallback_used:
                self.fallbacks_used += 1

    def record_failed(self) -> None:
        """Count a recipient whose queue item was given up on."""

        with self._lock:
            self.recipients_failed += 1

    def record_expired(self) -> None:
        with self._lock:
            self.recipients_expired += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            channels = {}
            for channel, counters in self._channels.items():
                attempts = counters["attempts"]
                channels[channel.value] = {
                    **counters,
                    "error_rate": round(counters["failures"] / attempts, 4) if attempts else 0.0,
                }
            return {
                "channels": channels,
                "fallbacks_used": self.fallbacks_used,
                "recipients_delivered": self.recipients_delivered,
                "recipients_failed": self.recipients_failed,
                "recipients_expired": self.recipients_expired,
            }


__all__ = ["DeliveryStats"]
