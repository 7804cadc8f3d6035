"""In-memory channel sender with scriptable outcomes, used by the test suite."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass

from carenotify.domain.entities import Channel, DeliveryState
from carenotify.domain.errors import ChannelSendError

from .base import ChannelSender, RenderedContent, SendResult


@dataclass(frozen=True)
class SentMessage:
    address: str
    content: RenderedContent
    provider_message_id: str


class InMemoryChannelSender(ChannelSender):
    """Record messages instead of sending them; failures can be scripted."""

    def __init__(self, channel: Channel) -> None:
        self.channel = channel
        self._lock = threading.Lock()
        self.sent: list[SentMessage] = []
        self.attempts = 0
        self.should_succeed = True
        self.failure_reason = "Simulated failure"
        self.retryable = True
        self.delay = 0.0
        self.failing_addresses: set[str] = set()

    def configure(
        self,
        *,
        should_succeed: bool = True,
        failure_reason: str = "Simulated failure",
        retryable: bool = True,
        delay: float = 0.0,
        failing_addresses: set[str] | None = None,
    ) -> None:
        """Script the outcome of subsequent sends.

        ``failing_addresses`` fails only those addresses while others succeed.
        """

        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.retryable = retryable
        self.delay = delay
        self.failing_addresses = set(failing_addresses or ())

    def reset(self) -> None:
        with self._lock:
            self.sent.clear()
            self.attempts = 0
        self.configure()

    def send(self, address: str, content: RenderedContent) -> SendResult:
        with self._lock:
            self.attempts += 1
        if self.delay:
            time.sleep(self.delay)
        if not self.should_succeed or address in self.failing_addresses:
            raise ChannelSendError(
                self.channel.value, self.failure_reason, retryable=self.retryable
            )
        message_id = f"{self.channel.value}-{uuid.uuid4().hex[:12]}"
        with self._lock:
            self.sent.append(SentMessage(address, content, message_id))
        return SendResult(provider_message_id=message_id, state=DeliveryState.DELIVERED)


__all__ = ["InMemoryChannelSender", "SentMessage"]
