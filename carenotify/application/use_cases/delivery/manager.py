"""Send one recipient's notification over its approved channels."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from carenotify.domain.entities import (
    Channel,
    ContactInfo,
    DeliveryState,
    Notification,
    RecipientEntry,
)
from carenotify.domain.errors import ChannelSendError, ChannelTimeoutError
from carenotify.infrastructure.channels import ChannelRegistry, SendResult, render_content
from carenotify.utils import now_in_app_timezone

from .fallback import FallbackCoordinator, is_temporary_error
from .health import ChannelHealthTracker
from .stats import DeliveryStats

logger = logging.getLogger(__name__)


@dataclass
class ChannelAttempt:
    channel: Channel
    state: DeliveryState
    at: datetime
    error: str | None = None
    provider_message_id: str | None = None


@dataclass
class DeliveryOutcome:
    """Result of delivering to one recipient across its channel list."""

    success: bool
    channel: Channel | None = None
    fallback_used: bool = False
    attempts: list[ChannelAttempt] = field(default_factory=list)
    errors: dict[Channel, str] = field(default_factory=dict)
    retryable: bool = False

    @property
    def error_summary(self) -> str | None:
        if not self.errors:
            return None
        return "; ".join(f"{channel.value}: {error}" for channel, error in self.errors.items())


def resolve_address(channel: Channel, recipient: RecipientEntry, contact: ContactInfo) -> str:
    """Return the transport address for ``channel`` or raise ``ChannelSendError``."""

    if channel == Channel.WEBSOCKET:
        return recipient.user_id
    if channel == Channel.EMAIL:
        if not contact.email:
            raise ChannelSendError(channel.value, "no email address on file", retryable=False)
        return contact.email
    if channel == Channel.SMS:
        if not contact.phone:
            raise ChannelSendError(channel.value, "no phone number on file", retryable=False)
        return contact.phone
    raise ChannelSendError(str(channel), "unknown channel", retryable=False)


def _is_retryable(error: ChannelSendError) -> bool:
    if isinstance(error, ChannelTimeoutError):
        return True
    return error.retryable or is_temporary_error(error)


class ChannelDeliveryManager:
    """Drive channel senders with per-send timeouts, health and stats bookkeeping."""

    def __init__(
        self,
        registry: ChannelRegistry,
        *,
        health: ChannelHealthTracker | None = None,
        stats: DeliveryStats | None = None,
        timeout: float = 10.0,
        executor: ThreadPoolExecutor | None = None,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self.registry = registry
        self.health = health or ChannelHealthTracker()
        self.stats = stats or DeliveryStats()
        self.timeout = timeout
        self.coordinator = FallbackCoordinator(self.health)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=8, thread_name_prefix="channel-send"
        )
        self._clock = clock

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def deliver(
        self,
        notification: Notification,
        recipient: RecipientEntry,
        channels: Sequence[Channel],
        *,
        contact: ContactInfo,
        on_attempt: Callable[[RecipientEntry], None] | None = None,
    ) -> DeliveryOutcome:
        """Deliver ``notification`` to ``recipient`` trying ``channels`` in order.

        Every attempt is recorded on ``recipient.delivery_status``; ``on_attempt`` is
        invoked after each status change so callers can persist progress.
        """

        outcome = DeliveryOutcome(success=False)

        def record(channel: Channel, state: DeliveryState, **details: str | None) -> None:
            at = self._clock()
            recipient.record_attempt(channel, state, at=at, **details)
            outcome.attempts.append(ChannelAttempt(channel, state, at, **details))
            if on_attempt is not None:
                on_attempt(recipient)

        def attempt(channel: Channel) -> None:
            record(channel, DeliveryState.PENDING)
            try:
                result = self._send(notification, recipient, channel, contact)
            except ChannelSendError as exc:
                self.stats.record_attempt(
                    channel, success=False, timeout=isinstance(exc, ChannelTimeoutError)
                )
                record(channel, DeliveryState.FAILED, error=str(exc))
                raise
            self.stats.record_attempt(channel, success=True)
            record(
                channel,
                result.state,
                provider_message_id=result.provider_message_id,
            )

        result = self.coordinator.run(list(channels), attempt)
        outcome.success = result.success
        outcome.channel = result.channel
        outcome.fallback_used = result.fallback_used
        outcome.errors = {channel: str(error) for channel, error in result.errors.items()}
        outcome.retryable = not result.success and (
            any(_is_retryable(error) for error in result.errors.values())
            or bool(result.skipped)
        )

        self.stats.record_outcome(delivered=result.success, fallback_used=result.fallback_used)
        if result.success:
            logger.info(
                "Notification %s delivered to %s via %s",
                notification.id,
                recipient.user_id,
                result.channel.value if result.channel else None,
            )
        else:
            logger.warning(
                "Notification %s could not be delivered to %s: %s",
                notification.id,
                recipient.user_id,
                outcome.error_summary or "no channels available",
            )
        return outcome

    def _send(
        self,
        notification: Notification,
        recipient: RecipientEntry,
        channel: Channel,
        contact: ContactInfo,
    ) -> SendResult:
        sender = self.registry.get(channel)
        if sender is None:
            raise ChannelSendError(channel.value, "no sender registered", retryable=False)
        address = resolve_address(channel, recipient, contact)
        content = render_content(notification, channel)

        future = self._executor.submit(sender.send, address, content)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ChannelTimeoutError(channel.value, self.timeout) from exc
        except ChannelSendError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error from %s sender", channel.value)
            raise ChannelSendError(
                channel.value, f"unexpected sender error: {exc}", retryable=is_temporary_error(exc)
            ) from exc


__all__ = [
    "ChannelAttempt",
    "ChannelDeliveryManager",
    "DeliveryOutcome",
    "resolve_address",
]
