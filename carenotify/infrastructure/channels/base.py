"""Channel sender interface shared by every delivery transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from carenotify.domain.entities import Channel, DeliveryState


@dataclass(frozen=True)
class RenderedContent:
    """Channel-specific payload produced from a notification's content."""

    subject: str
    text: str
    html: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SendResult:
    provider_message_id: str | None = None
    state: DeliveryState = DeliveryState.DELIVERED


class ChannelSender(ABC):
    """Opaque transport for one channel.

    ``send`` raises :class:`~carenotify.domain.errors.ChannelSendError` when the
    transport rejects or cannot accept the message.
    """

    channel: Channel

    @abstractmethod
    def send(self, address: str, content: RenderedContent) -> SendResult:
        """Hand ``content`` to the transport for ``address``."""


__all__ = ["ChannelSender", "RenderedContent", "SendResult"]
