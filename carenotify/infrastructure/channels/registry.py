"""Lookup table from channel to the sender that serves it."""

from __future__ import annotations

import logging
from typing import Iterable

from carenotify.config import Settings
from carenotify.domain.entities import Channel
from carenotify.infrastructure.notifications.manager import NotificationConnectionManager

from .base import ChannelSender
from .email import SendGridEmailSender
from .sms import TwilioSmsSender
from .websocket import WebsocketChannelSender

logger = logging.getLogger(__name__)


class ChannelRegistry:
    def __init__(self, senders: Iterable[ChannelSender] = ()) -> None:
        self._senders: dict[Channel, ChannelSender] = {}
        for sender in senders:
            self.register(sender)

    def register(self, sender: ChannelSender) -> None:
        self._senders[Channel(sender.channel)] = sender

    def get(self, channel: Channel) -> ChannelSender | None:
        return self._senders.get(Channel(channel))

    def __contains__(self, channel: object) -> bool:
        return channel in self._senders

    def channels(self) -> list[Channel]:
        return list(self._senders)


def build_channel_registry(
    settings: Settings, manager: NotificationConnectionManager
) -> ChannelRegistry:
    """Wire senders for the configured providers.

    Channels without provider settings stay unregistered, so attempts on them fail
    with a permanent "no sender registered" error instead of being reported delivered.
    """

    registry = ChannelRegistry([WebsocketChannelSender(manager)])

    if settings.email_enabled:
        registry.register(
            SendGridEmailSender(
                settings.sendgrid_api_key,
                settings.sendgrid_sender,
                timeout=settings.channel_send_timeout_seconds,
            )
        )
    else:
        logger.warning("SendGrid configuration incomplete; email notifications are disabled")

    if settings.sms_enabled:
        registry.register(
            TwilioSmsSender(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                settings.twilio_from_number,
            )
        )
    else:
        logger.warning("Twilio configuration incomplete; SMS notifications are disabled")

    return registry


__all__ = ["ChannelRegistry", "build_channel_registry"]
