"""Websocket channel: push the notification to the user's open connections."""

from __future__ import annotations

from carenotify.domain.entities import Channel, DeliveryState
from carenotify.domain.errors import ChannelSendError
from carenotify.infrastructure.notifications.manager import NotificationConnectionManager

from .base import ChannelSender, RenderedContent, SendResult


class WebsocketChannelSender(ChannelSender):
    """Deliver through :class:`NotificationConnectionManager`.

    The address is the recipient's user id. A user without an open connection counts
    as a failed send so the fallback coordinator moves on to the next channel.
    """

    channel = Channel.WEBSOCKET

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager

    def send(self, address: str, content: RenderedContent) -> SendResult:
        portal = self._manager.portal
        if portal is None:
            raise ChannelSendError(self.channel.value, "websocket server is not running")
        if not self._manager.is_connected(address):
            raise ChannelSendError(self.channel.value, "recipient not connected")

        message = dict(content.data) or {
            "type": "notification",
            "data": {"title": content.subject, "message": content.text},
        }
        delivered = portal.call(self._manager.send_to_user, address, message)
        if not delivered:
            raise ChannelSendError(self.channel.value, "connection lost during send")
        return SendResult(state=DeliveryState.DELIVERED)


__all__ = ["WebsocketChannelSender"]
