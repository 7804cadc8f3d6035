"""SMS channel backed by Twilio."""

from __future__ import annotations

from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from carenotify.domain.entities import Channel, DeliveryState
from carenotify.domain.errors import ChannelSendError

from .base import ChannelSender, RenderedContent, SendResult

# Twilio error codes for numbers that will never accept a message.
PERMANENT_ERROR_CODES = frozenset({21211, 21612, 21614})


class TwilioSmsSender(ChannelSender):
    channel = Channel.SMS

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        client: TwilioClient | None = None,
    ) -> None:
        self._from_number = from_number
        self._client = client or TwilioClient(account_sid, auth_token)

    def send(self, address: str, content: RenderedContent) -> SendResult:
        try:
            message = self._client.messages.create(
                body=content.text,
                from_=self._from_number,
                to=address,
            )
        except TwilioException as exc:
            code = getattr(exc, "code", None)
            raise ChannelSendError(
                self.channel.value,
                f"Twilio error: {exc}",
                retryable=code not in PERMANENT_ERROR_CODES,
            ) from exc
        return SendResult(provider_message_id=message.sid, state=DeliveryState.SENT)


__all__ = ["PERMANENT_ERROR_CODES", "TwilioSmsSender"]
