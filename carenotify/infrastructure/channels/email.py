"""Email channel backed by the SendGrid v3 REST API."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from carenotify.domain.entities import Channel, DeliveryState
from carenotify.domain.errors import ChannelSendError

from .base import ChannelSender, RenderedContent, SendResult

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


def _extract_sendgrid_error_details(body: Any) -> str | None:
    """Return a human readable description for a SendGrid error payload."""

    if body in (None, "", b""):
        return None

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None

    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            return body
    else:
        parsed = body

    if isinstance(parsed, dict):
        errors = parsed.get("errors")
        if isinstance(errors, list):
            messages: list[str] = []
            for item in errors:
                if not isinstance(item, dict):
                    continue
                message = item.get("message")
                field = item.get("field")
                if message and field:
                    messages.append(f"{message} (field: {field})")
                elif message:
                    messages.append(str(message))
            if messages:
                return "; ".join(messages)
        return json.dumps(parsed)

    if isinstance(parsed, list):
        return "; ".join(str(item) for item in parsed)

    return None


class SendGridEmailSender(ChannelSender):
    """Send notification emails through SendGrid's ``mail/send`` endpoint."""

    channel = Channel.EMAIL

    def __init__(
        self,
        api_key: str,
        sender: str,
        *,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._client = client or httpx.Client(timeout=timeout)

    def _build_payload(self, address: str, content: RenderedContent) -> dict[str, Any]:
        body = [{"type": "text/plain", "value": content.text}]
        if content.html:
            body.append({"type": "text/html", "value": content.html})
        return {
            "personalizations": [{"to": [{"email": address}]}],
            "from": {"email": self._sender},
            "subject": content.subject,
            "content": body,
        }

    def send(self, address: str, content: RenderedContent) -> SendResult:
        try:
            response = self._client.post(
                SENDGRID_SEND_URL,
                json=self._build_payload(address, content),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.TimeoutException as exc:
            raise ChannelSendError(self.channel.value, f"SendGrid request timeout: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ChannelSendError(
                self.channel.value, f"SendGrid connection error: {exc}"
            ) from exc

        if not 200 <= response.status_code < 300:
            details = _extract_sendgrid_error_details(response.content)
            if details:
                logger.error(
                    "SendGrid API responded with status %s: %s", response.status_code, details
                )
            else:
                logger.error("SendGrid API responded with status %s", response.status_code)
            retryable = response.status_code == 429 or response.status_code >= 500
            reason = "rate limit" if response.status_code == 429 else "rejected"
            raise ChannelSendError(
                self.channel.value,
                f"SendGrid {reason} with status {response.status_code}: {details or 'no details'}",
                retryable=retryable,
            )

        return SendResult(
            provider_message_id=response.headers.get("X-Message-Id"),
            state=DeliveryState.SENT,
        )


__all__ = ["SENDGRID_SEND_URL", "SendGridEmailSender"]
