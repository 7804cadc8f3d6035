"""Unit tests for the SendGrid, Twilio and websocket channel senders."""

from __future__ import annotations

import json
import types

import httpx
import pytest
from anyio.from_thread import start_blocking_portal
from twilio.base.exceptions import TwilioException

from carenotify.application.use_cases.delivery import ChannelDeliveryManager
from carenotify.config import Settings
from carenotify.domain.entities import (
    Channel,
    ContactInfo,
    DeliveryState,
    Notification,
    NotificationContent,
    Priority,
    RecipientEntry,
)
from carenotify.domain.errors import ChannelSendError
from carenotify.infrastructure.channels import (
    RenderedContent,
    SendGridEmailSender,
    TwilioSmsSender,
    WebsocketChannelSender,
    build_channel_registry,
    render_content,
)
from carenotify.infrastructure.channels.email import SENDGRID_SEND_URL
from carenotify.infrastructure.channels.rendering import SMS_MAX_LENGTH
from carenotify.infrastructure.notifications import NotificationConnectionManager

CONTENT = RenderedContent(
    subject="Prescription ready", text="Ready for pickup.", html="<p>Ready</p>"
)


def _email_sender(handler) -> SendGridEmailSender:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SendGridEmailSender("SG.fake", "sender@example.com", client=client)


def test_email_send_posts_the_sendgrid_payload() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(202, headers={"X-Message-Id": "sg-123"})

    result = _email_sender(handler).send("patient@example.com", CONTENT)

    assert result.provider_message_id == "sg-123"
    assert result.state == DeliveryState.SENT
    assert captured["url"] == SENDGRID_SEND_URL
    assert captured["auth"] == "Bearer SG.fake"
    assert captured["body"]["personalizations"] == [{"to": [{"email": "patient@example.com"}]}]
    assert captured["body"]["content"][1] == {"type": "text/html", "value": "<p>Ready</p>"}


def test_email_rejection_logs_details_and_is_permanent(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"errors": [{"message": "Invalid email", "field": "personalizations.0.to"}]},
        )

    with caplog.at_level("ERROR"), pytest.raises(ChannelSendError) as excinfo:
        _email_sender(handler).send("not-an-address", CONTENT)

    assert excinfo.value.retryable is False
    assert "Invalid email (field: personalizations.0.to)" in str(excinfo.value)
    assert "SendGrid API responded with status 400" in caplog.text


@pytest.mark.parametrize("status_code", [429, 500, 503])
def test_email_throttling_and_server_errors_are_retryable(status_code: int) -> None:
    sender = _email_sender(lambda request: httpx.Response(status_code, text="busy"))

    with pytest.raises(ChannelSendError) as excinfo:
        sender.send("patient@example.com", CONTENT)

    assert excinfo.value.retryable is True


def test_email_transport_errors_are_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ChannelSendError) as excinfo:
        _email_sender(handler).send("patient@example.com", CONTENT)

    assert excinfo.value.retryable is True
    assert "connection error" in str(excinfo.value)


class _FakeMessages:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict[str, str]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return types.SimpleNamespace(sid="SM123")


def test_sms_send_uses_the_configured_sender_number() -> None:
    messages = _FakeMessages()
    sender = TwilioSmsSender(
        "AC123", "token", "+15550000000", client=types.SimpleNamespace(messages=messages)
    )

    result = sender.send("+15551234567", CONTENT)

    assert result.provider_message_id == "SM123"
    assert messages.calls == [
        {"body": "Ready for pickup.", "from_": "+15550000000", "to": "+15551234567"}
    ]


@pytest.mark.parametrize("code, retryable", [(21211, False), (20429, True), (None, True)])
def test_sms_errors_are_classified_by_twilio_code(code, retryable: bool) -> None:
    error = TwilioException("Twilio rejected the request")
    error.code = code
    sender = TwilioSmsSender(
        "AC123",
        "token",
        "+15550000000",
        client=types.SimpleNamespace(messages=_FakeMessages(error)),
    )

    with pytest.raises(ChannelSendError) as excinfo:
        sender.send("+15551234567", CONTENT)

    assert excinfo.value.retryable is retryable


class _FakeWebSocket:
    def __init__(self) -> None:
        self.accepted = False
        self.messages: list[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict) -> None:
        self.messages.append(message)


def test_websocket_sender_fails_when_the_server_is_not_running() -> None:
    sender = WebsocketChannelSender(NotificationConnectionManager())

    with pytest.raises(ChannelSendError) as excinfo:
        sender.send("patient-1", CONTENT)

    assert "not running" in str(excinfo.value)


def test_websocket_sender_pushes_to_connected_users() -> None:
    manager = NotificationConnectionManager()
    sender = WebsocketChannelSender(manager)
    websocket = _FakeWebSocket()
    payload = RenderedContent(subject="s", text="t", data={"type": "notification", "data": {}})

    with start_blocking_portal() as portal:
        manager.attach_portal(portal)
        with pytest.raises(ChannelSendError) as excinfo:
            sender.send("patient-1", payload)
        portal.call(manager.connect, "patient-1", websocket)
        result = sender.send("patient-1", payload)
        manager.detach_portal()

    assert "not connected" in str(excinfo.value)
    assert result.state == DeliveryState.DELIVERED
    assert websocket.accepted is True
    assert websocket.messages == [{"type": "notification", "data": {}}]


def test_registry_leaves_unconfigured_providers_unregistered() -> None:
    registry = build_channel_registry(Settings(_env_file=None), NotificationConnectionManager())

    assert registry.channels() == [Channel.WEBSOCKET]
    assert registry.get(Channel.EMAIL) is None
    assert registry.get(Channel.SMS) is None


def test_unconfigured_providers_never_report_delivery() -> None:
    registry = build_channel_registry(Settings(_env_file=None), NotificationConnectionManager())
    manager = ChannelDeliveryManager(registry, timeout=1.0)
    notification = Notification(
        id=1,
        type="security_alerts",
        priority=Priority.CRITICAL,
        content=NotificationContent(title="Security alert", message="New sign-in"),
    )
    recipient = RecipientEntry(user_id="patient-1")

    try:
        outcome = manager.deliver(
            notification,
            recipient,
            [Channel.SMS, Channel.EMAIL],
            contact=ContactInfo(email="patient@example.com", phone="+15551234567"),
        )
    finally:
        manager.shutdown()

    assert outcome.success is False
    assert outcome.retryable is False
    assert {channel: status.state for channel, status in recipient.delivery_status.items()} == {
        Channel.SMS: DeliveryState.FAILED,
        Channel.EMAIL: DeliveryState.FAILED,
    }
    assert "no sender registered" in recipient.delivery_status[Channel.SMS].error


def test_sms_rendering_is_truncated() -> None:
    notification = Notification(
        id=1,
        type="order_status_changed",
        priority=Priority.MEDIUM,
        content=NotificationContent(title="Order update", message="x" * 300),
    )

    rendered = render_content(notification, Channel.SMS)

    assert len(rendered.text) == SMS_MAX_LENGTH
    assert rendered.text.endswith("...")


def test_email_rendering_escapes_html() -> None:
    notification = Notification(
        id=1,
        type="order_status_changed",
        priority=Priority.MEDIUM,
        content=NotificationContent(
            title="<b>Order</b>", message="Shipped", action_url="/orders/1"
        ),
    )

    rendered = render_content(notification, Channel.EMAIL)

    assert "&lt;b&gt;Order&lt;/b&gt;" in rendered.html
    assert 'href="/orders/1"' in rendered.html
    assert rendered.text == "Shipped"
