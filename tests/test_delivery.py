"""Tests for channel delivery, fallback and channel health."""

from __future__ import annotations

import pytest

from carenotify.application.use_cases.delivery import (
    ChannelDeliveryManager,
    ChannelHealthTracker,
    DeliveryStats,
    FallbackCoordinator,
    is_temporary_error,
    resolve_address,
)
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
from carenotify.infrastructure.channels import ChannelRegistry

CONTACT = ContactInfo(email="patient@example.com", phone="+15551234567")


@pytest.fixture()
def notification() -> Notification:
    return Notification(
        id=7,
        type="prescription_ready",
        priority=Priority.HIGH,
        content=NotificationContent(
            title="Prescription ready",
            message="Your prescription is ready for pickup.",
        ),
    )


def test_fallback_reaches_sms_while_other_recipient_uses_websocket(
    delivery_manager: ChannelDeliveryManager, senders, notification: Notification
) -> None:
    senders[Channel.EMAIL].configure(should_succeed=False, failure_reason="SMTP relay refused")
    recipient_a = RecipientEntry(user_id="patient-a")
    recipient_b = RecipientEntry(user_id="patient-b")

    outcome_a = delivery_manager.deliver(
        notification, recipient_a, [Channel.EMAIL, Channel.SMS], contact=CONTACT
    )
    outcome_b = delivery_manager.deliver(
        notification, recipient_b, [Channel.WEBSOCKET], contact=CONTACT
    )

    assert outcome_a.success and outcome_a.fallback_used
    assert outcome_a.channel == Channel.SMS
    assert recipient_a.delivery_status[Channel.SMS].state == DeliveryState.DELIVERED
    assert recipient_a.delivery_status[Channel.EMAIL].state == DeliveryState.FAILED
    assert recipient_a.delivery_status[Channel.EMAIL].error == "SMTP relay refused"

    assert outcome_b.success and not outcome_b.fallback_used
    assert set(recipient_b.delivery_status) == {Channel.WEBSOCKET}
    assert recipient_b.delivery_status[Channel.WEBSOCKET].state == DeliveryState.DELIVERED
    assert [message.address for message in senders[Channel.WEBSOCKET].sent] == ["patient-b"]


def test_primary_success_stops_the_channel_list(
    delivery_manager: ChannelDeliveryManager, senders, notification: Notification
) -> None:
    recipient = RecipientEntry(user_id="patient-a")

    outcome = delivery_manager.deliver(
        notification,
        recipient,
        [Channel.WEBSOCKET, Channel.EMAIL, Channel.SMS],
        contact=CONTACT,
    )

    assert outcome.channel == Channel.WEBSOCKET
    assert senders[Channel.EMAIL].attempts == 0
    assert senders[Channel.SMS].attempts == 0
    assert [attempt.state for attempt in outcome.attempts] == [
        DeliveryState.PENDING,
        DeliveryState.DELIVERED,
    ]


def test_each_attempt_is_reported_to_the_callback(
    delivery_manager: ChannelDeliveryManager, senders, notification: Notification
) -> None:
    senders[Channel.EMAIL].configure(should_succeed=False)
    snapshots: list[dict[Channel, DeliveryState]] = []

    delivery_manager.deliver(
        notification,
        RecipientEntry(user_id="patient-a"),
        [Channel.EMAIL, Channel.SMS],
        contact=CONTACT,
        on_attempt=lambda entry: snapshots.append(
            {channel: status.state for channel, status in entry.delivery_status.items()}
        ),
    )

    assert snapshots == [
        {Channel.EMAIL: DeliveryState.PENDING},
        {Channel.EMAIL: DeliveryState.FAILED},
        {Channel.EMAIL: DeliveryState.FAILED, Channel.SMS: DeliveryState.PENDING},
        {Channel.EMAIL: DeliveryState.FAILED, Channel.SMS: DeliveryState.DELIVERED},
    ]


def test_send_timeout_triggers_fallback(senders, notification: Notification) -> None:
    senders[Channel.WEBSOCKET].configure(delay=0.5)
    stats = DeliveryStats()
    manager = ChannelDeliveryManager(ChannelRegistry(senders.values()), stats=stats, timeout=0.05)
    recipient = RecipientEntry(user_id="patient-a")

    try:
        outcome = manager.deliver(
            notification, recipient, [Channel.WEBSOCKET, Channel.EMAIL], contact=CONTACT
        )
    finally:
        manager.shutdown()

    assert outcome.success and outcome.channel == Channel.EMAIL
    assert "timed out" in recipient.delivery_status[Channel.WEBSOCKET].error
    assert stats.snapshot()["channels"]["websocket"]["timeouts"] == 1


def test_failure_of_every_channel_is_retryable_for_transient_errors(
    delivery_manager: ChannelDeliveryManager, senders, notification: Notification
) -> None:
    for channel in (Channel.EMAIL, Channel.SMS):
        senders[channel].configure(should_succeed=False, failure_reason="connection reset")

    outcome = delivery_manager.deliver(
        notification,
        RecipientEntry(user_id="patient-a"),
        [Channel.EMAIL, Channel.SMS],
        contact=CONTACT,
    )

    assert outcome.success is False
    assert outcome.retryable is True
    assert outcome.error_summary == "email: connection reset; sms: connection reset"


def test_permanent_rejections_are_not_retryable(
    delivery_manager: ChannelDeliveryManager, senders, notification: Notification
) -> None:
    senders[Channel.SMS].configure(
        should_succeed=False, failure_reason="invalid number", retryable=False
    )

    outcome = delivery_manager.deliver(
        notification, RecipientEntry(user_id="patient-a"), [Channel.SMS], contact=CONTACT
    )

    assert outcome.success is False
    assert outcome.retryable is False


def test_missing_address_fails_that_channel_only(
    delivery_manager: ChannelDeliveryManager, senders, notification: Notification
) -> None:
    recipient = RecipientEntry(user_id="patient-a")

    outcome = delivery_manager.deliver(
        notification,
        recipient,
        [Channel.EMAIL, Channel.WEBSOCKET],
        contact=ContactInfo(),
    )

    assert outcome.channel == Channel.WEBSOCKET
    assert recipient.delivery_status[Channel.EMAIL].error == "no email address on file"
    assert senders[Channel.EMAIL].attempts == 0


def test_unexpected_sender_errors_are_wrapped(
    delivery_manager: ChannelDeliveryManager,
    senders,
    notification: Notification,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def explode(address, content):
        raise KeyError("template")

    monkeypatch.setattr(senders[Channel.EMAIL], "send", explode)

    with caplog.at_level("ERROR"):
        outcome = delivery_manager.deliver(
            notification, RecipientEntry(user_id="patient-a"), [Channel.EMAIL], contact=CONTACT
        )

    assert outcome.success is False
    assert "unexpected sender error" in outcome.errors[Channel.EMAIL]
    assert "Unexpected error from email sender" in caplog.text


def test_unhealthy_fallback_is_skipped_but_primary_is_always_tried(
    senders, notification: Notification, clock
) -> None:
    health = ChannelHealthTracker(clock=clock)
    for _ in range(6):
        health.record_failure(Channel.SMS)
        health.record_failure(Channel.EMAIL)
    senders[Channel.EMAIL].configure(should_succeed=False)
    manager = ChannelDeliveryManager(ChannelRegistry(senders.values()), health=health)

    try:
        outcome = manager.deliver(
            notification,
            RecipientEntry(user_id="patient-a"),
            [Channel.EMAIL, Channel.SMS],
            contact=CONTACT,
        )
    finally:
        manager.shutdown()

    assert senders[Channel.EMAIL].attempts == 1
    assert senders[Channel.SMS].attempts == 0
    assert outcome.success is False
    assert outcome.retryable is True


def test_health_recovers_when_the_failure_window_passes(clock) -> None:
    health = ChannelHealthTracker(clock=clock)
    for _ in range(6):
        health.record_failure(Channel.SMS)

    assert health.is_available(Channel.SMS) is False
    clock.advance(minutes=5)
    assert health.is_available(Channel.SMS) is True


def test_health_requires_a_success_after_many_failures(clock) -> None:
    health = ChannelHealthTracker(clock=clock)
    for _ in range(11):
        health.record_failure(Channel.EMAIL)
    clock.advance(hours=1)

    assert health.is_available(Channel.EMAIL) is False
    assert health.snapshot()["email"]["available"] is False

    health.record_success(Channel.EMAIL)

    assert health.is_available(Channel.EMAIL) is True
    assert health.snapshot()["email"]["failure_count"] == 10


def test_coordinator_reports_skipped_and_attempted_channels(clock) -> None:
    health = ChannelHealthTracker(clock=clock)
    for _ in range(6):
        health.record_failure(Channel.EMAIL)
    calls: list[Channel] = []

    def attempt(channel: Channel) -> None:
        calls.append(channel)
        if channel == Channel.WEBSOCKET:
            raise ChannelSendError(channel.value, "offline")

    result = FallbackCoordinator(health).run(
        [Channel.WEBSOCKET, Channel.EMAIL, Channel.SMS], attempt
    )

    assert calls == [Channel.WEBSOCKET, Channel.SMS]
    assert result.skipped == [Channel.EMAIL]
    assert result.channel == Channel.SMS and result.fallback_used


def test_stats_track_attempts_and_error_rates(
    delivery_manager: ChannelDeliveryManager, senders, notification: Notification
) -> None:
    senders[Channel.EMAIL].configure(should_succeed=False)
    for user_id in ("a", "b"):
        delivery_manager.deliver(
            notification, RecipientEntry(user_id=user_id), [Channel.EMAIL, Channel.SMS], contact=CONTACT
        )

    snapshot = delivery_manager.stats.snapshot()

    assert snapshot["channels"]["email"] == {
        "attempts": 2,
        "successes": 0,
        "failures": 2,
        "timeouts": 0,
        "error_rate": 1.0,
    }
    assert snapshot["channels"]["sms"]["successes"] == 2
    assert snapshot["fallbacks_used"] == 2
    assert snapshot["recipients_delivered"] == 2


@pytest.mark.parametrize(
    "error, expected",
    [
        ("Connection refused", True),
        ("request timed out", True),
        ("Rate limit exceeded", True),
        ("Service Unavailable", True),
        ("invalid recipient", False),
        (None, False),
        (ChannelSendError("sms", "network down", retryable=False), False),
        (ChannelSendError("sms", "temporary failure"), True),
    ],
)
def test_is_temporary_error(error, expected: bool) -> None:
    assert is_temporary_error(error) is expected


def test_resolve_address_per_channel() -> None:
    recipient = RecipientEntry(user_id="patient-a")

    assert resolve_address(Channel.WEBSOCKET, recipient, ContactInfo()) == "patient-a"
    assert resolve_address(Channel.EMAIL, recipient, CONTACT) == "patient@example.com"
    assert resolve_address(Channel.SMS, recipient, CONTACT) == "+15551234567"
    with pytest.raises(ChannelSendError) as excinfo:
        resolve_address(Channel.SMS, recipient, ContactInfo())
    assert excinfo.value.retryable is False
