"""Tests for the event to notification mapping table."""

from __future__ import annotations

import pytest

from carenotify.application.use_cases.notifications import (
    EventKind,
    build_notification,
    map_event,
    publish_event,
    registered_kinds,
)
from carenotify.domain.entities import Category, Priority, UserRole
from carenotify.domain.errors import ValidationError

VALID_PAYLOADS = {
    EventKind.PRESCRIPTION_CREATED: {
        "patient_id": "patient-1",
        "prescription_id": 41,
        "doctor_name": "Rivera",
        "pharmacy_ids": ["pharmacy-1"],
    },
    EventKind.PRESCRIPTION_READY: {
        "patient_id": "patient-1",
        "prescription_id": 41,
        "pharmacy_name": "Main Street Pharmacy",
    },
    EventKind.ORDER_STATUS_CHANGED: {
        "customer_id": "patient-1",
        "order_id": 12,
        "order_number": "A-0012",
        "previous_status": "pending",
        "new_status": "shipped",
    },
    EventKind.APPOINTMENT_REMINDER: {
        "patient_id": "patient-1",
        "appointment_id": 3,
        "doctor_name": "Rivera",
        "time_until": "1 hour",
    },
    EventKind.PAYMENT_PROCESSED: {
        "user_id": "patient-1",
        "payment_id": 9,
        "amount": "25.00",
        "status": "succeeded",
    },
    EventKind.INVENTORY_LOW_STOCK: {
        "pharmacy_id": "pharmacy-1",
        "medication_id": 5,
        "medication_name": "Amoxicillin",
        "current_stock": 3,
        "admin_ids": ["admin-1"],
    },
    EventKind.SYSTEM_MAINTENANCE: {
        "user_ids": ["patient-1", "doctor-1"],
        "starts_at": "02:00 UTC",
        "duration": "30 minutes",
    },
    EventKind.SECURITY_ALERT: {
        "user_id": "patient-1",
        "description": "New sign-in from an unrecognised device",
        "ip_address": "203.0.113.7",
    },
}


def test_every_event_kind_has_a_mapper() -> None:
    assert set(registered_kinds()) == set(EventKind)


@pytest.mark.parametrize("kind", list(EventKind))
def test_mapped_events_build_valid_notifications(kind: EventKind) -> None:
    data = map_event(kind, VALID_PAYLOADS[kind])

    notification = build_notification(data)

    assert notification.recipients
    assert notification.content.title
    assert notification.category is not None


def test_prescription_created_notifies_patient_and_pharmacies() -> None:
    data = map_event("prescription_created", VALID_PAYLOADS[EventKind.PRESCRIPTION_CREATED])

    assert [(r.user_id, r.user_role) for r in data.recipients] == [
        ("patient-1", UserRole.PATIENT.value),
        ("pharmacy-1", UserRole.PHARMACY.value),
    ]
    assert data.priority == Priority.HIGH
    assert data.category == Category.MEDICAL
    assert data.message == "A new prescription has been created by Dr. Rivera."
    assert data.action_url == "/prescriptions/41"


def test_order_status_message_uses_order_number() -> None:
    data = map_event(EventKind.ORDER_STATUS_CHANGED, VALID_PAYLOADS[EventKind.ORDER_STATUS_CHANGED])

    assert data.message == "Your order #A-0012 status has been updated from pending to shipped."
    assert data.priority == Priority.MEDIUM


def test_failed_payment_is_high_priority() -> None:
    payload = {**VALID_PAYLOADS[EventKind.PAYMENT_PROCESSED], "status": "failed"}

    data = map_event(EventKind.PAYMENT_PROCESSED, payload)

    assert data.title == "Payment Failed"
    assert data.priority == Priority.HIGH
    assert data.action_url == "/payments/retry/9"


def test_security_alert_is_critical_and_includes_the_ip() -> None:
    data = map_event(EventKind.SECURITY_ALERT, VALID_PAYLOADS[EventKind.SECURITY_ALERT])

    assert data.priority == Priority.CRITICAL
    assert data.type == "security_alerts"
    assert data.message.endswith("(IP: 203.0.113.7)")


def test_inventory_alert_adds_admin_recipients() -> None:
    data = map_event(EventKind.INVENTORY_LOW_STOCK, VALID_PAYLOADS[EventKind.INVENTORY_LOW_STOCK])

    assert data.type == "inventory_alerts"
    assert [r.user_role for r in data.recipients] == ["pharmacy", "admin"]


def test_unknown_event_kind_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        map_event("refill_due", {})

    assert excinfo.value.field == "kind"


@pytest.mark.parametrize(
    "kind, missing",
    [
        (EventKind.PRESCRIPTION_READY, "patient_id"),
        (EventKind.APPOINTMENT_REMINDER, "doctor_name"),
        (EventKind.PAYMENT_PROCESSED, "amount"),
        (EventKind.SECURITY_ALERT, "user_id"),
    ],
)
def test_missing_payload_fields_name_the_field(kind: EventKind, missing: str) -> None:
    payload = dict(VALID_PAYLOADS[kind])
    del payload[missing]

    with pytest.raises(ValidationError) as excinfo:
        map_event(kind, payload)

    assert excinfo.value.field == f"payload.{missing}"


def test_non_mapping_payload_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        map_event(EventKind.PRESCRIPTION_READY, ["patient-1"])

    assert excinfo.value.field == "payload"


def test_publish_event_creates_and_enqueues(session, evaluator, queue, clock) -> None:
    notification = publish_event(
        session,
        EventKind.SECURITY_ALERT,
        VALID_PAYLOADS[EventKind.SECURITY_ALERT],
        evaluator=evaluator,
        queue=queue,
        now=clock.now,
    )

    assert notification.id is not None
    assert notification.category == Category.SYSTEM
    [item] = queue.list_for_notification(notification.id)
    assert item.priority == Priority.CRITICAL
    assert item.recipient_id == "patient-1"
