"""Translate domain events into notification inputs."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Mapping

from carenotify.domain.entities import (
    Category,
    NotificationInput,
    NotificationType,
    Priority,
    RecipientInput,
    UserRole,
)
from carenotify.domain.errors import ValidationError

EventPayload = Mapping[str, Any]
EventMapper = Callable[[EventPayload], NotificationInput]


class EventKind(str, Enum):
    PRESCRIPTION_CREATED = "prescription_created"
    PRESCRIPTION_READY = "prescription_ready"
    ORDER_STATUS_CHANGED = "order_status_changed"
    APPOINTMENT_REMINDER = "appointment_reminder"
    PAYMENT_PROCESSED = "payment_processed"
    INVENTORY_LOW_STOCK = "inventory_low_stock"
    SYSTEM_MAINTENANCE = "system_maintenance"
    SECURITY_ALERT = "security_alert"


_MAPPERS: dict[EventKind, EventMapper] = {}


def register(kind: EventKind) -> Callable[[EventMapper], EventMapper]:
    """Register the decorated function as the mapper for ``kind``."""

    def decorator(func: EventMapper) -> EventMapper:
        _MAPPERS[kind] = func
        return func

    return decorator


def registered_kinds() -> list[EventKind]:
    return list(_MAPPERS)


def map_event(kind: EventKind | str, payload: EventPayload) -> NotificationInput:
    """Return the :class:`NotificationInput` produced by the mapper for ``kind``.

    Raises :class:`ValidationError` when the kind is unknown or the payload lacks a
    field the mapper needs.
    """

    try:
        event_kind = EventKind(kind)
    except ValueError as exc:
        raise ValidationError("kind", f"Unknown event kind: {kind}") from exc
    if not isinstance(payload, Mapping):
        raise ValidationError("payload", "Event payload must be an object")
    mapper = _MAPPERS.get(event_kind)
    if mapper is None:
        raise ValidationError("kind", f"No mapper registered for {event_kind.value}")
    return mapper(payload)


def _require(payload: EventPayload, key: str) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        raise ValidationError(f"payload.{key}", "This field is required")
    return value


def _user_ids(payload: EventPayload, key: str) -> list[str]:
    values = payload.get(key) or []
    if isinstance(values, (str, int)):
        values = [values]
    return [str(value) for value in values if value not in (None, "")]


@register(EventKind.PRESCRIPTION_CREATED)
def _prescription_created(payload: EventPayload) -> NotificationInput:
    recipients = [RecipientInput(str(_require(payload, "patient_id")), UserRole.PATIENT.value)]
    recipients.extend(
        RecipientInput(pharmacy_id, UserRole.PHARMACY.value)
        for pharmacy_id in _user_ids(payload, "pharmacy_ids")
    )
    prescription_id = _require(payload, "prescription_id")
    return NotificationInput(
        type=NotificationType.PRESCRIPTION_CREATED.value,
        category=Category.MEDICAL,
        priority=Priority.HIGH,
        title="New Prescription Created",
        message=f"A new prescription has been created by Dr. {_require(payload, 'doctor_name')}.",
        action_url=f"/prescriptions/{prescription_id}",
        action_text="View Prescription",
        metadata={"prescription_id": prescription_id},
        recipients=recipients,
    )


@register(EventKind.PRESCRIPTION_READY)
def _prescription_ready(payload: EventPayload) -> NotificationInput:
    prescription_id = _require(payload, "prescription_id")
    pharmacy_name = _require(payload, "pharmacy_name")
    return NotificationInput(
        type=NotificationType.PRESCRIPTION_READY.value,
        category=Category.MEDICAL,
        priority=Priority.HIGH,
        title="Prescription Ready for Pickup",
        message=f"Your prescription is ready for pickup at {pharmacy_name}.",
        action_url=f"/prescriptions/{prescription_id}",
        action_text="View Details",
        metadata={"prescription_id": prescription_id, "pharmacy_name": pharmacy_name},
        recipients=[RecipientInput(str(_require(payload, "patient_id")), UserRole.PATIENT.value)],
    )


@register(EventKind.ORDER_STATUS_CHANGED)
def _order_status_changed(payload: EventPayload) -> NotificationInput:
    order_id = _require(payload, "order_id")
    order_number = payload.get("order_number") or order_id
    previous_status = _require(payload, "previous_status")
    new_status = _require(payload, "new_status")
    recipients = [RecipientInput(str(_require(payload, "customer_id")), UserRole.PATIENT.value)]
    if payload.get("pharmacy_id"):
        recipients.append(RecipientInput(str(payload["pharmacy_id"]), UserRole.PHARMACY.value))
    return NotificationInput(
        type=NotificationType.ORDER_STATUS_CHANGED.value,
        category=Category.ADMINISTRATIVE,
        priority=Priority.MEDIUM,
        title="Order Status Updated",
        message=(
            f"Your order #{order_number} status has been updated "
            f"from {previous_status} to {new_status}."
        ),
        action_url=f"/orders/{order_id}",
        action_text="Track Order",
        metadata={
            "order_id": order_id,
            "previous_status": previous_status,
            "new_status": new_status,
        },
        recipients=recipients,
    )


@register(EventKind.APPOINTMENT_REMINDER)
def _appointment_reminder(payload: EventPayload) -> NotificationInput:
    appointment_id = _require(payload, "appointment_id")
    return NotificationInput(
        type=NotificationType.APPOINTMENT_REMINDER.value,
        category=Category.MEDICAL,
        priority=Priority.HIGH,
        title="Appointment Reminder",
        message=(
            f"Reminder: Your appointment with Dr. {_require(payload, 'doctor_name')} "
            f"is in {_require(payload, 'time_until')}."
        ),
        action_url=f"/appointments/{appointment_id}",
        action_text="View Appointment",
        metadata={"appointment_id": appointment_id},
        recipients=[RecipientInput(str(_require(payload, "patient_id")), UserRole.PATIENT.value)],
    )


@register(EventKind.PAYMENT_PROCESSED)
def _payment_processed(payload: EventPayload) -> NotificationInput:
    payment_id = _require(payload, "payment_id")
    amount = _require(payload, "amount")
    succeeded = str(payload.get("status") or "succeeded").lower() != "failed"
    if succeeded:
        title = "Payment Successful"
        message = f"Your payment of ${amount} has been processed successfully."
        action_url = f"/payments/{payment_id}"
    else:
        title = "Payment Failed"
        message = f"Your payment of ${amount} could not be processed. Please try again."
        action_url = f"/payments/retry/{payment_id}"
    return NotificationInput(
        type=NotificationType.PAYMENT_PROCESSED.value,
        category=Category.ADMINISTRATIVE,
        priority=Priority.MEDIUM if succeeded else Priority.HIGH,
        title=title,
        message=message,
        action_url=action_url,
        action_text="View Payment" if succeeded else "Retry Payment",
        metadata={"payment_id": payment_id, "amount": amount, "succeeded": succeeded},
        recipients=[RecipientInput(str(_require(payload, "user_id")), UserRole.PATIENT.value)],
    )


@register(EventKind.INVENTORY_LOW_STOCK)
def _inventory_low_stock(payload: EventPayload) -> NotificationInput:
    medication_id = _require(payload, "medication_id")
    medication_name = _require(payload, "medication_name")
    current_stock = _require(payload, "current_stock")
    recipients = [RecipientInput(str(_require(payload, "pharmacy_id")), UserRole.PHARMACY.value)]
    recipients.extend(
        RecipientInput(admin_id, UserRole.ADMIN.value)
        for admin_id in _user_ids(payload, "admin_ids")
    )
    return NotificationInput(
        type=NotificationType.INVENTORY_ALERTS.value,
        category=Category.SYSTEM,
        priority=Priority.HIGH,
        title="Low Stock Alert",
        message=f"{medication_name} is running low. Current stock: {current_stock}",
        action_url=f"/inventory/{medication_id}",
        action_text="Reorder Now",
        metadata={"medication_id": medication_id, "current_stock": current_stock},
        recipients=recipients,
    )


@register(EventKind.SYSTEM_MAINTENANCE)
def _system_maintenance(payload: EventPayload) -> NotificationInput:
    user_ids = _user_ids(payload, "user_ids")
    if not user_ids:
        raise ValidationError("payload.user_ids", "At least one recipient is required")
    starts_at = _require(payload, "starts_at")
    duration = payload.get("duration")
    message = f"Scheduled maintenance begins at {starts_at}."
    if duration:
        message += f" Expected duration: {duration}."
    role = payload.get("user_role")
    return NotificationInput(
        type=NotificationType.SYSTEM_MAINTENANCE.value,
        category=Category.SYSTEM,
        priority=Priority.HIGH,
        title="Scheduled Maintenance",
        message=message,
        metadata={"starts_at": starts_at, "duration": duration},
        recipients=[RecipientInput(user_id, role) for user_id in user_ids],
    )


@register(EventKind.SECURITY_ALERT)
def _security_alert(payload: EventPayload) -> NotificationInput:
    description = _require(payload, "description")
    message = description
    if payload.get("ip_address"):
        message = f"{description} (IP: {payload['ip_address']})"
    return NotificationInput(
        type=NotificationType.SECURITY_ALERTS.value,
        category=Category.SYSTEM,
        priority=Priority.CRITICAL,
        title="Security Alert",
        message=message,
        action_url="/security",
        action_text="Review Security",
        metadata={"ip_address": payload.get("ip_address")},
        recipients=[
            RecipientInput(
                str(_require(payload, "user_id")),
                payload.get("user_role") or UserRole.PATIENT.value,
            )
        ],
    )


__all__ = ["EventKind", "map_event", "register", "registered_kinds"]
