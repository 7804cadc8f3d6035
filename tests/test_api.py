"""Integration tests for the notification and preference API endpoints."""

from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from carenotify.config import Settings
from carenotify.domain.entities import Channel
from carenotify.domain.errors import PreferenceFetchError
from carenotify.infrastructure.channels import ChannelRegistry, WebsocketChannelSender
from carenotify.infrastructure.notifications import NotificationConnectionManager
from carenotify.interfaces.api.dependencies import build_services
from tests.conftest import make_preferences

NOTIFICATION_PAYLOAD = {
    "type": "prescription_ready",
    "priority": "high",
    "title": "Prescription ready",
    "message": "Your prescription is ready for pickup.",
    "recipients": [{"user_id": "patient-1", "user_role": "patient"}],
}


@pytest.fixture()
def connections() -> NotificationConnectionManager:
    return NotificationConnectionManager()


@pytest.fixture()
def services(engine, store, registry, connections, tmp_path):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'api.db'}", worker_enabled=False)
    return build_services(settings, engine, connections, store=store, registry=registry)


@pytest.fixture()
def client(services):
    """Return a test client bound to a clean application instance."""

    from main import create_app

    app = create_app(services=services)
    with TestClient(app) as test_client:
        yield test_client


def test_create_notification_then_deliver(client: TestClient, services, store) -> None:
    store.set_preferences("patient-1", make_preferences())

    response = client.post("/notifications/", json=NOTIFICATION_PAYLOAD)
    assert response.status_code == 201
    created = response.json()
    assert created["priority"] == "high"
    assert created["category"] == "medical"
    recipient = created["recipients"][0]
    assert recipient["approved_channels"] == ["websocket", "email", "sms"]
    assert recipient["evaluation_reason"] == "all_checks_passed"

    assert services.pool.run_once() == 1

    response = client.get(f"/notifications/{created['id']}")
    assert response.status_code == 200
    status = response.json()["recipients"][0]["delivery_status"]
    assert status["websocket"]["state"] == "delivered"


@pytest.mark.parametrize(
    "changes, field",
    [
        ({"priority": "urgent"}, "priority"),
        ({"title": "   "}, "title"),
        ({"recipients": []}, "recipients"),
        ({"category": "billing"}, "category"),
    ],
)
def test_create_notification_validation_errors_name_the_field(
    client: TestClient, changes: dict, field: str
) -> None:
    response = client.post("/notifications/", json={**NOTIFICATION_PAYLOAD, **changes})

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == field
    assert client.get("/notifications/").json() == []


def test_unknown_payload_fields_are_rejected(client: TestClient) -> None:
    response = client.post("/notifications/", json={**NOTIFICATION_PAYLOAD, "sender": "x"})

    assert response.status_code == 422


def test_publish_event(client: TestClient, services) -> None:
    response = client.post(
        "/notifications/events/appointment_reminder",
        json={
            "patient_id": "patient-1",
            "appointment_id": 3,
            "doctor_name": "Rivera",
            "time_until": "1 hour",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "appointment_reminder"
    assert body["message"] == "Reminder: Your appointment with Dr. Rivera is in 1 hour."
    assert services.queue.stats()["queued"] == 1


def test_publish_unknown_event_is_not_found(client: TestClient) -> None:
    response = client.post("/notifications/events/refill_due", json={})

    assert response.status_code == 404


def test_publish_event_with_missing_field(client: TestClient) -> None:
    response = client.post("/notifications/events/prescription_ready", json={"patient_id": "p"})

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "payload.prescription_id"


def test_list_and_read_notifications(client: TestClient) -> None:
    first = client.post("/notifications/", json=NOTIFICATION_PAYLOAD).json()
    second = client.post("/notifications/", json=NOTIFICATION_PAYLOAD).json()

    listed = client.get("/notifications/", params={"limit": 1}).json()

    assert [item["id"] for item in listed] == [second["id"]]
    assert client.get(f"/notifications/{first['id']}").status_code == 200
    assert client.get("/notifications/9999").status_code == 404


def test_preferences_lifecycle(client: TestClient) -> None:
    response = client.get("/preferences/patient-1")
    assert response.status_code == 200
    assert response.json()["is_default"] is True

    response = client.put(
        "/preferences/patient-1",
        json={
            "global_settings": {"enabled": False},
            "contact_info": {"email": "patient@example.com"},
        },
    )
    assert response.status_code == 200
    assert response.json()["preferences"]["global_settings"]["enabled"] is False

    stored = client.get("/preferences/patient-1").json()
    assert stored["is_default"] is False

    response = client.delete("/preferences/patient-1")
    assert response.status_code == 200
    body = response.json()
    assert body["is_default"] is True
    assert body["preferences"]["global_settings"]["enabled"] is True
    assert body["preferences"]["contact_info"]["email"] == "patient@example.com"


def test_invalid_preferences_update(client: TestClient) -> None:
    response = client.put(
        "/preferences/patient-1",
        json={"global_settings": {"quiet_hours": {"start_time": "7pm"}}},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "global_settings.quiet_hours.start_time"


def test_preference_store_outage_is_reported(client: TestClient, store) -> None:
    store.fail_with = PreferenceFetchError("preference backend offline")

    response = client.get("/preferences/patient-1")

    assert response.status_code == 503


def test_evaluate_endpoint_applies_critical_override(client: TestClient, store) -> None:
    muted = make_preferences()
    muted.global_settings.enabled = False
    store.set_preferences("patient-1", muted)

    emergency = client.post(
        "/preferences/patient-1/evaluate",
        json={"type": "prescription_ready", "priority": "emergency"},
    ).json()
    routine = client.post(
        "/preferences/patient-1/evaluate",
        json={"type": "prescription_ready", "priority": "medium"},
    ).json()

    assert emergency["should_deliver"] is True
    assert emergency["reason"] == "critical_override"
    assert set(emergency["channels"]) == {"websocket", "email", "sms"}
    assert routine == {
        "should_deliver": False,
        "channels": [],
        "reason": "globally_disabled",
        "critical": False,
        "channel_decisions": {},
    }


def test_evaluate_rejects_unknown_priority(client: TestClient) -> None:
    response = client.post(
        "/preferences/patient-1/evaluate", json={"type": "x", "priority": "urgent"}
    )

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "priority"


def test_health_reports_queue_and_channels(client: TestClient, services) -> None:
    client.post("/notifications/", json=NOTIFICATION_PAYLOAD)

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["queue"]["queued"] == 1
    assert body["queue"]["tiers"]["high"] == 1
    assert body["delivery"]["channels"]["email"]["attempts"] == 0
    assert body["workers_running"] is False

    for _ in range(11):
        services.health.record_failure(Channel.SMS)

    body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert body["channel_health"]["sms"]["available"] is False


def test_websocket_ping_pong(client: TestClient) -> None:
    with client.websocket_connect("/notifications/ws?user_id=patient-1") as websocket:
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}
        assert client.get("/health").json()["websocket_connections"] == 1

    assert client.get("/health").json()["websocket_connections"] == 0


def test_websocket_requires_user_id(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/ws") as websocket:
            websocket.receive_json()

    assert excinfo.value.code == 1008


def test_worker_pushes_to_open_websocket(engine, store, senders, connections, tmp_path) -> None:
    from main import create_app

    registry = ChannelRegistry(
        [WebsocketChannelSender(connections), senders[Channel.EMAIL], senders[Channel.SMS]]
    )
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'api.db'}", worker_enabled=False)
    services = build_services(settings, engine, connections, store=store, registry=registry)

    with TestClient(create_app(services=services)) as client:
        with client.websocket_connect("/notifications/ws?user_id=patient-1") as websocket:
            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}

            created = client.post("/notifications/", json=NOTIFICATION_PAYLOAD).json()
            assert services.pool.run_once() == 1

            message = websocket.receive_json()

    assert message["type"] == "notification"
    assert message["data"]["id"] == created["id"]
    assert message["data"]["priority"] == "high"
    assert senders[Channel.EMAIL].attempts == 0
