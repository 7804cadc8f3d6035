"""Endpoints and websocket handler for notifications."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import (
    APIRouter,
    Body,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session

from carenotify.application.use_cases.notifications import (
    create_notification as create_notification_uc,
    publish_event as publish_event_uc,
)
from carenotify.application.use_cases.preferences import PreferenceEvaluator
from carenotify.domain.errors import ValidationError
from carenotify.infrastructure.queue import DeliveryQueue
from carenotify.infrastructure.repositories import NotificationRepository
from carenotify.interfaces.api.dependencies import get_db, get_evaluator, get_queue
from carenotify.interfaces.api.routes_helpers import validation_exception
from carenotify.interfaces.api.schemas import NotificationCreate, NotificationRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
def create_notification(
    notification_in: NotificationCreate,
    db: Session = Depends(get_db),
    evaluator: PreferenceEvaluator = Depends(get_evaluator),
    queue: DeliveryQueue = Depends(get_queue),
) -> NotificationRead:
    """Create a notification and queue its deliveries."""

    try:
        notification = create_notification_uc(
            db, notification_in.to_input(), evaluator=evaluator, queue=queue
        )
    except ValidationError as exc:
        raise validation_exception(exc) from exc
    return NotificationRead.from_entity(notification)


@router.post(
    "/events/{kind}", response_model=NotificationRead, status_code=status.HTTP_201_CREATED
)
def publish_event(
    kind: str,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    evaluator: PreferenceEvaluator = Depends(get_evaluator),
    queue: DeliveryQueue = Depends(get_queue),
) -> NotificationRead:
    """Map a domain event to a notification and queue its deliveries."""

    try:
        notification = publish_event_uc(db, kind, payload, evaluator=evaluator, queue=queue)
    except ValidationError as exc:
        if exc.field == "kind":
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
        raise validation_exception(exc) from exc
    return NotificationRead.from_entity(notification)


@router.get("/", response_model=list[NotificationRead])
def list_notifications(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[NotificationRead]:
    """Return the most recent notifications."""

    notifications = NotificationRepository(db).list_recent(limit=limit)
    return [NotificationRead.from_entity(notification) for notification in notifications]


@router.get("/{notification_id}", response_model=NotificationRead)
def read_notification(notification_id: int, db: Session = Depends(get_db)) -> NotificationRead:
    """Return a notification with the delivery status of each recipient."""

    notification = NotificationRepository(db).get(notification_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found"
        )
    return NotificationRead.from_entity(notification)


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to the connected user."""

    user_id = (websocket.query_params.get("user_id") or "").strip()
    if not user_id:
        await websocket.close(code=1008)
        return

    connections = websocket.app.state.services.connections
    await connections.connect(user_id, websocket)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                logger.debug("Ignoring malformed websocket frame from user %s", user_id)
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        connections.disconnect(user_id, websocket)
    except Exception:
        connections.disconnect(user_id, websocket)
        raise
