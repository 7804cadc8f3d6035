"""Persisted priority queue feeding the delivery workers.

Items live in the ``delivery_queue_item`` table, so the queue survives restarts:
terminal rows are never dispatched again and leases abandoned by a crashed worker are
reclaimed once they expire. Dequeue drains higher priorities first and is FIFO within
a priority. A worker owns an item from dequeue until it acks, nacks or expires it.

``on_terminal_failure`` is called with every item that becomes terminally ``failed``,
whether through ``nack`` or through lease recovery, after the change is committed.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Iterable

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from carenotify.domain.entities import (
    QUEUE_STATUS_DELIVERED,
    QUEUE_STATUS_EXPIRED,
    QUEUE_STATUS_FAILED,
    QUEUE_STATUS_LEASED,
    QUEUE_STATUS_QUEUED,
    Channel,
    Priority,
    QueueItem,
)
from carenotify.domain.errors import QueueItemNotFoundError
from carenotify.infrastructure.models import DeliveryQueueItemModel
from carenotify.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)

logger = logging.getLogger(__name__)

PROCESSING_TIMEOUT_ERROR = "processing timeout"


class DeliveryQueue:
    """Priority-tiered, retryable work queue with lease/ack semantics."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        max_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
        lease_seconds: float = 300,
        clock: Callable[[], datetime] = now_in_app_timezone,
        on_terminal_failure: Callable[[QueueItem], None] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.lease_seconds = lease_seconds
        self.on_terminal_failure = on_terminal_failure
        self._clock = clock
        self._lock = threading.Lock()

    def backoff_delay(self, attempt_count: int) -> timedelta:
        """Exponential delay before retry number ``attempt_count``."""

        exponent = max(attempt_count - 1, 0)
        seconds = min(self.backoff_base_seconds * (2**exponent), self.backoff_max_seconds)
        return timedelta(seconds=seconds)

    def enqueue(self, item: QueueItem) -> QueueItem:
        return self.enqueue_many([item])[0]

    def enqueue_many(self, items: Iterable[QueueItem]) -> list[QueueItem]:
        now = self._now()
        session = self._session_factory()
        try:
            models = [self._new_model(item, now) for item in items]
            session.add_all(models)
            session.commit()
            return [self._to_entity(model) for model in models]
        finally:
            session.close()

    def dequeue_batch(self, n: int, *, worker_id: str) -> list[QueueItem]:
        """Lease up to ``n`` due items, highest priority first."""

        if n <= 0:
            return []
        self.recover_stale_leases()

        with self._lock:
            now = self._now()
            session = self._session_factory()
            try:
                candidate_ids = [
                    item_id
                    for (item_id,) in session.query(DeliveryQueueItemModel.id)
                    .filter(DeliveryQueueItemModel.status == QUEUE_STATUS_QUEUED)
                    .filter(DeliveryQueueItemModel.next_retry_at <= now)
                    .order_by(
                        DeliveryQueueItemModel.priority.desc(),
                        DeliveryQueueItemModel.id.asc(),
                    )
                    .limit(n)
                    .all()
                ]
                lease_expires_at = now + timedelta(seconds=self.lease_seconds)
                leased_ids: list[int] = []
                for item_id in candidate_ids:
                    # Conditional update so another process cannot lease the same row.
                    result = session.execute(
                        update(DeliveryQueueItemModel)
                        .where(DeliveryQueueItemModel.id == item_id)
                        .where(DeliveryQueueItemModel.status == QUEUE_STATUS_QUEUED)
                        .values(
                            status=QUEUE_STATUS_LEASED,
                            leased_by=worker_id,
                            lease_expires_at=lease_expires_at,
                        )
                    )
                    if result.rowcount == 1:
                        leased_ids.append(item_id)
                session.commit()
                if not leased_ids:
                    return []
                models = (
                    session.query(DeliveryQueueItemModel)
                    .filter(DeliveryQueueItemModel.id.in_(leased_ids))
                    .order_by(
                        DeliveryQueueItemModel.priority.desc(),
                        DeliveryQueueItemModel.id.asc(),
                    )
                    .all()
                )
                return [self._to_entity(model) for model in models]
            finally:
                session.close()

    def ack(self, item_id: int) -> bool:
        """Mark a leased item delivered. Returns ``False`` if there was nothing to ack."""

        with self._lock:
            session = self._session_factory()
            try:
                model = self._get_model(session, item_id)
                if model.status != QUEUE_STATUS_LEASED:
                    return False
                self._finish(model, QUEUE_STATUS_DELIVERED)
                session.commit()
                return True
            finally:
                session.close()

    def nack(
        self,
        item_id: int,
        retry_after: float | timedelta | None = None,
        *,
        error: str | None = None,
        terminal: bool = False,
    ) -> QueueItem | None:
        """Record a failed attempt on a leased item.

        The item is requeued after ``retry_after`` (or the backoff delay) while attempts
        remain and becomes terminally ``failed`` otherwise, or at once when ``terminal``
        is set. Returns ``None`` when the item is not leased.
        """

        with self._lock:
            session = self._session_factory()
            try:
                model = self._get_model(session, item_id)
                if model.status != QUEUE_STATUS_LEASED:
                    return None
                self._record_failure(model, retry_after, error, terminal=terminal)
                session.commit()
                item = self._to_entity(model)
            finally:
                session.close()

        if item.status == QUEUE_STATUS_FAILED:
            self._notify_terminal_failure(item)
        return item

    def expire(self, item_id: int) -> bool:
        """Discard a leased item whose notification expired."""

        with self._lock:
            session = self._session_factory()
            try:
                model = self._get_model(session, item_id)
                if model.status != QUEUE_STATUS_LEASED:
                    return False
                self._finish(model, QUEUE_STATUS_EXPIRED)
                session.commit()
                return True
            finally:
                session.close()

    def recover_stale_leases(self) -> int:
        """Treat leases past their deadline as failed attempts."""

        with self._lock:
            now = self._now()
            session = self._session_factory()
            try:
                stale = (
                    session.query(DeliveryQueueItemModel)
                    .filter(DeliveryQueueItemModel.status == QUEUE_STATUS_LEASED)
                    .filter(DeliveryQueueItemModel.lease_expires_at < now)
                    .all()
                )
                for model in stale:
                    logger.warning(
                        "Reclaiming queue item %s leased by %s after lease expiry",
                        model.id,
                        model.leased_by,
                    )
                    self._record_failure(model, None, PROCESSING_TIMEOUT_ERROR)
                session.commit()
                failed = [
                    self._to_entity(model)
                    for model in stale
                    if model.status == QUEUE_STATUS_FAILED
                ]
            finally:
                session.close()

        for item in failed:
            self._notify_terminal_failure(item)
        return len(stale)

    def get(self, item_id: int) -> QueueItem:
        session = self._session_factory()
        try:
            return self._to_entity(self._get_model(session, item_id))
        finally:
            session.close()

    def list_for_notification(self, notification_id: int) -> list[QueueItem]:
        session = self._session_factory()
        try:
            models = (
                session.query(DeliveryQueueItemModel)
                .filter(DeliveryQueueItemModel.notification_id == notification_id)
                .order_by(DeliveryQueueItemModel.id.asc())
                .all()
            )
            return [self._to_entity(model) for model in models]
        finally:
            session.close()

    def stats(self) -> dict[str, object]:
        session = self._session_factory()
        try:
            by_status = dict(
                session.query(DeliveryQueueItemModel.status, func.count())
                .group_by(DeliveryQueueItemModel.status)
                .all()
            )
            by_tier = dict(
                session.query(DeliveryQueueItemModel.priority, func.count())
                .filter(DeliveryQueueItemModel.status == QUEUE_STATUS_QUEUED)
                .group_by(DeliveryQueueItemModel.priority)
                .all()
            )
        finally:
            session.close()

        return {
            "queued": by_status.get(QUEUE_STATUS_QUEUED, 0),
            "in_flight": by_status.get(QUEUE_STATUS_LEASED, 0),
            "delivered": by_status.get(QUEUE_STATUS_DELIVERED, 0),
            "failed_terminal": by_status.get(QUEUE_STATUS_FAILED, 0),
            "expired": by_status.get(QUEUE_STATUS_EXPIRED, 0),
            "tiers": {
                priority.label: by_tier.get(int(priority), 0)
                for priority in sorted(Priority, reverse=True)
            },
        }

    def _now(self) -> datetime:
        return ensure_app_naive_datetime(self._clock())

    def _notify_terminal_failure(self, item: QueueItem) -> None:
        if self.on_terminal_failure is None:
            return
        try:
            self.on_terminal_failure(item)
        except Exception:
            # The queue row is already committed as failed; report and carry on.
            logger.exception("Terminal failure handler raised for queue item %s", item.id)

    def _new_model(self, item: QueueItem, now: datetime) -> DeliveryQueueItemModel:
        return DeliveryQueueItemModel(
            notification_id=item.notification_id,
            recipient_id=item.recipient_id,
            channels=[Channel(channel).value for channel in item.channels],
            priority=int(item.priority),
            status=QUEUE_STATUS_QUEUED,
            attempt_count=0,
            max_attempts=item.max_attempts or self.max_attempts,
            next_retry_at=ensure_app_naive_datetime(item.next_retry_at) or now,
            digest=item.digest,
            created_at=now,
        )

    @staticmethod
    def _get_model(session: Session, item_id: int) -> DeliveryQueueItemModel:
        model = session.get(DeliveryQueueItemModel, item_id)
        if model is None:
            raise QueueItemNotFoundError(item_id)
        return model

    def _finish(self, model: DeliveryQueueItemModel, status: str) -> None:
        model.status = status
        model.completed_at = self._now()
        model.leased_by = None
        model.lease_expires_at = None

    def _record_failure(
        self,
        model: DeliveryQueueItemModel,
        retry_after: float | timedelta | None,
        error: str | None,
        *,
        terminal: bool = False,
    ) -> None:
        model.attempt_count += 1
        model.last_error = error
        if terminal or model.attempt_count >= model.max_attempts:
            logger.error(
                "Queue item %s for recipient %s failed after %s attempts: %s",
                model.id,
                model.recipient_id,
                model.attempt_count,
                error,
            )
            self._finish(model, QUEUE_STATUS_FAILED)
            return

        if retry_after is None:
            delay = self.backoff_delay(model.attempt_count)
        elif isinstance(retry_after, timedelta):
            delay = retry_after
        else:
            delay = timedelta(seconds=retry_after)
        model.status = QUEUE_STATUS_QUEUED
        model.next_retry_at = self._now() + delay
        model.leased_by = None
        model.lease_expires_at = None

    @staticmethod
    def _to_entity(model: DeliveryQueueItemModel) -> QueueItem:
        return QueueItem(
            id=model.id,
            notification_id=model.notification_id,
            recipient_id=model.recipient_id,
            priority=Priority(model.priority),
            channels=[Channel(value) for value in model.channels or []],
            status=model.status,
            attempt_count=model.attempt_count,
            max_attempts=model.max_attempts,
            next_retry_at=ensure_app_timezone(model.next_retry_at),
            leased_by=model.leased_by,
            lease_expires_at=ensure_app_timezone(model.lease_expires_at),
            last_error=model.last_error,
            digest=bool(model.digest),
            created_at=ensure_app_timezone(model.created_at),
            completed_at=ensure_app_timezone(model.completed_at),
        )


__all__ = ["DeliveryQueue", "PROCESSING_TIMEOUT_ERROR"]
