"""Queue consumers that turn leased items into channel deliveries."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from carenotify.application.use_cases.preferences import load_preferences
from carenotify.domain.entities import DeliveryState, QueueItem, RecipientEntry
from carenotify.domain.ports import PreferenceStore
from carenotify.infrastructure.queue import DeliveryQueue
from carenotify.infrastructure.repositories import NotificationRepository
from carenotify.utils import now_in_app_timezone

from .manager import ChannelDeliveryManager, DeliveryOutcome

logger = logging.getLogger(__name__)

_REACHED_STATES = (DeliveryState.SENT, DeliveryState.DELIVERED)


class DeliveryProcessor:
    """Process one leased queue item from start to ack/nack.

    The processor also subscribes to the queue's terminal failures, so items given up
    on outside :meth:`process` (expired leases, crashed workers) still leave a failed
    status on the recipient.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        queue: DeliveryQueue,
        manager: ChannelDeliveryManager,
        store: PreferenceStore,
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self.queue = queue
        self.manager = manager
        self.store = store
        self._persist_lock = threading.Lock()
        queue.on_terminal_failure = self.record_terminal_failure

    def process(self, item: QueueItem) -> DeliveryOutcome | None:
        session = self._session_factory()
        try:
            notification = NotificationRepository(session).get(item.notification_id)
        finally:
            session.close()

        if notification is None:
            logger.error(
                "Notification %s for queue item %s no longer exists",
                item.notification_id,
                item.id,
            )
            self.queue.nack(item.id, error="notification not found", terminal=True)
            return None

        recipient = notification.recipient(item.recipient_id)
        if recipient is None:
            logger.error(
                "Recipient %s missing from notification %s", item.recipient_id, notification.id
            )
            self.queue.nack(item.id, error="recipient not found", terminal=True)
            return None

        if notification.is_expired(self._clock()):
            self._expire(item, recipient)
            return None

        preferences = load_preferences(self.store, recipient.user_id)
        outcome = self.manager.deliver(
            notification,
            recipient,
            item.channels,
            contact=preferences.contact_info,
            on_attempt=lambda entry: self._persist(item, entry),
        )

        if outcome.success:
            self.queue.ack(item.id)
            return outcome

        error = outcome.error_summary or "no deliverable channel"
        updated = self.queue.nack(item.id, error=error, terminal=not outcome.retryable)
        if updated is not None and updated.is_terminal:
            logger.error(
                "Giving up on notification %s for recipient %s after %s attempts: %s",
                notification.id,
                recipient.user_id,
                updated.attempt_count,
                error,
            )
        return outcome

    def _expire(self, item: QueueItem, recipient: RecipientEntry) -> None:
        logger.info(
            "Notification %s expired before delivery to %s", item.notification_id, item.recipient_id
        )
        self.queue.expire(item.id)
        at = self._clock()
        for channel in item.channels:
            current = recipient.delivery_status.get(channel)
            if current is not None and current.state in _REACHED_STATES:
                continue
            recipient.record_attempt(channel, DeliveryState.EXPIRED, at=at)
        self._persist(item, recipient)
        self.manager.stats.record_expired()

    def record_terminal_failure(self, item: QueueItem) -> None:
        """Fail the item's channels that never reached an outcome."""

        self.manager.stats.record_failed()
        at = self._clock()
        error = item.last_error or "delivery failed"
        with self._persist_lock:
            session = self._session_factory()
            try:
                repository = NotificationRepository(session)
                stored = repository.get_recipient(item.notification_id, item.recipient_id)
                if stored is None:
                    return
                unfinished = [
                    channel
                    for channel in item.channels
                    if channel not in stored.delivery_status
                    or stored.delivery_status[channel].state == DeliveryState.PENDING
                ]
                if not unfinished:
                    return
                for channel in unfinished:
                    stored.record_attempt(channel, DeliveryState.FAILED, error=error, at=at)
                repository.save_recipient(item.notification_id, stored)
            finally:
                session.close()

    def _persist(self, item: QueueItem, recipient: RecipientEntry) -> None:
        """Write back the statuses of the channels ``item`` owns."""

        with self._persist_lock:
            session = self._session_factory()
            try:
                repository = NotificationRepository(session)
                stored = repository.get_recipient(item.notification_id, recipient.user_id)
                if stored is None:
                    return
                for channel in item.channels:
                    status = recipient.delivery_status.get(channel)
                    if status is not None:
                        stored.delivery_status[channel] = status
                repository.save_recipient(item.notification_id, stored)
            finally:
                session.close()


class DeliveryWorkerPool:
    """Supervised daemon threads draining the delivery queue."""

    def __init__(
        self,
        queue: DeliveryQueue,
        processor: DeliveryProcessor,
        *,
        worker_count: int = 2,
        batch_size: int = 10,
        poll_interval: float = 1.0,
    ) -> None:
        self.queue = queue
        self.processor = processor
        self.worker_count = worker_count
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._threads = [
            threading.Thread(
                target=self._run,
                args=(f"worker-{index}-{uuid.uuid4().hex[:6]}",),
                name=f"delivery-worker-{index}",
                daemon=True,
            )
            for index in range(self.worker_count)
        ]
        for thread in self._threads:
            thread.start()
        logger.info("Started %s delivery workers", self.worker_count)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Delivery worker %s did not stop within %ss", thread.name, timeout)
        self._threads = []

    def run_once(self, batch_size: int | None = None, *, worker_id: str = "run-once") -> int:
        """Lease and process a single batch on the calling thread."""

        items = self.queue.dequeue_batch(batch_size or self.batch_size, worker_id=worker_id)
        for item in items:
            self._process_safely(item)
        return len(items)

    def _run(self, worker_id: str) -> None:
        logger.debug("Delivery worker %s running", worker_id)
        while not self._stop_event.is_set():
            try:
                processed = self.run_once(worker_id=worker_id)
            except Exception:
                logger.exception("Delivery worker %s failed to poll the queue", worker_id)
                processed = 0
            if not processed:
                self._stop_event.wait(self.poll_interval)
        logger.debug("Delivery worker %s stopped", worker_id)

    def _process_safely(self, item: QueueItem) -> None:
        try:
            self.processor.process(item)
        except Exception as exc:
            logger.exception("Unhandled error while processing queue item %s", item.id)
            self.queue.nack(item.id, error=f"processing error: {exc}")


__all__ = ["DeliveryProcessor", "DeliveryWorkerPool"]
