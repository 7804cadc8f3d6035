"""FastAPI dependency utilities and the service container they read from."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from carenotify.application.use_cases.delivery import (
    ChannelDeliveryManager,
    ChannelHealthTracker,
    DeliveryProcessor,
    DeliveryStats,
    DeliveryWorkerPool,
)
from carenotify.application.use_cases.preferences import PreferenceEvaluator
from carenotify.config import Settings
from carenotify.domain.ports import PreferenceStore
from carenotify.infrastructure.channels import ChannelRegistry, build_channel_registry
from carenotify.infrastructure.database import build_session_factory
from carenotify.infrastructure.notifications import NotificationConnectionManager
from carenotify.infrastructure.queue import DeliveryQueue
from carenotify.infrastructure.repositories import SqlAlchemyPreferenceStore


@dataclass
class NotificationServices:
    """Long-lived collaborators shared by requests and delivery workers."""

    settings: Settings
    engine: Engine
    session_factory: Callable[[], Session]
    connections: NotificationConnectionManager
    store: PreferenceStore
    evaluator: PreferenceEvaluator
    queue: DeliveryQueue
    registry: ChannelRegistry
    health: ChannelHealthTracker
    stats: DeliveryStats
    manager: ChannelDeliveryManager
    processor: DeliveryProcessor
    pool: DeliveryWorkerPool


def build_services(
    settings: Settings,
    engine: Engine,
    connections: NotificationConnectionManager,
    *,
    store: PreferenceStore | None = None,
    registry: ChannelRegistry | None = None,
) -> NotificationServices:
    """Wire the queue, evaluator, channel senders and workers from ``settings``."""

    session_factory = build_session_factory(engine)
    store = store or SqlAlchemyPreferenceStore(session_factory)
    registry = registry or build_channel_registry(settings, connections)
    queue = DeliveryQueue(
        session_factory,
        max_attempts=settings.queue_max_attempts,
        backoff_base_seconds=settings.queue_backoff_base_seconds,
        backoff_max_seconds=settings.queue_backoff_max_seconds,
        lease_seconds=settings.queue_lease_seconds,
    )
    health = ChannelHealthTracker()
    stats = DeliveryStats()
    manager = ChannelDeliveryManager(
        registry,
        health=health,
        stats=stats,
        timeout=settings.channel_send_timeout_seconds,
    )
    processor = DeliveryProcessor(session_factory, queue, manager, store)
    pool = DeliveryWorkerPool(
        queue,
        processor,
        worker_count=settings.worker_count,
        batch_size=settings.worker_batch_size,
        poll_interval=settings.worker_poll_interval_seconds,
    )
    return NotificationServices(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        connections=connections,
        store=store,
        evaluator=PreferenceEvaluator(store),
        queue=queue,
        registry=registry,
        health=health,
        stats=stats,
        manager=manager,
        processor=processor,
        pool=pool,
    )


def get_services(request: Request) -> NotificationServices:
    return request.app.state.services


def get_db(
    services: NotificationServices = Depends(get_services),
) -> Generator[Session, None, None]:
    """Yield a database session and close it afterwards."""

    db = services.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_queue(services: NotificationServices = Depends(get_services)) -> DeliveryQueue:
    return services.queue


def get_evaluator(
    services: NotificationServices = Depends(get_services),
) -> PreferenceEvaluator:
    return services.evaluator


def get_preference_store(
    services: NotificationServices = Depends(get_services),
) -> PreferenceStore:
    return services.store


__all__ = [
    "NotificationServices",
    "build_services",
    "get_db",
    "get_evaluator",
    "get_preference_store",
    "get_queue",
    "get_services",
]
