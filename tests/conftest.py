"""Shared fixtures: a throwaway sqlite database, queue, stores and fake senders."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from carenotify.application.use_cases.delivery import (
    ChannelDeliveryManager,
    ChannelHealthTracker,
    DeliveryProcessor,
    DeliveryStats,
    DeliveryWorkerPool,
)
from carenotify.application.use_cases.preferences import PreferenceEvaluator
from carenotify.domain.entities import (
    Channel,
    ChannelPreference,
    ContactInfo,
    UserPreferences,
    default_preferences,
)
from carenotify.infrastructure.channels import ChannelRegistry, InMemoryChannelSender
from carenotify.infrastructure.database import (
    build_engine,
    build_session_factory,
    initialize_database,
)
from carenotify.infrastructure.queue import DeliveryQueue
from carenotify.infrastructure.repositories import InMemoryPreferenceStore


class FakeClock:
    """Mutable clock injected where code would otherwise read the wall time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_preferences(
    *,
    email_address: str | None = "patient@example.com",
    phone_number: str | None = "+15551234567",
    **channel_overrides: ChannelPreference,
) -> UserPreferences:
    preferences = default_preferences(ContactInfo(email=email_address, phone=phone_number))
    for name, channel_prefs in channel_overrides.items():
        preferences.channels[name] = channel_prefs
    return preferences


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'carenotify-test.db'}")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def queue(session_factory, clock) -> DeliveryQueue:
    return DeliveryQueue(
        session_factory,
        max_attempts=3,
        backoff_base_seconds=1.0,
        backoff_max_seconds=30.0,
        lease_seconds=60,
        clock=clock,
    )


@pytest.fixture()
def store() -> InMemoryPreferenceStore:
    return InMemoryPreferenceStore()


@pytest.fixture()
def evaluator(store) -> PreferenceEvaluator:
    return PreferenceEvaluator(store)


@pytest.fixture()
def senders() -> dict[Channel, InMemoryChannelSender]:
    return {channel: InMemoryChannelSender(channel) for channel in Channel}


@pytest.fixture()
def registry(senders) -> ChannelRegistry:
    return ChannelRegistry(senders.values())


@pytest.fixture()
def delivery_manager(registry):
    manager = ChannelDeliveryManager(
        registry,
        health=ChannelHealthTracker(),
        stats=DeliveryStats(),
        timeout=2.0,
    )
    yield manager
    manager.shutdown()


@pytest.fixture()
def processor(session_factory, queue, delivery_manager, store, clock) -> DeliveryProcessor:
    return DeliveryProcessor(session_factory, queue, delivery_manager, store, clock=clock)


@pytest.fixture()
def worker_pool(queue, processor) -> DeliveryWorkerPool:
    return DeliveryWorkerPool(queue, processor, worker_count=1, batch_size=10, poll_interval=0.05)
