"""Service health report."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from carenotify.interfaces.api.dependencies import NotificationServices, get_services
from carenotify.interfaces.api.schemas import HealthRead

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthRead)
def read_health(services: NotificationServices = Depends(get_services)) -> HealthRead:
    """Report queue depth, delivery counters and channel availability.

    The service is ``degraded`` while the queue backlog exceeds the configured
    threshold or any channel is marked unavailable.
    """

    queue_stats = services.queue.stats()
    channel_health = services.health.snapshot()
    degraded = queue_stats["queued"] > services.settings.queue_degraded_threshold or any(
        not entry["available"] for entry in channel_health.values()
    )
    return HealthRead(
        status="degraded" if degraded else "ok",
        queue=queue_stats,
        delivery=services.stats.snapshot(),
        channel_health=channel_health,
        websocket_connections=services.connections.connection_count(),
        workers_running=services.pool.running,
    )
