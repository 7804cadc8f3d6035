"""Domain entity representing a unit of delivery work."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .enums import Channel, Priority

QUEUE_STATUS_QUEUED = "queued"
QUEUE_STATUS_LEASED = "leased"
QUEUE_STATUS_DELIVERED = "delivered"
QUEUE_STATUS_FAILED = "failed"
QUEUE_STATUS_EXPIRED = "expired"

QUEUE_TERMINAL_STATUSES = frozenset(
    {QUEUE_STATUS_DELIVERED, QUEUE_STATUS_FAILED, QUEUE_STATUS_EXPIRED}
)


@dataclass
class QueueItem:
    """Delivery of one notification to one recipient over an ordered channel list."""

    id: int | None
    notification_id: int
    recipient_id: str
    priority: Priority
    channels: list[Channel] = field(default_factory=list)
    status: str = QUEUE_STATUS_QUEUED
    attempt_count: int = 0
    max_attempts: int = 3
    next_retry_at: datetime | None = None
    leased_by: str | None = None
    lease_expires_at: datetime | None = None
    last_error: str | None = None
    digest: bool = False
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in QUEUE_TERMINAL_STATUSES


__all__ = [
    "QUEUE_STATUS_DELIVERED",
    "QUEUE_STATUS_EXPIRED",
    "QUEUE_STATUS_FAILED",
    "QUEUE_STATUS_LEASED",
    "QUEUE_STATUS_QUEUED",
    "QUEUE_TERMINAL_STATUSES",
    "QueueItem",
]
