"""Channel delivery, fallback and queue workers."""

from .fallback import FallbackCoordinator, FallbackResult, is_temporary_error
from .health import ChannelHealth, ChannelHealthTracker
from .manager import (
    ChannelAttempt,
    ChannelDeliveryManager,
    DeliveryOutcome,
    resolve_address,
)
from .stats import DeliveryStats
from .worker import DeliveryProcessor, DeliveryWorkerPool

__all__ = [
    "ChannelAttempt",
    "ChannelDeliveryManager",
    "ChannelHealth",
    "ChannelHealthTracker",
    "DeliveryOutcome",
    "DeliveryProcessor",
    "DeliveryStats",
    "DeliveryWorkerPool",
    "FallbackCoordinator",
    "FallbackResult",
    "is_temporary_error",
    "resolve_address",
]
