"""Aggregate application use cases."""

from .preferences import PreferenceEvaluator, load_preferences
from .delivery import ChannelDeliveryManager, DeliveryProcessor, DeliveryWorkerPool
from .notifications import create_notification, publish_event

__all__ = [
    "ChannelDeliveryManager",
    "DeliveryProcessor",
    "DeliveryWorkerPool",
    "PreferenceEvaluator",
    "create_notification",
    "load_preferences",
    "publish_event",
]
