"""Realtime notification helpers for the infrastructure layer."""

from .manager import NotificationConnectionManager, notification_manager

__all__ = ["NotificationConnectionManager", "notification_manager"]
