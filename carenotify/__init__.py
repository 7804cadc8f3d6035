"""Notification preference evaluation and multi-channel delivery service."""
