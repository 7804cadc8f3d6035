"""Schema for the service health report."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthRead(BaseModel):
    status: str
    queue: dict[str, Any] = Field(default_factory=dict)
    delivery: dict[str, Any] = Field(default_factory=dict)
    channel_health: dict[str, Any] = Field(default_factory=dict)
    websocket_connections: int = 0
    workers_running: bool = False


__all__ = ["HealthRead"]
