"""Schemas for notification preference endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from carenotify.domain.entities import DeliveryDecision


class PreferencesRead(BaseModel):
    user_id: str
    is_default: bool = False
    preferences: dict[str, Any]


class EvaluationRequest(BaseModel):
    """Notification attributes used for a dry-run evaluation."""

    model_config = ConfigDict(extra="forbid")

    type: str
    priority: int | str = "medium"
    category: str | None = None
    user_role: str | None = None
    title: str = "Preview"
    message: str = "Preview"


class ChannelDecisionRead(BaseModel):
    should_use: bool
    reason: str
    digest: bool = False


class EvaluationRead(BaseModel):
    should_deliver: bool
    channels: list[str]
    reason: str
    critical: bool = False
    channel_decisions: dict[str, ChannelDecisionRead] = Field(default_factory=dict)

    @classmethod
    def from_decision(cls, decision: DeliveryDecision) -> "EvaluationRead":
        return cls(
            should_deliver=decision.should_deliver,
            channels=[channel.value for channel in decision.channels],
            reason=decision.reason,
            critical=decision.critical,
            channel_decisions={
                channel.value: ChannelDecisionRead(
                    should_use=item.should_use, reason=item.reason, digest=item.digest
                )
                for channel, item in decision.channel_decisions.items()
            },
        )


__all__ = [
    "ChannelDecisionRead",
    "EvaluationRead",
    "EvaluationRequest",
    "PreferencesRead",
]
