from .health import HealthRead
from .notification import (
    ChannelStatusRead,
    NotificationCreate,
    NotificationRead,
    RecipientCreate,
    RecipientRead,
)
from .preferences import (
    ChannelDecisionRead,
    EvaluationRead,
    EvaluationRequest,
    PreferencesRead,
)

__all__ = [
    "ChannelDecisionRead",
    "ChannelStatusRead",
    "EvaluationRead",
    "EvaluationRequest",
    "HealthRead",
    "NotificationCreate",
    "NotificationRead",
    "PreferencesRead",
    "RecipientCreate",
    "RecipientRead",
]
