"""
Session management — the one live realtime session and its pure state.

Key components:
- SessionController: connect / interpret / disconnect (coachwire.session.controller)
- ConversationState + interpret(): visibility, local echo, render effects
- UsageTracker: request and token counters, duration, cost estimate
"""

from coachwire.session.models import (
    ButtonVisibility,
    ConnectionState,
    ConnectionStatus,
    ConnectOptions,
    Role,
    TranscriptEntry,
    button_visibility,
)
from coachwire.session.state import (
    SUPPRESSED_PURPOSES,
    ConversationState,
    Visibility,
    interpret,
    normalize_for_dedup,
)

__all__ = [
    "Role",
    "ConnectionState",
    "ConnectionStatus",
    "ConnectOptions",
    "TranscriptEntry",
    "ButtonVisibility",
    "button_visibility",
    "ConversationState",
    "Visibility",
    "SUPPRESSED_PURPOSES",
    "interpret",
    "normalize_for_dedup",
]
