"""
Session Models — the small value types shared across the orchestrator.

All models are frozen dataclasses — create new instances for modifications.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Who a rendered message or transcript entry belongs to."""

    USER = "user"  # The client being coached
    ASSISTANT = "assistant"  # The coach
    SYSTEM = "system"  # Local notices (summary requested, end of conversation)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ConnectionStatus:
    """What the surface is told whenever the connection changes."""

    connected: bool = False
    connecting: bool = False
    has_usage_data: bool = False

    @property
    def state(self) -> ConnectionState:
        if self.connected:
            return ConnectionState.CONNECTED
        if self.connecting:
            return ConnectionState.CONNECTING
        return ConnectionState.DISCONNECTED


@dataclass(frozen=True)
class ConnectOptions:
    """Inputs to SessionController.connect()."""

    instructions: str = ""
    output_modalities: tuple[str, ...] = ("audio",)
    purpose_preset: str = ""
    personality_preset: str = ""
    summary_auto_enabled: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TranscriptEntry:
    """One utterance in the analyzer's rolling transcript."""

    role: Role
    text: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ButtonVisibility:
    connect: bool = False
    disconnect: bool = False
    new_session: bool = False


def button_visibility(status: ConnectionStatus) -> ButtonVisibility:
    """Connect / disconnect / new-session, driven only by connection state and usage."""
    if status.connecting:
        return ButtonVisibility()
    if status.connected:
        return ButtonVisibility(disconnect=True)
    if status.has_usage_data:
        return ButtonVisibility(new_session=True)
    return ButtonVisibility(connect=True)
