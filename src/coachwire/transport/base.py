"""
TransportSession — the capability the orchestrator needs from the upstream channel.

A transport owns one bidirectional connection to the realtime agent. It emits
raw server events (dicts with a "type") to its subscribers, in arrival order,
and accepts client commands.

Commands never block: send_event() hands the event to the transport's
outbound queue and returns. A transport that is not open raises SendFailure.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Sequence

if TYPE_CHECKING:
    from coachwire.credentials import Credential

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], None]


class TransportSession(ABC):
    """Base class for realtime transports."""

    name: str = "base"

    def __init__(self) -> None:
        self._subscribers: list[EventCallback] = []

    @abstractmethod
    async def connect(self, credential: "Credential") -> None:
        """Open the channel using a session credential. May raise TransportError."""

    @abstractmethod
    def send_event(self, event: dict[str, Any]) -> None:
        """Queue an arbitrary client event. Raises SendFailure if not open."""

    @abstractmethod
    def mute(self, muted: bool) -> None:
        """Stop (or resume) forwarding microphone input upstream."""

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""

    # ─── Derived commands ─────────────────────────────────────────

    def send_message(
        self,
        role: str,
        text: str,
        response_metadata: dict[str, Any] | None = None,
    ) -> None:
        """Add a message to the conversation and, for user turns, ask for a reply."""
        self.send_event(
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "message",
                    "role": role,
                    "content": [{"type": "input_text", "text": text}],
                },
            }
        )
        if role != "user":
            return
        response: dict[str, Any] = {}
        if response_metadata:
            response["metadata"] = dict(response_metadata)
        self.send_event({"type": "response.create", "response": response})

    def update_session_config(
        self,
        instructions: str | None = None,
        output_modalities: Sequence[str] | None = None,
    ) -> None:
        session: dict[str, Any] = {"type": "realtime"}
        if instructions is not None:
            session["instructions"] = instructions
        if output_modalities is not None:
            session["output_modalities"] = list(output_modalities)
        self.send_event({"type": "session.update", "session": session})

    # ─── Subscription ─────────────────────────────────────────────

    def on_event(self, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to server events. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def _emit(self, event: dict[str, Any]) -> None:
        """Deliver one server event to every subscriber, in order."""
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Error in event callback for %s (%s): %s",
                    self.name,
                    event.get("type"),
                    e,
                    exc_info=True,
                )

    def __repr__(self) -> str:
        return f"<{self.name} TransportSession>"
