"""
Render Surface — everything the orchestrator shows the user.

The orchestrator never draws anything itself; it calls a RenderSurface.
The surface owns its ConversationLog, an append-only list of messages
that drops repeated deliveries of the same message id, so two sessions
(or two tests) never share "last rendered" state.

Subclasses implement draw_message(); every other hook defaults to a no-op
so a surface only overrides what it can actually show.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from coachwire.session.models import Role

if TYPE_CHECKING:
    from coachwire.session.models import ConnectionStatus

END_MARKER = "— 会話終了 —"


@dataclass(frozen=True)
class LogEntry:
    role: Role
    text: str
    message_id: str | None = None
    timestamp: float = field(default_factory=time.time)


class ConversationLog:
    """Append-only message log, de-duplicated by message id."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []
        self._seen_ids: set[str] = set()

    def append(self, role: Role, text: str, message_id: str | None = None) -> LogEntry | None:
        """Add a message. Returns None if this message id was already logged."""
        if message_id:
            if message_id in self._seen_ids:
                return None
            self._seen_ids.add(message_id)
        entry = LogEntry(role=role, text=text, message_id=message_id)
        self.entries.append(entry)
        return entry

    def clear(self) -> None:
        self.entries.clear()
        self._seen_ids.clear()

    def texts(self, role: Role | None = None) -> list[str]:
        return [e.text for e in self.entries if role is None or e.role is role]

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class ProgressSnapshot:
    """What the progress display shows after one evaluation."""

    scores: dict[str, float]
    labels: dict[str, str]
    current_label: str = ""
    notes: str = ""
    label_prefix: str = ""

    def percentages(self) -> dict[str, int]:
        return {
            key: max(0, min(100, round(value * 100)))
            for key, value in self.scores.items()
        }


class RenderSurface(ABC):
    """Base class for rendering surfaces."""

    def __init__(self) -> None:
        self.log = ConversationLog()

    # ─── Conversation log ────────────────────────────────────────

    def append_message(
        self, role: Role, text: str, message_id: str | None = None
    ) -> bool:
        """Log and draw a message. False when it was a repeated delivery."""
        entry = self.log.append(role, text, message_id)
        if entry is None:
            return False
        self.draw_message(entry)
        return True

    def append_end_marker(self) -> None:
        self.append_message(Role.SYSTEM, END_MARKER)

    def clear_log(self) -> None:
        self.log.clear()

    @abstractmethod
    def draw_message(self, entry: LogEntry) -> None:
        """Put one new log entry on screen."""

    # ─── Optional hooks ──────────────────────────────────────────

    def show_progress(self, snapshot: ProgressSnapshot) -> None:
        pass

    def set_progress_visible(self, visible: bool) -> None:
        pass

    def show_closure_suggestion(self, message: str) -> None:
        pass

    def hide_closure_suggestion(self) -> None:
        pass

    def set_connection_status(self, status: "ConnectionStatus") -> None:
        pass

    def set_summary_available(self, available: bool) -> None:
        pass

    def set_speaking(self, speaking: bool) -> None:
        pass

    def set_recording(self, recording: bool) -> None:
        pass

    def alert(self, message: str) -> None:
        pass

    def show_hint(self, message: str) -> None:
        pass
