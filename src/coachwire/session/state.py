"""
Conversation State — the pure half of the Session Controller.

interpret(state, event) -> (state', effects) decides, for one inbound
transport event, what the user should see and which collaborators must
hear about it. It never touches the transport, the surface or a clock;
the controller applies the returned effects in order.

Visibility is tracked per response id. A response becomes SUPPRESSED when it
is created (or completes) with an internal purpose tag, and it stays
suppressed for the rest of the session: nothing can flip it back.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from coachwire.session.models import Role
from coachwire.transport.events import (
    AudioTranscriptDone,
    InputTranscriptionCompleted,
    ItemCreated,
    OutputItem,
    PlaybackStopped,
    ResponseCreated,
    ResponseDone,
    SessionReady,
    SpeechStarted,
    SpeechStopped,
    TextDone,
    TransportEvent,
    TransportFailure,
)

# Internal side-channel exchanges, never rendered
SUPPRESSED_PURPOSES = frozenset(
    {"progress-score", "closure-readiness", "summary-consent-eval"}
)

_WS = re.compile(r"\s+")


def normalize_for_dedup(text: str) -> str:
    """Trim and collapse runs of whitespace."""
    return _WS.sub(" ", text.strip())


class Visibility(str, Enum):
    VISIBLE = "visible"
    SUPPRESSED = "suppressed"


@dataclass(frozen=True)
class ConversationState:
    """Per-session rendering state. Replace, never mutate."""

    response_visibility: Mapping[str, Visibility] = field(default_factory=dict)
    suppressed_items: frozenset[str] = frozenset()
    pending_echoes: tuple[str, ...] = ()

    # ─── Queries ─────────────────────────────────────────────────

    def is_suppressed(
        self, response_id: str | None = None, item_id: str | None = None
    ) -> bool:
        if response_id and self.response_visibility.get(response_id) is Visibility.SUPPRESSED:
            return True
        return bool(item_id) and item_id in self.suppressed_items

    # ─── Transitions ─────────────────────────────────────────────

    def observe_response(self, response_id: str | None, purpose: str | None) -> ConversationState:
        """Record a response's visibility. Suppression is sticky."""
        if not response_id:
            return self
        current = self.response_visibility.get(response_id)
        if current is Visibility.SUPPRESSED:
            return self
        visibility = (
            Visibility.SUPPRESSED
            if purpose and purpose in SUPPRESSED_PURPOSES
            else Visibility.VISIBLE
        )
        if current is visibility:
            return self
        updated = dict(self.response_visibility)
        updated[response_id] = visibility
        return replace(self, response_visibility=updated)

    def suppress_items(self, item_ids: Iterable[str | None]) -> ConversationState:
        ids = {i for i in item_ids if isinstance(i, str) and i}
        if not ids or ids <= self.suppressed_items:
            return self
        return replace(self, suppressed_items=self.suppressed_items | ids)

    def record_echo(self, text: str) -> ConversationState:
        normalized = normalize_for_dedup(text)
        if not normalized:
            return self
        return replace(self, pending_echoes=self.pending_echoes + (normalized,))

    def consume_echo(self, text: str) -> tuple[ConversationState, bool]:
        """Remove the first pending echo equal to text. Returns (state, found)."""
        normalized = normalize_for_dedup(text)
        if normalized not in self.pending_echoes:
            return self, False
        echoes = list(self.pending_echoes)
        echoes.remove(normalized)
        return replace(self, pending_echoes=tuple(echoes)), True


# ─── Effects ─────────────────────────────────────────────────


@dataclass(frozen=True)
class Render:
    """Append a message to the conversation log."""

    role: Role
    text: str
    message_id: str | None = None
    speaking: bool = False  # Coach audio is starting for this message


@dataclass(frozen=True)
class MarkReady:
    pass


@dataclass(frozen=True)
class SetRecording:
    active: bool


@dataclass(frozen=True)
class StopSpeaking:
    pass


@dataclass(frozen=True)
class ResponseStarted:
    response_id: str | None
    purpose: str | None


@dataclass(frozen=True)
class ResponseCompleted:
    response_id: str | None
    purpose: str | None


@dataclass(frozen=True)
class PlaybackFinished:
    response_id: str | None = None


@dataclass(frozen=True)
class RecordUsage:
    usage: dict[str, Any]


@dataclass(frozen=True)
class Teardown:
    reason: str


Effect = Any
Result = tuple[ConversationState, list[Effect]]


# ─── Handlers ────────────────────────────────────────────────


def _on_ready(state: ConversationState, event: SessionReady) -> Result:
    return state, [MarkReady()]


def _on_response_created(state: ConversationState, event: ResponseCreated) -> Result:
    state = state.observe_response(event.response_id, event.purpose)
    return state, [ResponseStarted(event.response_id, event.purpose)]


def _on_output_item(state: ConversationState, event: OutputItem) -> Result:
    if state.is_suppressed(response_id=event.response_id):
        state = state.suppress_items([event.item_id])
    return state, []


def _on_speech_started(state: ConversationState, event: SpeechStarted) -> Result:
    return state, [StopSpeaking(), SetRecording(True)]


def _on_speech_stopped(state: ConversationState, event: SpeechStopped) -> Result:
    return state, [SetRecording(False)]


def _on_input_transcription(
    state: ConversationState, event: InputTranscriptionCompleted
) -> Result:
    text = event.transcript.strip()
    if not text:
        return state, []
    return state.record_echo(text), [Render(Role.USER, text, event.item_id)]


def _on_text_done(state: ConversationState, event: TextDone) -> Result:
    text = event.text.strip()
    if not text or state.is_suppressed(event.response_id, event.item_id):
        return state, []
    return state, [Render(Role.ASSISTANT, text, event.item_id)]


def _on_audio_transcript_done(
    state: ConversationState, event: AudioTranscriptDone
) -> Result:
    text = event.transcript.strip()
    if not text or state.is_suppressed(event.response_id, event.item_id):
        return state, []
    return state, [Render(Role.ASSISTANT, text, event.item_id, speaking=True)]


def _on_item_created(state: ConversationState, event: ItemCreated) -> Result:
    if event.item_id and event.item_id in state.suppressed_items:
        return state, []
    text = event.text.strip()
    if not text:
        return state, []

    if event.role == Role.USER.value:
        state, echoed = state.consume_echo(text)
        if echoed:
            return state, []
        return state, [Render(Role.USER, text, event.item_id)]

    return state, [Render(Role.ASSISTANT, text, event.item_id)]


def _assistant_parts(output: Iterable[dict[str, Any]]) -> list[tuple[str | None, str]]:
    parts = []
    for item in output:
        if item.get("type") != "message" or item.get("role") != "assistant":
            continue
        item_id = item.get("id") if isinstance(item.get("id"), str) else None
        content = item.get("content")
        if isinstance(content, list):
            for c in content:
                if isinstance(c, dict) and c.get("type") in ("text", "output_text") and c.get("text"):
                    parts.append((item_id, str(c["text"])))
        elif isinstance(content, dict) and content.get("text"):
            parts.append((item_id, str(content["text"])))
    return parts


def _on_response_done(state: ConversationState, event: ResponseDone) -> Result:
    state = state.observe_response(event.response_id, event.purpose)
    effects: list[Effect] = []

    if state.is_suppressed(response_id=event.response_id) or (
        event.purpose in SUPPRESSED_PURPOSES
    ):
        state = state.suppress_items(item.get("id") for item in event.output)
    else:
        for item_id, text in _assistant_parts(event.output):
            if text.strip():
                effects.append(Render(Role.ASSISTANT, text.strip(), item_id))

    if event.usage:
        effects.append(RecordUsage(event.usage))
    effects.append(ResponseCompleted(event.response_id, event.purpose))
    return state, effects


def _on_playback_stopped(state: ConversationState, event: PlaybackStopped) -> Result:
    return state, [StopSpeaking(), PlaybackFinished(event.response_id)]


def _on_failure(state: ConversationState, event: TransportFailure) -> Result:
    return state, [Teardown(event.message)]


_HANDLERS: dict[type, Callable[[ConversationState, Any], Result]] = {
    SessionReady: _on_ready,
    ResponseCreated: _on_response_created,
    OutputItem: _on_output_item,
    SpeechStarted: _on_speech_started,
    SpeechStopped: _on_speech_stopped,
    InputTranscriptionCompleted: _on_input_transcription,
    TextDone: _on_text_done,
    AudioTranscriptDone: _on_audio_transcript_done,
    ItemCreated: _on_item_created,
    ResponseDone: _on_response_done,
    PlaybackStopped: _on_playback_stopped,
    TransportFailure: _on_failure,
}


def interpret(state: ConversationState, event: TransportEvent) -> Result:
    """One transport event in, the next state and its effects out."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        return state, []
    return handler(state, event)
