"""
Transport Events — typed view over the raw realtime event stream.

parse_event() maps each raw server event onto exactly one frozen variant,
through a dispatch table keyed by the wire "type". Both legacy and GA event
names land on the same variant. Anything we do not act on becomes
UnhandledEvent; the raw dict is always kept for logging and dedup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class TransportEvent:
    """Base variant. Every parsed event keeps its wire type and raw payload."""

    type: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def dedup_id(self) -> str | None:
        """Identifier used to drop re-delivered events, in fixed priority order."""
        raw = self.raw
        for key in ("event_id", "id", "item_id"):
            value = raw.get(key)
            if isinstance(value, str) and value:
                return value
        response = raw.get("response")
        if isinstance(response, dict) and response.get("id"):
            return f"response_{response['id']}"
        return None


@dataclass(frozen=True)
class SessionReady(TransportEvent):
    pass


@dataclass(frozen=True)
class SessionUpdated(TransportEvent):
    pass


@dataclass(frozen=True)
class ResponseCreated(TransportEvent):
    response_id: str | None = None
    purpose: str | None = None


@dataclass(frozen=True)
class OutputItem(TransportEvent):
    """response.output_item.added / .done"""

    response_id: str | None = None
    item_id: str | None = None


@dataclass(frozen=True)
class SpeechStarted(TransportEvent):
    pass


@dataclass(frozen=True)
class SpeechStopped(TransportEvent):
    pass


@dataclass(frozen=True)
class InputTranscriptionCompleted(TransportEvent):
    item_id: str | None = None
    transcript: str = ""


@dataclass(frozen=True)
class TextDelta(TransportEvent):
    response_id: str | None = None
    item_id: str | None = None
    delta: str = ""


@dataclass(frozen=True)
class TextDone(TransportEvent):
    response_id: str | None = None
    item_id: str | None = None
    text: str = ""


@dataclass(frozen=True)
class ItemCreated(TransportEvent):
    """conversation.item.created / .added"""

    item_id: str | None = None
    role: str | None = None
    text: str = ""


@dataclass(frozen=True)
class AudioTranscriptDelta(TransportEvent):
    response_id: str | None = None
    item_id: str | None = None
    delta: str = ""


@dataclass(frozen=True)
class AudioTranscriptDone(TransportEvent):
    response_id: str | None = None
    item_id: str | None = None
    transcript: str = ""


@dataclass(frozen=True)
class ResponseDone(TransportEvent):
    response_id: str | None = None
    purpose: str | None = None
    output: tuple[dict[str, Any], ...] = ()
    usage: dict[str, Any] | None = None

    @property
    def response(self) -> dict[str, Any]:
        response = self.raw.get("response")
        return response if isinstance(response, dict) else {}


@dataclass(frozen=True)
class PlaybackStopped(TransportEvent):
    """Assistant audio finished playing (or finished streaming)."""

    response_id: str | None = None


@dataclass(frozen=True)
class TransportFailure(TransportEvent):
    """The channel reported error or close."""

    message: str = ""


@dataclass(frozen=True)
class UnhandledEvent(TransportEvent):
    pass


# ─── Field extraction ─────────────────────────────────────────


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def extract_purpose(response: Any) -> str | None:
    """Purpose tag from response.metadata (purpose or Purpose)."""
    if not isinstance(response, dict):
        return None
    metadata = response.get("metadata")
    if not isinstance(metadata, dict):
        return None
    purpose = metadata.get("purpose") or metadata.get("Purpose")
    return str(purpose) if purpose else None


def extract_item_text(item: Any) -> str:
    """Flatten a conversation item's content into one string."""
    if not isinstance(item, dict):
        return ""
    content = item.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict):
                parts.append(_text(part.get("text")) or _text(part.get("transcript")))
        return " ".join(p for p in parts if p and p.strip())
    if isinstance(content, dict):
        return _text(content.get("text")) or _text(content.get("transcript"))
    return ""


# ─── Parsers ──────────────────────────────────────────────────


def _response_created(raw: dict[str, Any]) -> TransportEvent:
    response = raw.get("response") or {}
    return ResponseCreated(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(response.get("id")) if isinstance(response, dict) else None,
        purpose=extract_purpose(response),
    )


def _output_item(raw: dict[str, Any]) -> TransportEvent:
    item = raw.get("item") or {}
    return OutputItem(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(raw.get("response_id")),
        item_id=_str_or_none(item.get("id")) if isinstance(item, dict) else None,
    )


def _input_transcription(raw: dict[str, Any]) -> TransportEvent:
    return InputTranscriptionCompleted(
        type=raw["type"],
        raw=raw,
        item_id=_str_or_none(raw.get("item_id")),
        transcript=_text(raw.get("transcript")),
    )


def _text_delta(raw: dict[str, Any]) -> TransportEvent:
    return TextDelta(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(raw.get("response_id")),
        item_id=_str_or_none(raw.get("item_id")),
        delta=_text(raw.get("delta")),
    )


def _text_done(raw: dict[str, Any]) -> TransportEvent:
    return TextDone(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(raw.get("response_id")),
        item_id=_str_or_none(raw.get("item_id")),
        text=_text(raw.get("text")),
    )


def _item_created(raw: dict[str, Any]) -> TransportEvent:
    item = raw.get("item")
    if not isinstance(item, dict):
        return UnhandledEvent(type=raw["type"], raw=raw)
    return ItemCreated(
        type=raw["type"],
        raw=raw,
        item_id=_str_or_none(item.get("id")),
        role=_str_or_none(item.get("role")),
        text=extract_item_text(item),
    )


def _audio_delta(raw: dict[str, Any]) -> TransportEvent:
    return AudioTranscriptDelta(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(raw.get("response_id")),
        item_id=_str_or_none(raw.get("item_id")),
        delta=_text(raw.get("delta")),
    )


def _audio_done(raw: dict[str, Any]) -> TransportEvent:
    return AudioTranscriptDone(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(raw.get("response_id")),
        item_id=_str_or_none(raw.get("item_id")),
        transcript=_text(raw.get("transcript")),
    )


def _response_done(raw: dict[str, Any]) -> TransportEvent:
    response = raw.get("response")
    if not isinstance(response, dict):
        response = {}
    output = response.get("output")
    usage = response.get("usage")
    return ResponseDone(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(response.get("id")) or _str_or_none(raw.get("response_id")),
        purpose=extract_purpose(response),
        output=tuple(i for i in output if isinstance(i, dict)) if isinstance(output, list) else (),
        usage=usage if isinstance(usage, dict) else None,
    )


def _playback_stopped(raw: dict[str, Any]) -> TransportEvent:
    return PlaybackStopped(
        type=raw["type"],
        raw=raw,
        response_id=_str_or_none(raw.get("response_id")),
    )


def _failure(raw: dict[str, Any]) -> TransportEvent:
    error = raw.get("error")
    if isinstance(error, dict):
        message = _text(error.get("message")) or _text(error.get("type"))
    else:
        message = _text(error) or _text(raw.get("reason"))
    return TransportFailure(type=raw["type"], raw=raw, message=message or raw["type"])


def _simple(cls: type[TransportEvent]) -> Callable[[dict[str, Any]], TransportEvent]:
    def _parse(raw: dict[str, Any]) -> TransportEvent:
        return cls(type=raw["type"], raw=raw)

    return _parse


_PARSERS: dict[str, Callable[[dict[str, Any]], TransportEvent]] = {
    "session.created": _simple(SessionReady),
    "session.updated": _simple(SessionUpdated),
    "response.created": _response_created,
    "response.output_item.added": _output_item,
    "response.output_item.done": _output_item,
    "input_audio_buffer.speech_started": _simple(SpeechStarted),
    "input_audio_buffer.speech_stopped": _simple(SpeechStopped),
    "conversation.item.input_audio_transcription.completed": _input_transcription,
    "response.text.delta": _text_delta,
    "response.output_text.delta": _text_delta,
    "response.text.done": _text_done,
    "response.output_text.done": _text_done,
    "conversation.item.created": _item_created,
    "conversation.item.added": _item_created,
    "response.audio_transcript.delta": _audio_delta,
    "response.output_audio_transcript.delta": _audio_delta,
    "response.audio_transcript.done": _audio_done,
    "response.output_audio_transcript.done": _audio_done,
    "response.done": _response_done,
    "output_audio_buffer.stopped": _playback_stopped,
    "response.audio.done": _playback_stopped,
    "response.output_audio.done": _playback_stopped,
    "error": _failure,
    "close": _failure,
}


def parse_event(raw: dict[str, Any]) -> TransportEvent:
    """Map a raw server event onto its typed variant."""
    event_type = raw.get("type") if isinstance(raw, dict) else None
    if not isinstance(event_type, str):
        return UnhandledEvent(type="", raw=raw if isinstance(raw, dict) else {})
    parser = _PARSERS.get(event_type)
    if parser is None:
        return UnhandledEvent(type=event_type, raw=raw)
    return parser(raw)
