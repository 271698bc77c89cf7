"""Shared fakes: transport, surface, credential source and a manual clock."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest

from coachwire.core.config import CoachwireConfig
from coachwire.core.errors import CredentialError, SendFailure
from coachwire.credentials import Credential
from coachwire.modality import Modality
from coachwire.render.base import LogEntry, ProgressSnapshot, RenderSurface
from coachwire.session.controller import SessionController
from coachwire.session.models import ConnectionStatus
from coachwire.transport.base import TransportSession


class FakeTransport(TransportSession):
    """In-memory transport. Records every command; emit() plays server events."""

    name = "fake"

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[dict[str, Any]] = []
        self.mute_calls: list[bool] = []
        self.credential: Credential | None = None
        self.open = False
        self.closed = False
        self.fail_sends = False
        self.fail_connect: Exception | None = None

    async def connect(self, credential: Credential) -> None:
        if self.fail_connect is not None:
            raise self.fail_connect
        self.credential = credential
        self.open = True

    def send_event(self, event: dict[str, Any]) -> None:
        if not self.open or self.fail_sends:
            raise SendFailure(f"cannot send {event.get('type')}")
        self.sent.append(event)

    def mute(self, muted: bool) -> None:
        self.mute_calls.append(muted)

    async def close(self) -> None:
        self.open = False
        self.closed = True

    def emit(self, raw: dict[str, Any]) -> None:
        self._emit(raw)

    # ─── Inspection helpers ─────────────────────────────────────

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.sent if e.get("type") == event_type]

    def with_purpose(self, purpose: str) -> list[dict[str, Any]]:
        return [
            e
            for e in self.of_type("response.create")
            if (e.get("response") or {}).get("metadata", {}).get("purpose") == purpose
        ]

    def user_texts(self) -> list[str]:
        return [
            e["item"]["content"][0]["text"]
            for e in self.of_type("conversation.item.create")
        ]


class MemorySurface(RenderSurface):
    """Surface that remembers everything it was asked to show."""

    def __init__(self) -> None:
        super().__init__()
        self.drawn: list[LogEntry] = []
        self.snapshots: list[ProgressSnapshot] = []
        self.progress_visible = False
        self.suggestion: str | None = None
        self.suggestion_shows = 0
        self.statuses: list[ConnectionStatus] = []
        self.summary_available = False
        self.speaking = False
        self.recording = False
        self.alerts: list[str] = []
        self.hints: list[str] = []

    def draw_message(self, entry: LogEntry) -> None:
        self.drawn.append(entry)

    def show_progress(self, snapshot: ProgressSnapshot) -> None:
        self.snapshots.append(snapshot)

    def set_progress_visible(self, visible: bool) -> None:
        self.progress_visible = visible

    def show_closure_suggestion(self, message: str) -> None:
        self.suggestion = message
        self.suggestion_shows += 1

    def hide_closure_suggestion(self) -> None:
        self.suggestion = None

    def set_connection_status(self, status: ConnectionStatus) -> None:
        self.statuses.append(status)

    def set_summary_available(self, available: bool) -> None:
        self.summary_available = available

    def set_speaking(self, speaking: bool) -> None:
        self.speaking = speaking

    def set_recording(self, recording: bool) -> None:
        self.recording = recording

    def alert(self, message: str) -> None:
        self.alerts.append(message)

    def show_hint(self, message: str) -> None:
        self.hints.append(message)


class FakeAcquirer:
    def __init__(self, error: CredentialError | None = None) -> None:
        self.error = error
        self.calls = 0

    async def acquire(self) -> Credential:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Credential(token="ek_test", expires_at=1_700_000_000)


class FakeClock:
    """Manual monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


MORNING = datetime(2025, 1, 6, 9, 30)


def make_controller(
    transport: FakeTransport | None = None,
    surface: MemorySurface | None = None,
    acquirer: FakeAcquirer | None = None,
    clock: FakeClock | None = None,
    settings: CoachwireConfig | None = None,
    modality: Modality = Modality.VOICE,
):
    transport = transport or FakeTransport()
    surface = surface or MemorySurface()
    clock = clock or FakeClock()
    controller = SessionController(
        acquirer=acquirer or FakeAcquirer(),  # type: ignore[arg-type]
        transport_factory=lambda: transport,
        surface=surface,
        settings=settings or CoachwireConfig(),
        modality=modality,
        clock=clock,
        now=lambda: MORNING,
    )
    return controller, transport, surface, clock


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def surface() -> MemorySurface:
    return MemorySurface()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
