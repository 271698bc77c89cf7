"""
Session Controller — owns the one live realtime session.

Lifecycle:
  connect()     → acquire credential → open transport → fallback timer
  session ready → status connected → microphone state → greeting (once)
  disconnect()  → cleanup → end marker → close transport
  error/close   → cleanup → status disconnected → alert (no auto-reconnect)

Every inbound transport event is parsed into a typed variant and run through
the pure interpret() step; the controller only applies the effects it gets
back (render, indicators, negotiator callbacks, usage) and then hands the
event to the Progress Analyzer. Handlers never await.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Sequence

from coachwire.analysis.analyzer import ProgressAnalyzer
from coachwire.analysis.dimensions import get_dimension_set
from coachwire.closure.negotiator import SummaryNegotiator
from coachwire.core.config import CoachwireConfig
from coachwire.core.errors import NotConnectedError, SendFailure
from coachwire.core.timers import TimerSet
from coachwire.credentials import CredentialAcquirer
from coachwire.modality import Modality, desired_output_modalities
from coachwire.render.base import RenderSurface
from coachwire.session.greeting import greeting_for_now
from coachwire.session.models import ConnectionState, ConnectionStatus, ConnectOptions, Role
from coachwire.session.state import (
    ConversationState,
    Effect,
    MarkReady,
    PlaybackFinished,
    RecordUsage,
    Render,
    ResponseCompleted,
    ResponseStarted,
    SetRecording,
    StopSpeaking,
    Teardown,
    interpret,
)
from coachwire.session.usage import UsageTracker
from coachwire.transport.base import TransportSession
from coachwire.transport.events import parse_event

logger = logging.getLogger(__name__)

StatusListener = Callable[[ConnectionStatus], None]


class SessionController:
    """Connect, interpret, disconnect. One instance per client."""

    def __init__(
        self,
        acquirer: CredentialAcquirer,
        transport_factory: Callable[[], TransportSession],
        surface: RenderSurface,
        settings: CoachwireConfig | None = None,
        modality: Modality = Modality.VOICE,
        on_status_change: StatusListener | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._acquirer = acquirer
        self._transport_factory = transport_factory
        self._surface = surface
        self._settings = settings or CoachwireConfig()
        self._modality = modality
        self._on_status_change = on_status_change
        self._clock = clock
        self._now = now

        self._timers = TimerSet("session")
        self._tasks: set[asyncio.Task] = set()
        self._usage = UsageTracker(model=self._settings.transport.model, clock=clock)
        self._negotiator = SummaryNegotiator(
            surface=surface,
            disconnect=self.disconnect,
            send_summary_prompt=self.send_summary_prompt,
            get_output_modalities=self.desired_output_modalities,
            disconnect_grace_s=self._settings.closure.disconnect_grace_s,
        )

        self._transport: TransportSession | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._analyzer: ProgressAnalyzer | None = None
        self._conversation = ConversationState()
        self._connected = False
        self._connecting = False
        self._greeting_sent = False
        self._last_instructions: str | None = None
        self._last_output_modalities: list[str] | None = None

    # ─── Read-only view ──────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return ConnectionStatus(self._connected, self._connecting).state

    def is_connected(self) -> bool:
        return self._connected

    @property
    def transport(self) -> TransportSession | None:
        return self._transport

    @property
    def analyzer(self) -> ProgressAnalyzer | None:
        return self._analyzer

    @property
    def negotiator(self) -> SummaryNegotiator:
        return self._negotiator

    @property
    def usage(self) -> UsageTracker:
        return self._usage

    @property
    def conversation(self) -> ConversationState:
        return self._conversation

    @property
    def modality(self) -> Modality:
        return self._modality

    @property
    def greeting_sent(self) -> bool:
        return self._greeting_sent

    @property
    def last_sent_config(self) -> tuple[str | None, list[str] | None]:
        return self._last_instructions, self._last_output_modalities

    def desired_output_modalities(self) -> list[str]:
        return desired_output_modalities(self._modality)

    # ─── Lifecycle ───────────────────────────────────────────────

    async def connect(self, options: ConnectOptions | None = None) -> None:
        """Start a new session. Raises CredentialError / TransportError on failure."""
        options = options or ConnectOptions(
            instructions=self._settings.session.default_instructions,
            output_modalities=tuple(self.desired_output_modalities()),
            summary_auto_enabled=self._settings.analysis.auto_summary,
        )
        instructions = options.instructions or self._settings.session.default_instructions

        if self._transport is not None:
            await self.disconnect()

        self._negotiator.reset()
        self._usage.reset()
        self._surface.clear_log()
        self._update_status(connected=False, connecting=True)

        try:
            credential = await self._acquirer.acquire()

            self._conversation = ConversationState()
            self._greeting_sent = False
            self._last_instructions = instructions
            self._last_output_modalities = list(options.output_modalities)

            logger.info(
                "Starting session (purpose=%s, personality=%s, auto_summary=%s)",
                options.purpose_preset or "-",
                options.personality_preset or "-",
                options.summary_auto_enabled,
            )

            transport = self._transport_factory()
            self._transport = transport
            self._unsubscribe = transport.on_event(self.handle_transport_event)

            self._analyzer = ProgressAnalyzer(
                transport=transport,
                surface=self._surface,
                on_request_summary=lambda: self._negotiator.request_summary(
                    triggered_by_analyzer=True
                ),
                get_output_modalities=self.desired_output_modalities,
                dimensions=get_dimension_set(self._settings.analysis.dimension_set),
                settings=self._settings.analysis,
                auto_summary=options.summary_auto_enabled,
                clock=self._clock,
            )
            self._negotiator.set_analyzer(self._analyzer)

            await transport.connect(credential)
            transport.update_session_config(
                instructions=instructions,
                output_modalities=list(options.output_modalities),
            )

            self._timers.schedule(
                "connect-fallback",
                self._settings.session.connect_fallback_s,
                self._on_connect_fallback,
            )
        except Exception as e:
            logger.error("Connection failed: %s", e)
            transport = self._cleanup()
            self._update_status(connected=False)
            if transport is not None:
                await self._close_quietly(transport)
            raise

    async def disconnect(self) -> None:
        logger.info("Disconnecting session")
        transport = self._cleanup()
        self._surface.append_end_marker()
        if transport is not None:
            await self._close_quietly(transport)
        self._update_status(connected=False)

    async def shutdown(self) -> None:
        """Close the channel on process exit without touching the surface."""
        transport = self._cleanup()
        if transport is not None:
            await self._close_quietly(transport)

    def _on_connect_fallback(self) -> None:
        if self._transport is not None and not self._connected:
            logger.info("No session.created yet, treating the session as connected")
            self._handle_connected()

    def _handle_connected(self) -> None:
        if self._transport is None or self._connected:
            return
        self._timers.cancel("connect-fallback")
        self._update_status(connected=True)
        self._update_microphone()
        self._usage.start()
        self._send_greeting()
        logger.info("Session ready")

    def _cleanup(self) -> TransportSession | None:
        """Drop every per-session resource. Returns the transport to close."""
        self._timers.cancel_all()
        self._usage.stop()
        self._surface.set_speaking(False)
        self._surface.set_recording(False)
        self._negotiator.reset()
        self._negotiator.set_analyzer(None)
        if self._analyzer is not None:
            self._analyzer.dispose()
            self._analyzer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        transport, self._transport = self._transport, None
        self._conversation = ConversationState()
        self._greeting_sent = False
        self._last_instructions = None
        self._last_output_modalities = None
        return transport

    async def _close_quietly(self, transport: TransportSession) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.error("Error closing transport: %s", e)

    def _update_status(self, connected: bool, connecting: bool = False) -> None:
        self._connected = connected
        self._connecting = connecting
        status = ConnectionStatus(
            connected=connected,
            connecting=connecting,
            has_usage_data=self._usage.has_usage_data,
        )
        self._negotiator.set_connected(connected)
        self._surface.set_connection_status(status)
        self._surface.set_summary_available(self._usage.summary_available(connected))
        if self._on_status_change:
            self._on_status_change(status)

    # ─── Commands ────────────────────────────────────────────────

    def handle_modality_change(self, modality: Modality) -> None:
        """Mute or unmute the microphone. Transcript state is left alone."""
        self._modality = Modality(modality)
        self._last_output_modalities = None
        self._update_microphone()

    def record_local_user_message(self, text: str, render: bool = True) -> bool:
        """Remember a user message for echo dedup and (optionally) show it now."""
        trimmed = text.strip()
        if not trimmed:
            return False
        self._conversation = self._conversation.record_echo(trimmed)
        if render:
            self._surface.append_message(Role.USER, trimmed)
        return True

    def send_user_text(self, message: str) -> None:
        if self._transport is None or not self._connected:
            raise NotConnectedError("Session is not connected")
        self.record_local_user_message(message)
        self._transport.send_message("user", message)

    def send_summary_prompt(self, prompt: str, metadata: dict[str, Any] | None = None) -> None:
        """Send the summary prompt. It is deduplicated, never rendered."""
        if self._transport is None or not self._connected:
            raise NotConnectedError("Session is not connected")
        self.record_local_user_message(prompt, render=False)
        self._transport.send_message("user", prompt, response_metadata=metadata)

    def update_session_config(
        self,
        instructions: str | None = None,
        output_modalities: Sequence[str] | None = None,
    ) -> bool:
        """Push instructions / output modalities upstream if they changed. True if sent."""
        if self._transport is None:
            return False
        instructions = instructions if instructions is not None else self._last_instructions
        modalities = (
            list(output_modalities)
            if output_modalities is not None
            else self._last_output_modalities or self.desired_output_modalities()
        )
        if not instructions:
            return False

        if (
            instructions == self._last_instructions
            and self._last_output_modalities == modalities
        ):
            return False

        try:
            self._transport.update_session_config(
                instructions=instructions, output_modalities=modalities
            )
        except SendFailure as e:
            logger.warning("Failed to update session config: %s", e)
            return False

        self._last_instructions = instructions
        self._last_output_modalities = list(modalities)
        logger.info("Updated session config (modalities=%s)", ", ".join(modalities))
        return True

    def _update_microphone(self) -> None:
        if self._transport is None:
            return
        should_mute = self._modality is Modality.TEXT
        try:
            self._transport.mute(should_mute)
        except SendFailure as e:
            logger.warning("Failed to update microphone state: %s", e)
        if should_mute:
            self._surface.set_recording(False)

    def _send_greeting(self) -> None:
        if self._transport is None or self._greeting_sent:
            return
        greeting = greeting_for_now(self._settings.session.language, self._now())
        try:
            self.record_local_user_message(greeting, render=False)
            self._transport.send_message("user", greeting)
        except SendFailure as e:
            logger.error("Failed to send initial greeting: %s", e)
            return
        self._greeting_sent = True
        logger.info("Sent greeting: %s", greeting)

    # ─── Inbound events ──────────────────────────────────────────

    def handle_transport_event(self, raw: dict[str, Any]) -> None:
        """Subscriber for the transport's event stream."""
        event = parse_event(raw)
        logger.debug("Transport event: %s", event.type)

        self._conversation, effects = interpret(self._conversation, event)
        for effect in effects:
            self._apply(effect)

        if self._analyzer is not None:
            self._analyzer.handle_event(event)

    def _apply(self, effect: Effect) -> None:
        match effect:
            case Render(role=role, text=text, message_id=message_id, speaking=speaking):
                shown = self._surface.append_message(role, text, message_id)
                if shown and speaking:
                    self._surface.set_speaking(True)
            case MarkReady():
                self._handle_connected()
            case SetRecording(active=active):
                self._surface.set_recording(active)
            case StopSpeaking():
                self._surface.set_speaking(False)
            case ResponseStarted(response_id=response_id, purpose=purpose):
                self._negotiator.handle_response_created(response_id, purpose)
            case ResponseCompleted(response_id=response_id, purpose=purpose):
                self._negotiator.handle_response_completed(response_id, purpose)
            case PlaybackFinished(response_id=response_id):
                self._negotiator.handle_audio_playback_stopped(response_id)
            case RecordUsage(usage=usage):
                self._usage.record(usage)
                self._surface.set_summary_available(
                    self._usage.summary_available(self._connected)
                )
            case Teardown(reason=reason):
                self._handle_teardown(reason)

    def _handle_teardown(self, reason: str) -> None:
        logger.warning("Realtime channel ended: %s", reason)
        transport = self._cleanup()
        self._update_status(connected=False)
        self._surface.alert(f"Error: {reason}")
        if transport is not None:
            task = asyncio.ensure_future(self._close_quietly(transport))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
