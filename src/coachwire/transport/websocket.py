"""
Realtime WebSocket Transport — the upstream channel over the websockets client.

This transport is a pure connection handler. It:
  1. Opens one authenticated WebSocket to the realtime endpoint
  2. Parses every inbound frame as JSON and hands it to subscribers, in order
  3. Serializes outbound client events through a single writer task

Commands never wait on the network: send_event() puts the event on the
outbound queue and returns. If the channel drops while we did not ask for
it, subscribers receive a synthetic {"type": "close"} event.

Microphone audio is not captured here. An external audio source feeds
append_audio(), which is where mute() takes effect: chunks arriving while
muted never reach the wire.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any

import websockets

from coachwire.core.config import TransportConfig
from coachwire.core.errors import SendFailure, TransportError
from coachwire.credentials import Credential
from coachwire.transport.base import TransportSession

logger = logging.getLogger(__name__)

_STOP = object()


class RealtimeWebSocketTransport(TransportSession):
    """WebSocket transport to the realtime agent."""

    name = "realtime-websocket"

    def __init__(
        self,
        url: str,
        model: str,
        ping_interval: float = 20.0,
        open_timeout: float = 10.0,
    ) -> None:
        super().__init__()
        self._url = url
        self._model = model
        self._ping_interval = ping_interval
        self._open_timeout = open_timeout

        self._ws: Any = None
        self._outbound: asyncio.Queue[Any] = asyncio.Queue()
        self._reader_task: asyncio.Task | None = None
        self._writer_task: asyncio.Task | None = None
        self._closing = False
        self._muted = False

    @classmethod
    def from_config(cls, cfg: TransportConfig) -> RealtimeWebSocketTransport:
        return cls(
            url=cfg.url,
            model=cfg.model,
            ping_interval=cfg.ping_interval,
            open_timeout=cfg.open_timeout,
        )

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    @property
    def muted(self) -> bool:
        return self._muted

    # ─── TransportSession ────────────────────────────────────────

    async def connect(self, credential: Credential) -> None:
        uri = f"{self._url}?model={self._model}"
        try:
            self._ws = await websockets.connect(
                uri,
                additional_headers={"Authorization": f"Bearer {credential.token}"},
                ping_interval=self._ping_interval,
                open_timeout=self._open_timeout,
            )
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            logger.error("Realtime connect failed: %s", e)
            raise TransportError(f"Could not open realtime channel: {e}") from e

        self._closing = False
        self._reader_task = asyncio.create_task(self._read_loop())
        self._writer_task = asyncio.create_task(self._write_loop())
        logger.info("Realtime channel open (model=%s)", self._model)

    def send_event(self, event: dict[str, Any]) -> None:
        if not self.is_open:
            raise SendFailure(f"Cannot send {event.get('type')}: channel not open")
        self._outbound.put_nowait(event)

    def mute(self, muted: bool) -> None:
        self._muted = muted
        logger.debug("Microphone %s", "muted" if muted else "unmuted")

    def append_audio(self, pcm: bytes) -> None:
        """Microphone entry point for an external audio source; drops chunks while muted."""
        if self._muted:
            return
        self.send_event(
            {
                "type": "input_audio_buffer.append",
                "audio": base64.b64encode(pcm).decode("ascii"),
            }
        )

    async def close(self) -> None:
        if self._ws is None:
            return
        self._closing = True
        self._outbound.put_nowait(_STOP)

        if self._writer_task:
            try:
                await asyncio.wait_for(self._writer_task, timeout=2.0)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                self._writer_task.cancel()

        try:
            await self._ws.close()
        finally:
            if self._reader_task:
                self._reader_task.cancel()
            self._ws = None
            self._reader_task = None
            self._writer_task = None
            logger.info("Realtime channel closed")

    # ─── Loops ───────────────────────────────────────────────────

    async def _read_loop(self) -> None:
        try:
            async for frame in self._ws:
                try:
                    event = json.loads(frame)
                except (TypeError, ValueError):
                    logger.warning("Dropping non-JSON frame from realtime channel")
                    continue
                if isinstance(event, dict):
                    self._emit(event)
        except websockets.ConnectionClosed as e:
            if not self._closing:
                logger.warning("Realtime channel dropped: %s", e)
                self._emit({"type": "close", "reason": str(e)})
            return
        except asyncio.CancelledError:
            return

        if not self._closing:
            self._emit({"type": "close", "reason": "connection ended"})

    async def _write_loop(self) -> None:
        while True:
            event = await self._outbound.get()
            if event is _STOP:
                return
            try:
                await self._ws.send(json.dumps(event, ensure_ascii=False))
            except websockets.ConnectionClosed as e:
                logger.warning("Failed to send %s: %s", event.get("type"), e)
                return
