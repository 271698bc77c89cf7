"""
Modality Switch and Text Input Channel — thin state holders.

Voice and text are mutually exclusive. The switch only decides what the
user is using; the Session Controller reads it to mute the microphone and
to pick the upstream output modalities. Selecting the active modality
again is a no-op and notifies nobody.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, Sequence

from coachwire.core.errors import CoachwireError

logger = logging.getLogger(__name__)

ModalityListener = Callable[["Modality"], None]

CONNECT_FIRST_HINT = "接続してからメッセージを送信してください。"
SEND_FAILED_ALERT = "メッセージの送信に失敗しました。もう一度お試しください。"


class Modality(str, Enum):
    VOICE = "voice"
    TEXT = "text"


# Toggle order for keyboard navigation
MODALITY_ORDER: tuple[Modality, ...] = (Modality.VOICE, Modality.TEXT)


def desired_output_modalities(modality: Modality) -> list[str]:
    """Upstream output format for the active modality."""
    return ["text"] if modality is Modality.TEXT else ["audio"]


def side_request_modalities(desired: Iterable[str]) -> list[str]:
    """Output modalities for user-facing side requests.

    Restricted to audio/text and de-duplicated; empty means text; when audio
    is present text is added so there is always a transcript.
    """
    sanitized: list[str] = []
    for value in desired:
        if value in ("audio", "text") and value not in sanitized:
            sanitized.append(value)
    if not sanitized:
        return ["text"]
    if "audio" in sanitized and "text" not in sanitized:
        sanitized.append("text")
    return sanitized


class ModalitySwitch:
    """The active modality plus its subscribers."""

    def __init__(self, initial: Modality = Modality.VOICE) -> None:
        self._modality = initial
        self._listeners: list[ModalityListener] = []

    @property
    def modality(self) -> Modality:
        return self._modality

    def set_modality(self, modality: Modality | str) -> bool:
        """Switch modality. Returns False (and notifies nobody) if already active."""
        modality = Modality(modality)
        if modality is self._modality:
            return False
        self._modality = modality
        logger.info("Modality → %s", modality.value)
        self._notify()
        return True

    def subscribe(self, listener: ModalityListener, replay: bool = True) -> Callable[[], None]:
        """Register a listener. By default it is called once with the current value."""
        self._listeners.append(listener)
        if replay:
            listener(self._modality)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def handle_key(self, key: str, order: Sequence[Modality] = MODALITY_ORDER) -> bool:
        """ArrowLeft / ArrowRight move between toggles, wrapping around."""
        if key not in ("ArrowLeft", "ArrowRight"):
            return False
        offset = 1 if key == "ArrowRight" else -1
        index = order.index(self._modality) if self._modality in order else 0
        return self.set_modality(order[(index + offset) % len(order)])

    def desired_output_modalities(self) -> list[str]:
        return desired_output_modalities(self._modality)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._modality)
            except Exception as e:
                logger.error("Modality listener failed: %s", e, exc_info=True)


class TextInputChannel:
    """Free-text input: enabled only while connected in text modality."""

    def __init__(
        self,
        send: Callable[[str], Awaitable[None] | None],
        on_hint: Callable[[str], None] | None = None,
        on_alert: Callable[[str], None] | None = None,
    ) -> None:
        self._send = send
        self._on_hint = on_hint
        self._on_alert = on_alert
        self._connected = False
        self._modality = Modality.VOICE
        self.draft = ""

    @property
    def enabled(self) -> bool:
        return self._connected and self._modality is Modality.TEXT

    def set_connected(self, connected: bool) -> None:
        self._connected = connected

    def set_modality(self, modality: Modality) -> None:
        self._modality = modality

    async def submit(self, text: str) -> bool:
        """Send one message. Returns True if it went out."""
        message = text.strip()
        if not message:
            return False
        if not self.enabled:
            self.draft = text
            if self._on_hint:
                self._on_hint(CONNECT_FIRST_HINT)
            return False

        try:
            result = self._send(message)
            if result is not None:
                await result
        except CoachwireError as e:
            logger.error("Failed to send text message: %s", e)
            self.draft = text
            if self._on_alert:
                self._on_alert(SEND_FAILED_ALERT)
            return False

        self.draft = ""
        return True
