"""
CoachApp — composition root.

Wires the pieces for one client instance:

    ModalitySwitch ──▶ SessionController ──▶ TransportSession
          │                 │   ├── ProgressAnalyzer
          ▼                 │   └── SummaryNegotiator
    TextInputChannel        ▼
                       RenderSurface

and maps the terminal's slash commands onto them.
"""

from __future__ import annotations

import logging
from typing import Callable

from coachwire.core.config import CoachwireConfig, config as default_config
from coachwire.core.errors import CoachwireError
from coachwire.credentials import CredentialAcquirer
from coachwire.modality import Modality, ModalitySwitch, TextInputChannel
from coachwire.preferences import PreferenceStore
from coachwire.render.base import RenderSurface
from coachwire.session.controller import SessionController
from coachwire.session.models import ConnectionStatus, ConnectOptions
from coachwire.transport.base import TransportSession
from coachwire.transport.websocket import RealtimeWebSocketTransport

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "/summary まとめを依頼  /accept まとめに同意  /decline 続ける  "
    "/auto on|off 自動まとめ  /voice /text モード切替  /connect /new 接続  /quit 終了"
)


class CoachApp:
    def __init__(
        self,
        surface: RenderSurface,
        settings: CoachwireConfig | None = None,
        acquirer: CredentialAcquirer | None = None,
        transport_factory: Callable[[], TransportSession] | None = None,
        preferences: PreferenceStore | None = None,
        modality: Modality = Modality.TEXT,
    ) -> None:
        self.settings = settings or default_config
        self.surface = surface
        self.preferences = preferences or PreferenceStore(self.settings.preferences.path)
        self.prefs = self.preferences.load()

        self.modality = ModalitySwitch(modality)
        self.controller = SessionController(
            acquirer=acquirer or CredentialAcquirer.from_config(self.settings.credential),
            transport_factory=transport_factory or self._default_transport,
            surface=surface,
            settings=self.settings,
            modality=modality,
            on_status_change=self._on_status_change,
        )
        self.text_input = TextInputChannel(
            send=self.controller.send_user_text,
            on_hint=surface.show_hint,
            on_alert=surface.alert,
        )
        self.modality.subscribe(self._on_modality_change)

    def _default_transport(self) -> TransportSession:
        return RealtimeWebSocketTransport.from_config(self.settings.transport)

    # ─── Wiring ──────────────────────────────────────────────────

    def _on_modality_change(self, modality: Modality) -> None:
        self.controller.handle_modality_change(modality)
        self.text_input.set_modality(modality)
        self.controller.update_session_config(
            output_modalities=self.controller.desired_output_modalities()
        )

    def _on_status_change(self, status: ConnectionStatus) -> None:
        self.text_input.set_connected(status.connected)

    # ─── Actions ─────────────────────────────────────────────────

    async def connect(self) -> bool:
        options = ConnectOptions(
            instructions=self.settings.session.default_instructions,
            output_modalities=tuple(self.controller.desired_output_modalities()),
            purpose_preset=self.prefs.purpose_preset,
            summary_auto_enabled=self.prefs.auto_summary,
        )
        try:
            await self.controller.connect(options)
        except CoachwireError as e:
            self.surface.alert(str(e))
            return False
        return True

    def set_auto_summary(self, enabled: bool) -> None:
        self.prefs = self.preferences.update(auto_summary=enabled)
        if self.controller.analyzer is not None:
            self.controller.analyzer.set_auto_summary_enabled(enabled)

    async def handle_input(self, line: str) -> bool:
        """Run one line of user input. Returns False when the user quits."""
        text = line.strip()
        if not text:
            return True
        if not text.startswith("/"):
            await self.text_input.submit(text)
            return True

        command, _, arg = text.partition(" ")
        arg = arg.strip().lower()

        if command in ("/quit", "/exit", "/q"):
            if self.controller.is_connected():
                await self.controller.disconnect()
            return False
        if command in ("/connect", "/new"):
            await self.connect()
        elif command == "/summary":
            self.controller.negotiator.request_summary(triggered_by_analyzer=False)
        elif command == "/accept":
            self.controller.negotiator.accept_suggestion()
        elif command == "/decline":
            self.controller.negotiator.decline_suggestion()
        elif command == "/auto" and arg in ("on", "off"):
            self.set_auto_summary(arg == "on")
            self.surface.show_hint(f"auto summary {arg}")
        elif command == "/voice":
            self.modality.set_modality(Modality.VOICE)
        elif command == "/text":
            self.modality.set_modality(Modality.TEXT)
        else:
            self.surface.show_hint(HELP_TEXT)
        return True

    async def close(self) -> None:
        await self.controller.shutdown()
