"""
Summary Negotiator — "ask for summary → wait for it → wait for audio → disconnect".

Whoever starts the wrap-up (the user's button, or the analyzer after the
client agreed), it runs through here as one linear protocol:

  1. request_summary(): post a local notice and send the visible summary
     prompt, tagged with purpose "session-summary"
  2. handle_response_created(): capture the summary response id (fallback for
     upstreams that drop metadata)
  3. handle_response_completed(): in audio modality wait for playback to stop,
     unless the summary audio already ended; otherwise schedule the disconnect
     after a short grace delay
  4. handle_audio_playback_stopped(): schedule the disconnect

Audio endings seen before the summary completes are ignored, except the
summary response's own, which is remembered for step 3.

The negotiator never touches the transcript and issues no side requests.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from coachwire.analysis.prompts import SUMMARY_NOTICE, SUMMARY_PROMPT
from coachwire.core.errors import CoachwireError
from coachwire.core.timers import TimerSet
from coachwire.session.models import Role

if TYPE_CHECKING:
    from coachwire.analysis.analyzer import ProgressAnalyzer
    from coachwire.render.base import RenderSurface

logger = logging.getLogger(__name__)

SUMMARY_PURPOSE = "session-summary"
SUMMARY_FAILED_ALERT = "Failed to request summary. Please try again."


class SummaryNegotiator:
    def __init__(
        self,
        surface: "RenderSurface",
        disconnect: Callable[[], Awaitable[None]],
        send_summary_prompt: Callable[[str, dict], None],
        get_output_modalities: Callable[[], list[str]],
        disconnect_grace_s: float = 1.5,
    ) -> None:
        self._surface = surface
        self._disconnect = disconnect
        self._send_summary_prompt = send_summary_prompt
        self._get_output_modalities = get_output_modalities
        self._grace = disconnect_grace_s
        self._timers = TimerSet("summary")
        self._analyzer: "ProgressAnalyzer" | None = None
        self._connected = False

        self.awaiting_completion = False
        self.summary_response_id: str | None = None
        self.waiting_for_playback_stop = False
        self.summary_expects_audio = False
        self._summary_audio_done = False

    # ─── Wiring ──────────────────────────────────────────────────

    def set_analyzer(self, analyzer: "ProgressAnalyzer" | None) -> None:
        self._analyzer = analyzer

    def set_connected(self, connected: bool) -> None:
        self._connected = connected

    def is_waiting_for_playback_stop(self) -> bool:
        return self.waiting_for_playback_stop

    @property
    def disconnect_scheduled(self) -> bool:
        return self._timers.is_scheduled("auto-disconnect")

    def reset(self) -> None:
        self.awaiting_completion = False
        self.summary_response_id = None
        self.waiting_for_playback_stop = False
        self.summary_expects_audio = False
        self._summary_audio_done = False
        self._timers.cancel_all()

    def mark_summary_initiated(self) -> None:
        if self._analyzer:
            self._analyzer.mark_summary_initiated()

    # ─── Protocol ────────────────────────────────────────────────

    def request_summary(self, triggered_by_analyzer: bool = False) -> bool:
        """Send the summary prompt. Returns False if nothing was sent."""
        if not self._connected:
            logger.debug("Summary requested while disconnected, ignoring")
            return False

        try:
            self.mark_summary_initiated()
            self.reset()
            self.awaiting_completion = True

            self._surface.append_message(Role.SYSTEM, SUMMARY_NOTICE)
            self.summary_expects_audio = "audio" in self._get_output_modalities()

            self._send_summary_prompt(SUMMARY_PROMPT, {"purpose": SUMMARY_PURPOSE})
            self._surface.hide_closure_suggestion()
        except CoachwireError as e:
            logger.error("Failed to send summary request: %s", e)
            self.reset()
            if self._analyzer:
                self._analyzer.mark_summary_failed()
            if not triggered_by_analyzer:
                self._surface.alert(SUMMARY_FAILED_ALERT)
            return False

        logger.info(
            "Summary request sent to coach",
            extra={"purpose": SUMMARY_PURPOSE},
        )
        return True

    def handle_response_created(self, response_id: str | None, purpose: str | None) -> None:
        if not self.awaiting_completion:
            return
        if purpose == SUMMARY_PURPOSE:
            self.summary_response_id = response_id
            logger.info("Summary response started (via metadata)", extra={"response_id": response_id})
        elif purpose is None and not self.summary_response_id and response_id:
            self.summary_response_id = response_id
            logger.info("Summary response started (via id)", extra={"response_id": response_id})

    def handle_response_completed(
        self,
        response_id: str | None,
        purpose: str | None,
        requires_audio_playback_stop: bool | None = None,
    ) -> None:
        if not self.awaiting_completion:
            return
        if requires_audio_playback_stop is None:
            requires_audio_playback_stop = self.summary_expects_audio
        matches_purpose = purpose == SUMMARY_PURPOSE
        matches_id = bool(
            self.summary_response_id
            and response_id
            and self.summary_response_id == response_id
        )
        if not (matches_purpose or matches_id):
            return

        self.awaiting_completion = False
        self.summary_response_id = None
        if requires_audio_playback_stop and not self._summary_audio_done:
            self.waiting_for_playback_stop = True
            logger.info("Summary finished, waiting for audio playback to stop")
        else:
            logger.info("Summary finished, scheduling auto disconnect")
            self._schedule_disconnect()

    def handle_audio_playback_stopped(self, response_id: str | None = None) -> None:
        if self.awaiting_completion:
            # Only the summary's own audio counts before it completes
            if response_id and response_id == self.summary_response_id:
                self._summary_audio_done = True
                logger.debug("Summary audio ended before completion", extra={"response_id": response_id})
            return
        if not self.waiting_for_playback_stop:
            return
        self.waiting_for_playback_stop = False
        logger.info("Summary audio finished, scheduling auto disconnect")
        self._schedule_disconnect()

    # ─── User actions on the suggestion banner ───────────────────

    def accept_suggestion(self) -> None:
        if self._analyzer:
            self._analyzer.accept_closure_suggestion()
        else:
            self.request_summary(triggered_by_analyzer=False)

    def decline_suggestion(self) -> None:
        if self._analyzer:
            self._analyzer.decline_closure_suggestion()
        else:
            self._surface.hide_closure_suggestion()

    def _schedule_disconnect(self) -> None:
        if self._timers.is_scheduled("auto-disconnect"):
            return
        self._timers.schedule("auto-disconnect", self._grace, self._disconnect)
