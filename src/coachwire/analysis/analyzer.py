"""
Progress Analyzer — derives a progress signal from the live event stream.

Reads the same transport events as the Session Controller and never renders
conversation messages. It:
  1. Keeps a bounded rolling transcript (deduplicated by event id)
  2. Periodically asks the agent, on a hidden side channel, to score the
     conversation along the active dimension set
  3. Shows the scores, and when the session looks finished (and the user
     allows auto-summary) runs the consent flow that leads to a summary

Every side-channel request is fire-and-forget. Its answer comes back later
as a response.done, matched through the in-flight request table. Nothing
here blocks event processing; failures only cost one evaluation cycle.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import TYPE_CHECKING, Any, Callable

from coachwire.analysis import prompts
from coachwire.analysis.dimensions import DimensionSet, GROW_PHASES
from coachwire.analysis.payload import (
    Assessment,
    ConsentDecision,
    extract_response_text,
    parse_assessment,
    parse_consent_decision,
)
from coachwire.analysis.requests import InFlightRequests, RequestKind
from coachwire.closure.consent import ClosureState, ConsentFlow
from coachwire.core.config import AnalysisConfig
from coachwire.core.errors import MalformedAnalysisPayload, SendFailure
from coachwire.modality import side_request_modalities
from coachwire.render.base import ProgressSnapshot
from coachwire.session.models import Role, TranscriptEntry
from coachwire.session.state import SUPPRESSED_PURPOSES
from coachwire.transport.events import (
    AudioTranscriptDone,
    InputTranscriptionCompleted,
    ItemCreated,
    ResponseCreated,
    ResponseDone,
    SessionReady,
    SessionUpdated,
    TextDone,
    TransportEvent,
)

if TYPE_CHECKING:
    from coachwire.render.base import RenderSurface
    from coachwire.transport.base import TransportSession

logger = logging.getLogger(__name__)


class ProgressAnalyzer:
    """One analyzer per session. dispose() when the session ends."""

    def __init__(
        self,
        transport: "TransportSession",
        surface: "RenderSurface",
        on_request_summary: Callable[[], bool],
        get_output_modalities: Callable[[], list[str]],
        dimensions: DimensionSet = GROW_PHASES,
        settings: AnalysisConfig | None = None,
        auto_summary: bool | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport: "TransportSession" | None = transport
        self._surface = surface
        self._on_request_summary = on_request_summary
        self._get_output_modalities = get_output_modalities
        self._dimensions = dimensions
        self._settings = settings or AnalysisConfig()
        self._clock = clock

        self.auto_summary_enabled = (
            self._settings.auto_summary if auto_summary is None else auto_summary
        )

        self._transcript: deque[TranscriptEntry] = deque(
            maxlen=self._settings.max_transcripts
        )
        self._processed_ids: set[str] = set()
        self._internal_responses: set[str] = set()
        self._requests = InFlightRequests()
        self._consent = ConsentFlow(self._settings.suppression_window_s, clock)
        self._last_requested_at: float | None = None
        self._scores = dimensions.zero_scores()
        self._label = self._default_label()
        self._notes = ""
        self._disposed = False

        self._surface.set_progress_visible(False)
        self._publish()
        self._surface.hide_closure_suggestion()

    # ─── Read-only view ──────────────────────────────────────────

    @property
    def scores(self) -> dict[str, float]:
        return dict(self._scores)

    @property
    def current_label(self) -> str:
        return self._label

    @property
    def notes(self) -> str:
        return self._notes

    @property
    def transcript(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._transcript)

    @property
    def closure_state(self) -> ClosureState:
        return self._consent.state

    @property
    def requests(self) -> InFlightRequests:
        return self._requests

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ─── Event intake ────────────────────────────────────────────

    def handle_event(self, event: TransportEvent) -> None:
        if self._disposed:
            return

        if isinstance(event, SessionReady):
            self._on_session_ready()
        elif isinstance(event, SessionUpdated):
            self._surface.set_progress_visible(True)
        elif isinstance(event, ResponseCreated):
            self._on_response_created(event)
        elif isinstance(event, InputTranscriptionCompleted):
            self._record(Role.USER, event.transcript, event)
        elif isinstance(event, ItemCreated):
            role = Role.USER if event.role == Role.USER.value else Role.ASSISTANT
            self._record(role, event.text, event)
        elif isinstance(event, (TextDone, AudioTranscriptDone)):
            if event.response_id and event.response_id in self._internal_responses:
                return
            text = event.text if isinstance(event, TextDone) else event.transcript
            self._record(Role.ASSISTANT, text, event)
        elif isinstance(event, ResponseDone):
            self._on_response_done(event)

    def _on_session_ready(self) -> None:
        self._reset_state()
        self._surface.set_progress_visible(True)
        self._notes = prompts.ANALYZING_NOTE
        self._publish()

    def _on_response_created(self, event: ResponseCreated) -> None:
        self._requests.bind_response(event.purpose, event.response_id)
        if event.response_id and event.purpose in SUPPRESSED_PURPOSES:
            self._internal_responses.add(event.response_id)

    def _record(self, role: Role, raw_text: Any, event: TransportEvent) -> None:
        if not isinstance(raw_text, str):
            return
        text = raw_text.strip()
        if not text:
            return

        event_id = event.dedup_id
        if event_id:
            if event_id in self._processed_ids:
                return
            self._processed_ids.add(event_id)

        self._transcript.append(TranscriptEntry(role=role, text=text))

        if role is Role.USER:
            self._maybe_evaluate_consent(text)

        self.schedule_progress_evaluation()

    # ─── Progress evaluation ─────────────────────────────────────

    def schedule_progress_evaluation(self) -> bool:
        """Issue a progress request if every gate allows it. True if one was sent."""
        if self._disposed or self._transport is None:
            return False
        if self._consent.negotiating:
            return False
        if self._requests.is_pending(RequestKind.PROGRESS):
            return False
        now = self._clock()
        if (
            self._last_requested_at is not None
            and now - self._last_requested_at < self._settings.cooldown_s
        ):
            return False
        if len(self._transcript) < self._settings.min_transcripts:
            return False

        request = self._requests.begin(RequestKind.PROGRESS, now)
        if request is None:
            return False
        self._last_requested_at = now

        prompt = prompts.progress_prompt(
            self._snippet(self._settings.snippet_limit), self._dimensions
        )
        try:
            self._transport.send_event(
                {
                    "event_id": request.request_id,
                    "type": "response.create",
                    "response": {
                        "conversation": "none",
                        "metadata": {"purpose": RequestKind.PROGRESS.value},
                        "output_modalities": ["text"],
                        "input": [_user_message(prompt)],
                    },
                }
            )
        except SendFailure as e:
            logger.error("Failed to request progress score: %s", e)
            self._requests.cancel(RequestKind.PROGRESS)
            return False

        logger.debug(
            "Progress evaluation requested",
            extra={"request_id": request.request_id, "purpose": RequestKind.PROGRESS.value},
        )
        return True

    def _on_response_done(self, event: ResponseDone) -> None:
        request = self._requests.complete(event.purpose, event.response_id)
        if request is None:
            return

        if request.kind is RequestKind.CONSENT_EVAL:
            self._consent.check_finished()

        text = extract_response_text(event.response)
        if not text:
            return

        try:
            if request.kind is RequestKind.PROGRESS:
                self._apply_assessment(
                    parse_assessment(
                        text,
                        self._dimensions,
                        self._settings.ready_threshold,
                        self._settings.average_threshold,
                    )
                )
            elif request.kind is RequestKind.CONSENT_EVAL:
                self._apply_consent_decision(parse_consent_decision(text))
        except MalformedAnalysisPayload as e:
            logger.warning(
                "Discarding %s payload: %s",
                request.kind.value,
                e,
                extra={"purpose": request.kind.value},
            )

    def _apply_assessment(self, assessment: Assessment) -> None:
        self._scores = assessment.scores
        self._label = assessment.label
        self._notes = assessment.reason
        self._publish()

        logger.info(
            "Progress: %s (ready=%s)",
            ", ".join(f"{k}={v:.2f}" for k, v in self._scores.items()),
            assessment.ready,
        )

        if assessment.ready and self.auto_summary_enabled:
            self._maybe_prompt_consent(assessment.reason)

    # ─── Consent flow ────────────────────────────────────────────

    def _maybe_prompt_consent(self, reason: str) -> None:
        if self._disposed or self._transport is None:
            return
        if not self._consent.may_prompt():
            return

        self._surface.show_closure_suggestion(prompts.closure_suggestion(reason))

        if not self._consent.begin_awaiting():
            return

        try:
            self._transport.send_event(
                {
                    "type": "response.create",
                    "response": {
                        "conversation": "none",
                        "metadata": {"purpose": RequestKind.CONSENT_QUESTION.value},
                        "output_modalities": side_request_modalities(
                            self._get_output_modalities()
                        ),
                        "instructions": prompts.consent_question(reason),
                    },
                }
            )
        except SendFailure as e:
            logger.error("Failed to prompt summary consent: %s", e)
            self._consent.abandon()
            return

        logger.info("Asked the client whether to wrap up")

    def _maybe_evaluate_consent(self, latest_client_text: str) -> None:
        if self._transport is None:
            return
        if self._consent.state is not ClosureState.AWAITING_CONSENT:
            return

        request = self._requests.begin(RequestKind.CONSENT_EVAL, self._clock())
        if request is None:
            return
        self._consent.begin_check()

        prompt = prompts.consent_classification_prompt(
            self._snippet(self._settings.consent_snippet_limit), latest_client_text
        )
        try:
            self._transport.send_event(
                {
                    "event_id": request.request_id,
                    "type": "response.create",
                    "response": {
                        "conversation": "none",
                        "metadata": {"purpose": RequestKind.CONSENT_EVAL.value},
                        "output_modalities": ["text"],
                        "input": [_user_message(prompt)],
                    },
                }
            )
        except SendFailure as e:
            logger.error("Failed to evaluate summary consent: %s", e)
            self._requests.cancel(RequestKind.CONSENT_EVAL)
            self._consent.check_finished()

    def _apply_consent_decision(self, decision: ConsentDecision) -> None:
        if self._consent.state is ClosureState.SUMMARY_IN_PROGRESS:
            return
        logger.info("Consent decision: %s", decision.value)
        if decision is ConsentDecision.ACCEPT:
            self._request_summary()
        elif decision is ConsentDecision.DECLINE:
            self._decline()

    def _request_summary(self) -> None:
        if self._disposed:
            return
        self._requests.cancel(RequestKind.CONSENT_EVAL)
        self._consent.start_summary()
        self._surface.hide_closure_suggestion()
        try:
            sent = self._on_request_summary()
        except Exception as e:
            logger.error("Failed to request session summary: %s", e, exc_info=True)
            sent = False
        if not sent:
            self._consent.summary_failed()

    def _decline(self) -> None:
        self._requests.cancel(RequestKind.CONSENT_EVAL)
        self._consent.decline()
        self._surface.hide_closure_suggestion()
        if self._transport is None:
            return
        try:
            self._transport.send_event(
                {
                    "type": "response.create",
                    "response": {
                        "conversation": "none",
                        "metadata": {"purpose": RequestKind.CONTINUATION.value},
                        "output_modalities": side_request_modalities(
                            self._get_output_modalities()
                        ),
                        "instructions": prompts.CONTINUATION_INSTRUCTIONS,
                    },
                }
            )
        except SendFailure as e:
            logger.error("Failed to send continuation prompt: %s", e)

    # ─── User actions ────────────────────────────────────────────

    def set_auto_summary_enabled(self, enabled: bool) -> None:
        self.auto_summary_enabled = enabled
        if not enabled:
            self._surface.hide_closure_suggestion()
            self._requests.cancel(RequestKind.CONSENT_EVAL)
            self._consent.abandon()

    def accept_closure_suggestion(self) -> None:
        if self._disposed:
            return
        self._request_summary()

    def decline_closure_suggestion(self) -> None:
        if self._disposed:
            return
        self._decline()

    def mark_summary_initiated(self) -> None:
        if self._disposed:
            return
        self._surface.hide_closure_suggestion()
        self._requests.cancel(RequestKind.CONSENT_EVAL)
        self._consent.start_summary()

    def mark_summary_failed(self) -> None:
        self._consent.summary_failed()

    def dispose(self) -> None:
        """Stop using the transport. The progress display keeps its last values."""
        self._disposed = True
        self._transport = None
        self._transcript.clear()
        self._processed_ids.clear()
        self._internal_responses.clear()
        self._requests.clear()
        self._consent.reset()

    # ─── Internals ───────────────────────────────────────────────

    def _reset_state(self) -> None:
        self._transcript.clear()
        self._processed_ids.clear()
        self._internal_responses.clear()
        self._requests.clear()
        self._last_requested_at = None
        self._consent.reset()
        self._scores = self._dimensions.zero_scores()
        self._label = self._default_label()

    def _default_label(self) -> str:
        return self._dimensions.label_for(self._dimensions.keys[0])

    def _snippet(self, limit: int) -> str:
        recent = list(self._transcript)[-limit:]
        return "\n".join(
            f"{'Client' if e.role is Role.USER else 'Coach'}: {e.text}" for e in recent
        )

    def _publish(self) -> None:
        self._surface.show_progress(
            ProgressSnapshot(
                scores=dict(self._scores),
                labels={k: self._dimensions.label_for(k) for k in self._dimensions.keys},
                current_label=self._label,
                notes=self._notes,
                label_prefix=self._dimensions.label_prefix,
            )
        )


def _user_message(text: str) -> dict[str, Any]:
    return {
        "type": "message",
        "role": "user",
        "content": [{"type": "input_text", "text": text}],
    }
