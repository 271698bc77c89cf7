"""
Consent Flow — the "shall we wrap up?" negotiation state machine.

    idle ──ready──▶ awaiting-consent ──client speaks──▶ consent-check-pending
      ▲                 │    ▲                                │
      │              decline └──────── uncertain ─────────────┘
      │                 │                                     │ accept
      └─────────────────┘                                     ▼
                                                     summary-in-progress

A decline opens a suppression window during which no new prompt may fire.
The flow only tracks state; the analyzer does the talking.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class ClosureState(str, Enum):
    IDLE = "idle"
    AWAITING_CONSENT = "awaiting-consent"
    CONSENT_CHECK_PENDING = "consent-check-pending"
    SUMMARY_IN_PROGRESS = "summary-in-progress"


class ConsentFlow:
    def __init__(
        self,
        suppression_window_s: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = suppression_window_s
        self._clock = clock
        self.state = ClosureState.IDLE
        self.suppressed_until: float | None = None

    # ─── Queries ─────────────────────────────────────────────────

    @property
    def negotiating(self) -> bool:
        """Any state other than idle blocks new progress evaluations."""
        return self.state is not ClosureState.IDLE

    @property
    def awaiting(self) -> bool:
        return self.state in (
            ClosureState.AWAITING_CONSENT,
            ClosureState.CONSENT_CHECK_PENDING,
        )

    def is_suppressed(self) -> bool:
        return self.suppressed_until is not None and self._clock() < self.suppressed_until

    def may_prompt(self) -> bool:
        return self.state is not ClosureState.SUMMARY_IN_PROGRESS and not self.is_suppressed()

    # ─── Transitions ─────────────────────────────────────────────

    def begin_awaiting(self) -> bool:
        """idle → awaiting-consent. False if already negotiating."""
        if self.state is not ClosureState.IDLE:
            return False
        self._move(ClosureState.AWAITING_CONSENT)
        return True

    def begin_check(self) -> bool:
        """awaiting-consent → consent-check-pending. False from any other state."""
        if self.state is not ClosureState.AWAITING_CONSENT:
            return False
        self._move(ClosureState.CONSENT_CHECK_PENDING)
        return True

    def check_finished(self) -> None:
        """A classification came back without a decision."""
        if self.state is ClosureState.CONSENT_CHECK_PENDING:
            self._move(ClosureState.AWAITING_CONSENT)

    def decline(self) -> None:
        self.suppressed_until = self._clock() + self._window
        self._move(ClosureState.IDLE)

    def abandon(self) -> None:
        """Drop a consent negotiation, leaving a summary in progress alone."""
        if self.awaiting:
            self._move(ClosureState.IDLE)

    def start_summary(self) -> None:
        self._move(ClosureState.SUMMARY_IN_PROGRESS)

    def summary_failed(self) -> None:
        if self.state is ClosureState.SUMMARY_IN_PROGRESS:
            self._move(ClosureState.IDLE)

    def reset(self) -> None:
        self.state = ClosureState.IDLE
        self.suppressed_until = None

    def _move(self, state: ClosureState) -> None:
        if state is not self.state:
            logger.debug("Closure state %s → %s", self.state.value, state.value)
        self.state = state
