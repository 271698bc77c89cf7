"""
In-flight Requests — the analyzer's side-channel request table.

At most one outstanding request per RequestKind: the table is keyed by kind,
so "never two progress evaluations at once" is a property of the map, not
of scattered flags. Each entry knows how to recognise its own completion
(purpose tag, or the response id bound at response.created). A completion
that matches nothing pending is ignored.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class RequestKind(str, Enum):
    """Side-channel request kinds. Values are the purpose tags sent upstream."""

    PROGRESS = "progress-score"
    CONSENT_QUESTION = "summary-consent"
    CONSENT_EVAL = "summary-consent-eval"
    CONTINUATION = "summary-dismissed"


# Tags accepted as a progress completion (older deployments used the second)
_PROGRESS_TAGS = frozenset({RequestKind.PROGRESS.value, "closure-readiness"})


@dataclass
class PendingRequest:
    kind: RequestKind
    request_id: str
    issued_at: float
    response_id: str | None = None

    def matches(self, purpose: str | None, response_id: str | None) -> bool:
        if self.response_id and response_id and self.response_id == response_id:
            return True
        if not purpose:
            return False
        if self.kind is RequestKind.PROGRESS:
            return purpose in _PROGRESS_TAGS
        return purpose == self.kind.value


class InFlightRequests:
    """Outstanding side-channel requests, one slot per kind."""

    def __init__(self) -> None:
        self._pending: dict[RequestKind, PendingRequest] = {}
        self._ids = itertools.count(1)

    def is_pending(self, kind: RequestKind) -> bool:
        return kind in self._pending

    def get(self, kind: RequestKind) -> PendingRequest | None:
        return self._pending.get(kind)

    def begin(self, kind: RequestKind, now: float) -> PendingRequest | None:
        """Open a slot. Returns None if one of this kind is already outstanding."""
        if kind in self._pending:
            return None
        request = PendingRequest(
            kind=kind,
            request_id=f"{kind.value}_{next(self._ids)}",
            issued_at=now,
        )
        self._pending[kind] = request
        return request

    def bind_response(self, purpose: str | None, response_id: str | None) -> None:
        """Remember the response id for the pending request this purpose belongs to."""
        if not response_id:
            return
        for request in self._pending.values():
            if request.response_id is None and request.matches(purpose, None):
                request.response_id = response_id
                return

    def complete(
        self, purpose: str | None, response_id: str | None
    ) -> PendingRequest | None:
        """Pop and return the request this completion belongs to, if any."""
        for kind, request in list(self._pending.items()):
            if request.matches(purpose, response_id):
                del self._pending[kind]
                return request
        return None

    def cancel(self, kind: RequestKind) -> bool:
        return self._pending.pop(kind, None) is not None

    def clear(self) -> None:
        if self._pending:
            logger.debug("Dropping %d in-flight request(s)", len(self._pending))
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)
