"""
Coachwire Errors — one hierarchy for everything the orchestrator raises.

Propagation policy:
- Session-threatening failures (CredentialError, TransportError) reset the
  whole session and reach the user as an alert.
- Auxiliary failures (MalformedAnalysisPayload, SendFailure on a best-effort
  command) are logged where they happen and the feature retries on its next
  natural trigger.
"""

from __future__ import annotations

from typing import Any


class CoachwireError(Exception):
    """Base class for all coachwire errors."""


class CredentialError(CoachwireError):
    """A session credential could not be obtained. Fatal to connect, never retried."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class NotConnectedError(CoachwireError):
    """An action needs an active session and there is none."""


class TransportError(CoachwireError):
    """The upstream channel failed to open, or reported error/close."""


class MalformedAnalysisPayload(CoachwireError):
    """A background analysis response was not the JSON object we asked for."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class SendFailure(CoachwireError):
    """A command could not be handed to the transport."""
