"""CredentialAcquirer — trade the server-held secret for a short-lived session token.

Pure request/response against the deployment's token endpoint:

    POST {endpoint}            → 200 { token, expiresAt }
                               → 4xx/5xx { error, details? }
    GET  {health_endpoint}     → 200 { status, hasApiKey }

Failures surface as CredentialError carrying the HTTP status and the
endpoint's error text verbatim. Nothing here retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from coachwire.core.config import CredentialConfig
from coachwire.core.errors import CredentialError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """An ephemeral session credential."""

    token: str
    expires_at: int | None = None


@dataclass(frozen=True)
class HealthStatus:
    status: str
    has_api_key: bool


def _safe_json(resp: Any) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class CredentialAcquirer:
    """Async client for the credential endpoint."""

    def __init__(
        self,
        endpoint: str,
        health_endpoint: str = "",
        api_key: str = "",
        timeout: float = 10.0,
    ) -> None:
        self._endpoint = endpoint
        self._health_endpoint = health_endpoint
        self._api_key = api_key
        self._timeout = timeout

    @classmethod
    def from_config(cls, cfg: CredentialConfig) -> CredentialAcquirer:
        return cls(
            endpoint=cfg.endpoint,
            health_endpoint=cfg.health_endpoint,
            api_key=cfg.api_key,
            timeout=cfg.timeout,
        )

    async def acquire(self) -> Credential:
        """Request a fresh credential. Raises CredentialError on any failure."""
        payload = {"apiKey": self._api_key} if self._api_key else None

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._endpoint,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("Credential request failed: %s", e)
            raise CredentialError(f"Failed to generate ephemeral token: {e}") from e

        data = _safe_json(resp)

        if resp.status_code >= 400:
            error = data.get("error") or "Unknown error"
            logger.error(
                "Credential endpoint rejected request (HTTP %d): %s",
                resp.status_code,
                error,
            )
            raise CredentialError(
                f"Token generation failed (HTTP {resp.status_code}): {error}",
                status_code=resp.status_code,
                details=data.get("details"),
            )

        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise CredentialError(
                "Token generation failed: response carried no token",
                status_code=resp.status_code,
                details=data,
            )

        expires_at = data.get("expiresAt")
        logger.info("New ephemeral token generated (expires_at=%s)", expires_at)
        return Credential(
            token=token,
            expires_at=expires_at if isinstance(expires_at, int) else None,
        )

    async def health_check(self) -> HealthStatus:
        """Ask the endpoint whether it is reachable and holds a secret. No side effects."""
        if not self._health_endpoint:
            raise CredentialError("No health endpoint configured")

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(self._health_endpoint)
        except httpx.HTTPError as e:
            raise CredentialError(f"Health check failed: {e}") from e

        data = _safe_json(resp)
        if resp.status_code >= 400:
            raise CredentialError(
                f"Health check failed (HTTP {resp.status_code}): "
                f"{data.get('error') or 'Unknown error'}",
                status_code=resp.status_code,
            )

        return HealthStatus(
            status=str(data.get("status", "unknown")),
            has_api_key=bool(data.get("hasApiKey", False)),
        )
