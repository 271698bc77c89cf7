"""
Coachwire Configuration — single source of truth for all settings.

Reads from environment variables with sensible defaults.
No config files, no YAML. Just env vars (a local .env is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CredentialConfig:
    """Where the short-lived session credential comes from."""

    endpoint: str = "http://localhost:3000/api/generate-token"
    health_endpoint: str = "http://localhost:3000/api/health"
    api_key: str = ""  # Sent in the POST body when the deployment expects it
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> CredentialConfig:
        return cls(
            endpoint=os.getenv(
                "COACHWIRE_TOKEN_ENDPOINT", "http://localhost:3000/api/generate-token"
            ),
            health_endpoint=os.getenv(
                "COACHWIRE_HEALTH_ENDPOINT", "http://localhost:3000/api/health"
            ),
            api_key=os.getenv("COACHWIRE_TOKEN_API_KEY", ""),
            timeout=float(os.getenv("COACHWIRE_TOKEN_TIMEOUT", "10.0")),
        )


@dataclass(frozen=True)
class TransportConfig:
    """Upstream realtime channel settings."""

    url: str = "wss://api.openai.com/v1/realtime"
    model: str = "gpt-realtime"
    ping_interval: float = 20.0
    open_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> TransportConfig:
        return cls(
            url=os.getenv("COACHWIRE_REALTIME_URL", "wss://api.openai.com/v1/realtime"),
            model=os.getenv("COACHWIRE_REALTIME_MODEL", "gpt-realtime"),
            ping_interval=float(os.getenv("COACHWIRE_PING_INTERVAL", "20.0")),
            open_timeout=float(os.getenv("COACHWIRE_OPEN_TIMEOUT", "10.0")),
        )


DEFAULT_INSTRUCTIONS = (
    "You are a warm, professional coach. Ask one open question at a time, "
    "reflect back what you hear, and help the client move from a clear goal "
    "to a concrete next step. Reply in the language the client uses."
)


@dataclass(frozen=True)
class SessionConfig:
    """Session lifecycle settings."""

    connect_fallback_s: float = 1.0
    language: str = "ja"  # Greeting table and local notices: "ja" | "en"
    default_instructions: str = DEFAULT_INSTRUCTIONS

    @classmethod
    def from_env(cls) -> SessionConfig:
        return cls(
            connect_fallback_s=float(os.getenv("COACHWIRE_CONNECT_FALLBACK_S", "1.0")),
            language=os.getenv("COACHWIRE_LANGUAGE", "ja"),
            default_instructions=os.getenv(
                "COACHWIRE_INSTRUCTIONS", DEFAULT_INSTRUCTIONS
            ),
        )


@dataclass(frozen=True)
class AnalysisConfig:
    """Progress analyzer tuning."""

    cooldown_s: float = 15.0
    max_transcripts: int = 40
    min_transcripts: int = 4
    suppression_window_s: float = 120.0
    snippet_limit: int = 12
    consent_snippet_limit: int = 10
    dimension_set: str = "grow"  # "grow" | "modes"
    auto_summary: bool = True
    ready_threshold: float = 0.65
    average_threshold: float = 0.6

    @classmethod
    def from_env(cls) -> AnalysisConfig:
        return cls(
            cooldown_s=float(os.getenv("COACHWIRE_ANALYSIS_COOLDOWN_S", "15.0")),
            max_transcripts=int(os.getenv("COACHWIRE_MAX_TRANSCRIPTS", "40")),
            min_transcripts=int(os.getenv("COACHWIRE_MIN_TRANSCRIPTS", "4")),
            suppression_window_s=float(
                os.getenv("COACHWIRE_SUPPRESSION_WINDOW_S", "120.0")
            ),
            snippet_limit=int(os.getenv("COACHWIRE_SNIPPET_LIMIT", "12")),
            consent_snippet_limit=int(
                os.getenv("COACHWIRE_CONSENT_SNIPPET_LIMIT", "10")
            ),
            dimension_set=os.getenv("COACHWIRE_DIMENSION_SET", "grow"),
            auto_summary=_env_bool("COACHWIRE_AUTO_SUMMARY", True),
            ready_threshold=float(os.getenv("COACHWIRE_READY_THRESHOLD", "0.65")),
            average_threshold=float(os.getenv("COACHWIRE_AVERAGE_THRESHOLD", "0.6")),
        )


@dataclass(frozen=True)
class ClosureConfig:
    """Summary / wrap-up settings."""

    disconnect_grace_s: float = 1.5

    @classmethod
    def from_env(cls) -> ClosureConfig:
        return cls(
            disconnect_grace_s=float(
                os.getenv("COACHWIRE_DISCONNECT_GRACE_S", "1.5")
            ),
        )


@dataclass(frozen=True)
class PreferencesConfig:
    """Where user preferences are persisted."""

    path: str = "~/.coachwire/preferences.json"

    @classmethod
    def from_env(cls) -> PreferencesConfig:
        return cls(
            path=os.getenv("COACHWIRE_PREFS_PATH", "~/.coachwire/preferences.json"),
        )


@dataclass(frozen=True)
class CoachwireConfig:
    """Root configuration — one object for the whole client."""

    credential: CredentialConfig = field(default_factory=CredentialConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    closure: ClosureConfig = field(default_factory=ClosureConfig)
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)

    @classmethod
    def from_env(cls) -> CoachwireConfig:
        return cls(
            credential=CredentialConfig.from_env(),
            transport=TransportConfig.from_env(),
            session=SessionConfig.from_env(),
            analysis=AnalysisConfig.from_env(),
            closure=ClosureConfig.from_env(),
            preferences=PreferencesConfig.from_env(),
        )


# Singleton: import this wherever you need config
config = CoachwireConfig.from_env()
