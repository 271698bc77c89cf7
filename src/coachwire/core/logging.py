"""
Coachwire Logging — colorized terminal lines or JSON lines on stderr.

Text mode tags side-channel traffic so hidden requests stand out:

    09:30:12 [coachwire.analysis.analyzer] INFO: Progress request sent {progress-score resp_1}

Env vars: COACHWIRE_LOG_LEVEL, COACHWIRE_LOG_COLOR (auto/true/false),
COACHWIRE_LOG_FORMAT (text/json). Structured extras, passed with
logger.info(..., extra={...}): session_id, response_id, purpose,
request_id, duration_ms, status.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

_LEVEL_ANSI = {
    logging.DEBUG: "36",
    logging.INFO: "32",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "1;31",
}

_STRUCTURED_FIELDS = (
    "session_id",
    "response_id",
    "purpose",
    "request_id",
    "duration_ms",
    "status",
)

# Shown inline in text mode
_TAG_FIELDS = ("purpose", "response_id")

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "websockets",
    "asyncio",
)


def _ansi(code: str, text: str) -> str:
    return f"\033[{code}m{text}\033[0m"


class ColorFormatter(logging.Formatter):
    """Terminal formatter; colors are optional, side-channel tags are not."""

    def __init__(self, use_color: bool = True):
        super().__init__(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        if self.use_color:
            record.levelname = _ansi(_LEVEL_ANSI.get(record.levelno, "0"), levelname)
            record.name = _ansi("2", name)
        try:
            line = super().format(record)
        finally:
            record.levelname, record.name = levelname, name

        tags = [str(getattr(record, key)) for key in _TAG_FIELDS if getattr(record, key, None)]
        if tags:
            tag = "{" + " ".join(tags) + "}"
            line = f"{line} {_ansi('35', tag) if self.use_color else tag}"
        return line


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; structured extras land at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key)) for key in _STRUCTURED_FIELDS if hasattr(record, key)
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _should_use_color() -> bool:
    setting = os.getenv("COACHWIRE_LOG_COLOR", "auto").lower()
    if setting in ("true", "false"):
        return setting == "true"
    return sys.stderr.isatty()


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure the root logger once at startup.

    Arguments override COACHWIRE_LOG_LEVEL / COACHWIRE_LOG_FORMAT. Output
    goes to stderr; stdout belongs to the conversation.
    """
    level_name = (level or os.getenv("COACHWIRE_LOG_LEVEL", "INFO")).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    log_format = (log_format or os.getenv("COACHWIRE_LOG_FORMAT", "text")).lower()

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = ColorFormatter(use_color=_should_use_color())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("coachwire").debug(
        "Logging configured (level=%s, format=%s)", level_name, log_format
    )
