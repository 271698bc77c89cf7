"""
Usage Tracker — request/token counters, session duration and cost estimate.

Fed from the usage block of every response.done. One tracker per
SessionController; reset on every new session.

Usage:
    tracker = UsageTracker(model="gpt-realtime")
    tracker.start()
    tracker.record(event.usage)
    tracker.summary_available  # True after 4 requests
    tracker.stop()             # logs the usage summary
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

SUMMARY_MIN_REQUESTS = 4

# USD per 1M tokens
PRICING: dict[str, dict[str, float]] = {
    "gpt-realtime": {"input": 32.00, "cached_input": 0.40, "output": 64.00},
    "gpt-4o-realtime-preview": {"input": 40.00, "cached_input": 2.50, "output": 80.00},
    "gpt-4o-mini-realtime-preview": {"input": 10.00, "cached_input": 0.30, "output": 20.00},
    "gpt-audio": {"input": 40.00, "cached_input": 0.0, "output": 80.00},
    "gpt-4o-audio-preview": {"input": 40.00, "cached_input": 0.0, "output": 80.00},
    "gpt-4o-mini-audio-preview": {"input": 10.00, "cached_input": 0.0, "output": 20.00},
}


@dataclass(frozen=True)
class CostBreakdown:
    input_cost: float
    cached_input_cost: float
    output_cost: float
    total_cost: float
    total_cached_tokens: int
    total_non_cached_tokens: int
    total_text_tokens: int
    total_audio_tokens: int
    savings: float


def _int(value: Any) -> int:
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    return value if isinstance(value, int) else 0


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    input_details: list[dict[str, Any]],
    model: str = "gpt-realtime",
) -> CostBreakdown:
    """Estimate spend. Unknown models are priced as gpt-realtime."""
    pricing = PRICING.get(model, PRICING["gpt-realtime"])

    cached = text = audio = 0
    non_cached = input_tokens

    if input_details:
        for details in input_details:
            if "text_tokens" in details or "audio_tokens" in details:
                text += _int(details.get("text_tokens"))
                audio += _int(details.get("audio_tokens"))
                if "cached_tokens" in details:
                    cached += _int(details.get("cached_tokens"))
                elif isinstance(details.get("cached_tokens_details"), dict):
                    cd = details["cached_tokens_details"]
                    cached += _int(cd.get("text_tokens")) + _int(cd.get("audio_tokens"))
            else:
                cached += _int(details.get("cached_tokens"))
        non_cached = max(0, input_tokens - cached)

    input_cost = non_cached / 1_000_000 * pricing["input"]
    cached_cost = cached / 1_000_000 * pricing["cached_input"]
    output_cost = output_tokens / 1_000_000 * pricing["output"]

    return CostBreakdown(
        input_cost=input_cost,
        cached_input_cost=cached_cost,
        output_cost=output_cost,
        total_cost=input_cost + cached_cost + output_cost,
        total_cached_tokens=cached,
        total_non_cached_tokens=non_cached,
        total_text_tokens=text,
        total_audio_tokens=audio,
        savings=cached / 1_000_000 * (pricing["input"] - pricing["cached_input"]),
    )


def format_time(seconds: float) -> str:
    """MM:SS"""
    total = int(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"


class UsageTracker:
    """Per-session usage counters."""

    def __init__(
        self,
        model: str = "gpt-realtime",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.model = model
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        self.requests = 0
        self.input_tokens = 0
        self.output_tokens = 0
        self.input_details: list[dict[str, Any]] = []
        self.output_details: list[dict[str, Any]] = []
        self._started_at: float | None = None
        self._stopped_at: float | None = None

    def start(self) -> None:
        if self._started_at is None or self._stopped_at is not None:
            self._started_at = self._clock()
            self._stopped_at = None

    def stop(self) -> None:
        if self._started_at is None or self._stopped_at is not None:
            return
        self._stopped_at = self._clock()
        self.log_summary()

    def record(self, usage: dict[str, Any]) -> None:
        """Add one response.done usage block."""
        self.requests += 1
        self.input_tokens += _int(usage.get("input_tokens"))
        self.output_tokens += _int(usage.get("output_tokens"))
        details = usage.get("input_token_details")
        if isinstance(details, dict):
            self.input_details.append(details)
        details = usage.get("output_token_details")
        if isinstance(details, dict):
            self.output_details.append(details)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def has_usage_data(self) -> bool:
        return self.requests > 0

    def summary_available(self, connected: bool = True) -> bool:
        return connected and self.requests >= SUMMARY_MIN_REQUESTS

    @property
    def duration(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0.0, end - self._started_at)

    def cost(self) -> CostBreakdown:
        return calculate_cost(
            self.input_tokens, self.output_tokens, self.input_details, self.model
        )

    def log_summary(self) -> None:
        breakdown = self.cost()
        logger.info(
            "Usage: duration=%s requests=%d input=%d output=%d cost=$%.4f",
            format_time(self.duration),
            self.requests,
            self.input_tokens,
            self.output_tokens,
            breakdown.total_cost,
        )
        if breakdown.savings > 0:
            logger.info("Cache savings: $%.4f", breakdown.savings)
