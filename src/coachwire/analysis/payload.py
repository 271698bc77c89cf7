"""
Analysis Payloads — defensive parsing of the side channel's JSON answers.

The upstream agent is only *asked* to reply with strict JSON, so every
field is optional here: scores are coerced and clamped, unknown keys are
ignored, code fences are stripped, and anything that is not a JSON object
raises MalformedAnalysisPayload for the analyzer to log and drop.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from coachwire.analysis.dimensions import DimensionSet
from coachwire.analysis.prompts import DEFAULT_REASON
from coachwire.core.errors import MalformedAnalysisPayload

_SCORE_KEYS = ("scores", "progress", "mode_confidence")
_LABEL_KEYS = ("current_phase", "next_phase", "currentPhase", "nextPhase", "mode")
_REASON_KEYS = ("reason", "summary_reason", "notes", "analysis", "rationale")
_READY_KEYS = ("summary_ready", "summaryReady", "ready_for_summary", "readyForSummary")

_FENCE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


def extract_response_text(response: dict[str, Any]) -> str | None:
    """All text carried by a response.done payload, joined. None when empty."""
    texts: list[str] = []

    output = response.get("output")
    if isinstance(output, list):
        for item in output:
            if not item:
                continue
            if isinstance(item, str):
                texts.append(item)
                continue
            if not isinstance(item, dict):
                continue
            if isinstance(item.get("text"), str):
                texts.append(item["text"])
            content = item.get("content")
            if isinstance(content, list):
                for part in content:
                    if isinstance(part, str):
                        texts.append(part)
                    elif isinstance(part, dict):
                        if isinstance(part.get("text"), str):
                            texts.append(part["text"])
                        elif isinstance(part.get("value"), str):
                            texts.append(part["value"])

    if not texts:
        output_text = response.get("output_text")
        if isinstance(output_text, list):
            texts.extend(v for v in output_text if isinstance(v, str))
        elif isinstance(output_text, str):
            texts.append(output_text)

    combined = " ".join(texts).strip()
    return combined or None


def parse_payload(text: str) -> dict[str, Any]:
    """Parse a JSON object, tolerating a surrounding markdown code fence."""
    stripped = text.strip()
    fenced = _FENCE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        data = json.loads(stripped)
    except ValueError as e:
        raise MalformedAnalysisPayload(f"Analysis payload is not JSON: {e}", raw=text) from e
    if not isinstance(data, dict):
        raise MalformedAnalysisPayload(
            f"Analysis payload is a {type(data).__name__}, not an object", raw=text
        )
    return data


def _coerce_score(raw: Any) -> float:
    if isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def normalize_scores(parsed: dict[str, Any], dimensions: DimensionSet) -> dict[str, float]:
    """One clamped float per dimension. Missing or non-numeric → 0."""
    source: Any = parsed
    for key in _SCORE_KEYS:
        if isinstance(parsed.get(key), dict):
            source = parsed[key]
            break
    return {key: _coerce_score(source.get(key)) for key in dimensions.keys}


def resolve_label(
    parsed: dict[str, Any], scores: dict[str, float], dimensions: DimensionSet
) -> str:
    """Display label: the payload's label if any, else the top-scoring dimension."""
    for key in _LABEL_KEYS:
        value = parsed.get(key)
        if isinstance(value, str) and value.strip():
            matched = dimensions.match(value)
            return dimensions.label_for(matched) if matched else value
    # Ties resolve to the earlier dimension
    highest = max(dimensions.keys, key=lambda k: scores.get(k, 0.0))
    return dimensions.label_for(highest)


def resolve_reason(parsed: dict[str, Any]) -> str:
    for key in _REASON_KEYS:
        value = parsed.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return DEFAULT_REASON


def is_ready(
    parsed: dict[str, Any],
    scores: dict[str, float],
    dimensions: DimensionSet,
    ready_threshold: float = 0.65,
    average_threshold: float = 0.6,
) -> bool:
    """Explicit boolean flag wins; otherwise readiness dimension and average thresholds."""
    for key in _READY_KEYS:
        value = parsed.get(key)
        if isinstance(value, bool):
            return value

    keys = dimensions.keys
    average = sum(scores.get(k, 0.0) for k in keys) / len(keys)
    return scores.get(dimensions.readiness_key, 0.0) >= ready_threshold and average >= average_threshold


@dataclass(frozen=True)
class Assessment:
    """One parsed progress evaluation."""

    scores: dict[str, float] = field(default_factory=dict)
    label: str = ""
    reason: str = ""
    ready: bool = False


def parse_assessment(
    text: str,
    dimensions: DimensionSet,
    ready_threshold: float = 0.65,
    average_threshold: float = 0.6,
) -> Assessment:
    parsed = parse_payload(text)
    scores = normalize_scores(parsed, dimensions)
    return Assessment(
        scores=scores,
        label=resolve_label(parsed, scores, dimensions),
        reason=resolve_reason(parsed),
        ready=is_ready(parsed, scores, dimensions, ready_threshold, average_threshold),
    )


class ConsentDecision(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    UNCERTAIN = "uncertain"


def parse_consent_decision(text: str) -> ConsentDecision:
    """accept / decline / uncertain. Unknown decisions count as uncertain."""
    parsed = parse_payload(text)
    decision = parsed.get("decision")
    if not isinstance(decision, str):
        return ConsentDecision.UNCERTAIN
    decision = decision.strip().lower()
    if decision == ConsentDecision.ACCEPT.value:
        return ConsentDecision.ACCEPT
    if decision == ConsentDecision.DECLINE.value:
        return ConsentDecision.DECLINE
    return ConsentDecision.UNCERTAIN
