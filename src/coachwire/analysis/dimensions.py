"""
Dimension Sets — the fixed progress axes the analyzer scores each cycle.

Two built-in sets:
- grow:  Goal → Reality → Options → Will (readiness read from "will")
- modes: reflective / discovery / actionable / cognitive (readiness from "actionable")
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Dimension:
    key: str
    label: str
    match: str  # Substring that identifies this dimension in a free-text label


@dataclass(frozen=True)
class DimensionSet:
    name: str
    dimensions: tuple[Dimension, ...]
    readiness_key: str
    label_prefix: str = ""

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(d.key for d in self.dimensions)

    def label_for(self, key: str) -> str:
        for d in self.dimensions:
            if d.key == key:
                return d.label
        return key

    def match(self, value: str) -> str | None:
        """Dimension key named by a free-text label, ignoring case and punctuation."""
        normalized = re.sub(r"[^a-z]", "", value.lower())
        for d in self.dimensions:
            if d.match in normalized:
                return d.key
        return None

    def zero_scores(self) -> dict[str, float]:
        return {key: 0.0 for key in self.keys}


GROW_PHASES = DimensionSet(
    name="grow",
    dimensions=(
        Dimension("goal", "Goal（目標設定）", "goal"),
        Dimension("reality", "Reality（現状把握）", "reality"),
        Dimension("options", "Options（選択肢の探索）", "option"),
        Dimension("will", "Will（意志と行動）", "will"),
    ),
    readiness_key="will",
    label_prefix="現在のフェーズ",
)

COACHING_MODES = DimensionSet(
    name="modes",
    dimensions=(
        Dimension("reflective", "Reflective（感情・価値の内省）", "reflective"),
        Dimension("discovery", "Discovery（目標と選択肢の探求）", "discovery"),
        Dimension("actionable", "Actionable（行動と合意づくり）", "actionable"),
        Dimension("cognitive", "Cognitive（視点の転換）", "cognitive"),
    ),
    readiness_key="actionable",
    label_prefix="現在のモード",
)

_SETS = {s.name: s for s in (GROW_PHASES, COACHING_MODES)}


def get_dimension_set(name: str) -> DimensionSet:
    try:
        return _SETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown dimension set {name!r} (expected one of: {', '.join(_SETS)})"
        ) from None
