"""
Preferences — the only state that outlives a session.

A flat JSON object on disk: selected purpose preset, questionnaire answers,
sidebar visibility and the auto-summary toggle. No session or transcript
data is ever written here. Read, parse and write failures are logged and
fall back to defaults; they never stop the client.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Preferences:
    purpose_preset: str = ""
    questionnaire_answers: dict[str, Any] = field(default_factory=dict)
    sidebar_visible: bool = True
    auto_summary: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Preferences:
        prefs = cls()
        if isinstance(data.get("purpose_preset"), str):
            prefs.purpose_preset = data["purpose_preset"]
        if isinstance(data.get("questionnaire_answers"), dict):
            prefs.questionnaire_answers = dict(data["questionnaire_answers"])
        if isinstance(data.get("sidebar_visible"), bool):
            prefs.sidebar_visible = data["sidebar_visible"]
        if isinstance(data.get("auto_summary"), bool):
            prefs.auto_summary = data["auto_summary"]
        return prefs


class PreferenceStore:
    """JSON-file key/value store for Preferences."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> Preferences:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Preferences()
        except OSError as e:
            logger.warning("Could not read preferences from %s: %s", self.path, e)
            return Preferences()

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning("Ignoring malformed preferences file %s: %s", self.path, e)
            return Preferences()
        if not isinstance(data, dict):
            logger.warning("Ignoring preferences file %s: not an object", self.path)
            return Preferences()
        return Preferences.from_dict(data)

    def save(self, prefs: Preferences) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(asdict(prefs), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("Could not save preferences to %s: %s", self.path, e)
            return False
        return True

    def update(self, **changes: Any) -> Preferences:
        """Load, apply known keys, save. Unknown keys are ignored."""
        prefs = self.load()
        for key, value in changes.items():
            if hasattr(prefs, key):
                setattr(prefs, key, value)
            else:
                logger.debug("Unknown preference %r ignored", key)
        self.save(prefs)
        return prefs
