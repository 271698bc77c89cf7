"""
Session Greeting — the first thing the coach hears when the line opens.

A fixed time-of-day table per language. The greeting is sent as a user
message so the coach answers it; nothing here talks to the transport.
"""

from __future__ import annotations

from datetime import datetime

# (hour upper bound, greeting); first bound the hour is below wins
_GREETINGS: dict[str, list[tuple[int, str]]] = {
    "ja": [
        (5, "こんばんは"),
        (11, "おはようございます"),
        (18, "こんにちは"),
        (24, "こんばんは"),
    ],
    "en": [
        (5, "Good evening"),
        (11, "Good morning"),
        (18, "Hello"),
        (24, "Good evening"),
    ],
}


def greeting_for_hour(hour: int, language: str = "ja") -> str:
    table = _GREETINGS.get(language, _GREETINGS["ja"])
    for bound, greeting in table:
        if hour < bound:
            return greeting
    return table[-1][1]


def greeting_for_now(language: str = "ja", now: datetime | None = None) -> str:
    """Greeting for the local wall-clock hour."""
    now = now or datetime.now()
    return greeting_for_hour(now.hour, language)
