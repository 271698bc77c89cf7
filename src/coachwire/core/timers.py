"""
TimerSet — named one-shot timers owned by a single component.

Wraps loop.call_later so a component can schedule, replace and cancel its
timers by name, and drop all of them at once on teardown. A callback that
returns a coroutine is run as a task; its failure is logged, never lost.

Usage:
    timers = TimerSet("session")
    timers.schedule("connect-fallback", 1.0, self._on_fallback)
    ...
    timers.cancel_all()  # on disconnect
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TimerSet:
    """Named one-shot timers on the running event loop."""

    def __init__(self, owner: str = "") -> None:
        self.owner = owner
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, name: str, delay: float, callback: Callable[[], Any]) -> None:
        """Schedule callback after delay seconds, replacing a timer of the same name."""
        self.cancel(name)
        loop = asyncio.get_running_loop()
        self._handles[name] = loop.call_later(delay, self._fire, name, callback)

    def cancel(self, name: str) -> bool:
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def is_scheduled(self, name: str) -> bool:
        return name in self._handles

    def cancel_all(self) -> None:
        """Cancel every pending timer. Tasks already started keep running."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def _fire(self, name: str, callback: Callable[[], Any]) -> None:
        self._handles.pop(name, None)
        try:
            result = callback()
        except Exception as e:
            logger.error("%s timer %r failed: %s", self.owner, name, e, exc_info=True)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)

            def _on_done(t: asyncio.Task) -> None:
                self._tasks.discard(t)
                if t.cancelled():
                    return
                if t.exception():
                    logger.error(
                        "%s timer %r task failed: %s",
                        self.owner,
                        name,
                        t.exception(),
                        exc_info=t.exception(),
                    )

            task.add_done_callback(_on_done)
