"""Tests for named one-shot timers."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from coachwire.core.timers import TimerSet


@pytest.mark.asyncio
async def test_timer_fires_once():
    timers = TimerSet("test")
    callback = MagicMock()
    timers.schedule("t", 0.01, callback)
    assert timers.is_scheduled("t")

    await asyncio.sleep(0.03)

    callback.assert_called_once_with()
    assert not timers.is_scheduled("t")


@pytest.mark.asyncio
async def test_rescheduling_replaces_timer():
    timers = TimerSet("test")
    first, second = MagicMock(), MagicMock()
    timers.schedule("t", 0.01, first)
    timers.schedule("t", 0.01, second)

    await asyncio.sleep(0.03)

    first.assert_not_called()
    second.assert_called_once_with()


@pytest.mark.asyncio
async def test_cancel_and_cancel_all():
    timers = TimerSet("test")
    a, b = MagicMock(), MagicMock()
    timers.schedule("a", 0.01, a)
    timers.schedule("b", 0.01, b)

    assert timers.cancel("a")
    assert not timers.cancel("a")
    timers.cancel_all()

    await asyncio.sleep(0.03)
    a.assert_not_called()
    b.assert_not_called()


@pytest.mark.asyncio
async def test_coroutine_callback_runs_as_task():
    timers = TimerSet("test")
    callback = AsyncMock()
    timers.schedule("t", 0.0, callback)

    await asyncio.sleep(0.02)

    callback.assert_awaited_once()


@pytest.mark.asyncio
async def test_failing_callback_is_contained():
    timers = TimerSet("test")
    timers.schedule("bad", 0.0, MagicMock(side_effect=RuntimeError("boom")))
    timers.schedule("bad-task", 0.0, AsyncMock(side_effect=RuntimeError("boom")))
    good = MagicMock()
    timers.schedule("good", 0.0, good)

    await asyncio.sleep(0.02)

    good.assert_called_once_with()


def test_schedule_requires_running_loop():
    with pytest.raises(RuntimeError):
        TimerSet("test").schedule("t", 1.0, MagicMock())
