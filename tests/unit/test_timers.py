"""Unit tests for the asyncio repeating timer."""

from __future__ import annotations

import asyncio

import pytest

from analysis_worker.orchestration.timers import AsyncioTimer


@pytest.mark.asyncio
async def test_timer_fires_repeatedly_until_cancelled() -> None:
    timer = AsyncioTimer()
    ticks = []

    async def on_tick():
        ticks.append(len(ticks))

    handle = timer.schedule_repeating(0.01, on_tick)
    await asyncio.sleep(0.1)
    timer.cancel(handle)
    await asyncio.sleep(0)
    count = len(ticks)
    assert count >= 2

    await asyncio.sleep(0.05)
    assert len(ticks) == count


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_timer() -> None:
    timer = AsyncioTimer()
    calls = []

    async def on_tick():
        calls.append(1)
        raise RuntimeError("boom")

    handle = timer.schedule_repeating(0.01, on_tick)
    await asyncio.sleep(0.08)
    timer.cancel(handle)
    assert len(calls) >= 2
