"""Tests for the repeating task helper."""

from __future__ import annotations

import asyncio

import pytest

from workfront_session.utils.repeating import RepeatingTask


@pytest.mark.asyncio
async def test_stops_when_callback_signals_done():
    seen: list[int] = []

    async def tick(run: int) -> bool:
        seen.append(run)
        return run == 3

    async with RepeatingTask(tick, interval=0, max_runs=10) as task:
        completed = await task.wait()

    assert completed is True
    assert seen == [1, 2, 3]
    assert task.runs == 3


@pytest.mark.asyncio
async def test_stops_at_max_runs():
    async def tick(run: int) -> bool:
        return False

    async with RepeatingTask(tick, interval=0, max_runs=4) as task:
        completed = await task.wait()

    assert completed is False
    assert task.runs == 4


@pytest.mark.asyncio
async def test_cancelled_on_exit():
    async def tick(run: int) -> bool:
        return False

    async with RepeatingTask(tick, interval=10, max_runs=5) as task:
        await asyncio.sleep(0)

    assert task._task.cancelled()
    assert task.runs == 0


@pytest.mark.asyncio
async def test_callback_error_propagates():
    async def tick(run: int) -> bool:
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        async with RepeatingTask(tick, interval=0, max_runs=2) as task:
            await task.wait()


@pytest.mark.asyncio
async def test_wait_requires_context():
    async def tick(run: int) -> bool:
        return True

    with pytest.raises(RuntimeError, match="not started"):
        await RepeatingTask(tick, interval=0, max_runs=1).wait()
