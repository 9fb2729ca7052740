"""Cancellable repeating task for periodic work inside a browser session."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()


class RepeatingTask:
    """Run ``callback`` every ``interval`` seconds until it returns True.

    The task starts on ``__aenter__`` and is always cancelled on
    ``__aexit__``, so it can never outlive the browser it works against.

    Usage:
        async with RepeatingTask(tick, interval=3.0, max_runs=15) as task:
            completed = await task.wait()
    """

    def __init__(
        self,
        callback: Callable[[int], Awaitable[bool]],
        *,
        interval: float,
        max_runs: int,
        name: str = "repeating_task",
    ) -> None:
        self.callback = callback
        self.interval = interval
        self.max_runs = max_runs
        self.name = name
        self.runs = 0
        self.completed = False
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> RepeatingTask:
        self._task = asyncio.create_task(self._loop(), name=self.name)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cancel()

    async def _loop(self) -> bool:
        while self.runs < self.max_runs:
            await asyncio.sleep(self.interval)
            self.runs += 1
            if await self.callback(self.runs):
                self.completed = True
                break
        return self.completed

    async def wait(self) -> bool:
        """Wait for the loop to finish. Returns True if the callback signalled done."""
        if self._task is None:
            raise RuntimeError("RepeatingTask not started. Use `async with`.")
        return await self._task

    async def cancel(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("repeating_task_cancelled", name=self.name, runs=self.runs)
