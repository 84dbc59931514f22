"""
GardenGuard - Async Utilities
=============================

Background tasks, periodic jobs and a per-key reentrancy guard, all with
error logging so nothing fails silently.

Usage:
    from src.utils.async_utils import ScheduledJob, InFlightRegistry

    job = ScheduledJob("Dedup Sweep", 300, sweep)
    job.start()
    ...
    await job.stop()

    async with registry.claim(message_id) as acquired:
        if not acquired:
            return
        ...
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Coroutine, Dict, Hashable, List, Optional

from src.core.logger import logger


# =============================================================================
# Gather Helpers
# =============================================================================

def log_gather_exceptions(
    results: List[Any],
    operation_names: List[str],
    context: Optional[str] = None,
) -> int:
    """
    Log any exceptions from asyncio.gather(..., return_exceptions=True).

    Returns:
        Number of failures logged.
    """
    failures = 0

    for i, result in enumerate(results):
        if isinstance(result, Exception):
            failures += 1
            name = operation_names[i] if i < len(operation_names) else f"Operation {i}"

            error_details = [
                ("Operation", name),
                ("Error Type", type(result).__name__),
                ("Error", str(result)[:100]),
            ]
            if context:
                error_details.insert(0, ("Context", context))

            logger.warning("Async Operation Failed", error_details)

    return failures


# =============================================================================
# Safe Background Tasks
# =============================================================================

def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task that logs its failure instead of dropping it.

    Cancellation is treated as a normal shutdown and is not logged. A task
    cancelled before its first step still closes the wrapped coroutine.
    """
    async def wrapped():
        try:
            await coro
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    task = asyncio.create_task(wrapped(), name=name)
    task.add_done_callback(lambda _: coro.close())
    return task


# =============================================================================
# Scheduled Jobs
# =============================================================================

class ScheduledJob:
    """
    Periodic coroutine with a deterministic stop.

    One failing run is logged and the loop carries on with the next tick.

    Args:
        name: Label used in logs and as the task name.
        interval: Seconds between runs.
        callback: Zero-argument coroutine function.
        initial_delay: Seconds before the first run.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        initial_delay: float = 0,
    ) -> None:
        self.name = name
        self.interval = interval
        self.callback = callback
        self.initial_delay = initial_delay
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = create_safe_task(self._loop(), self.name)
        logger.debug("Scheduled Job Started", [
            ("Job", self.name),
            ("Interval", f"{self.interval:.0f}s"),
        ])

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Scheduled Job Stopped", [("Job", self.name), ("Runs", str(self.runs))])

    async def _loop(self) -> None:
        if self.initial_delay:
            await asyncio.sleep(self.initial_delay)
        while True:
            try:
                await self.callback()
            except Exception as e:
                logger.warning(f"{self.name} Error", [
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:50]),
                ])
            self.runs += 1
            await asyncio.sleep(self.interval)


# =============================================================================
# In-Flight Registry
# =============================================================================

class InFlightRegistry:
    """
    Per-key reentrancy guard.

    A claim is released when its block exits, on success or error. Claims
    older than the timeout are swept before each new claim so a handler
    that never returned cannot block its key forever.
    """

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout = timeout
        self._clock = clock
        self._claims: Dict[Hashable, float] = {}

    def __len__(self) -> int:
        return len(self._claims)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._claims

    def sweep(self) -> int:
        cutoff = self._clock() - self.timeout
        stale = [key for key, started in self._claims.items() if started <= cutoff]
        for key in stale:
            del self._claims[key]
        if stale:
            logger.warning("Stale In-Flight Claims Swept", [("Count", str(len(stale)))])
        return len(stale)

    @asynccontextmanager
    async def claim(self, key: Hashable) -> AsyncIterator[bool]:
        """Yield True if the key was free and is now held, False if already held."""
        self.sweep()
        if key in self._claims:
            yield False
            return

        started = self._clock()
        self._claims[key] = started
        try:
            yield True
        finally:
            if self._claims.get(key) == started:
                del self._claims[key]


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "log_gather_exceptions",
    "create_safe_task",
    "ScheduledJob",
    "InFlightRegistry",
]
