"""
Supervised restart with exponential backoff.

A single bad item never reaches this layer; only failures of the consumer
run itself do (queue unreachable, client construction failing). Restarts
are spaced out so a broken dependency does not become a tight crash loop,
and after too many consecutive failures the error is raised so the process
exits and the platform's own alarms fire.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from thumbnailer.exceptions import WorkerCrashLoop

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, initial: float, maximum: float) -> float:
    """Delay before restart number ``attempt`` (0-based)."""
    return min(maximum, initial * (2 ** attempt))


async def _sleep_unless_stopped(stop_event: asyncio.Event, delay: float) -> None:
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass


async def supervise(
    run: Callable[[], Awaitable[None]],
    *,
    stop_event: asyncio.Event,
    initial_backoff: float = 5.0,
    max_backoff: float = 300.0,
    max_consecutive_failures: int = 10,
    healthy_after: float = 60.0,
) -> None:
    """Call ``run`` until it returns or ``stop_event`` is set.

    A run that lasted at least ``healthy_after`` seconds before failing
    resets the failure count.
    """
    failures = 0
    while not stop_event.is_set():
        started = time.monotonic()
        try:
            await run()
            return
        except Exception as exc:
            if stop_event.is_set():
                logger.exception("Worker failed during shutdown")
                return
            if time.monotonic() - started >= healthy_after:
                failures = 0
            failures += 1
            if failures >= max_consecutive_failures:
                logger.error("Worker failed %d times in a row; giving up", failures)
                raise WorkerCrashLoop(failures) from exc
            delay = backoff_delay(failures - 1, initial_backoff, max_backoff)
            logger.exception(
                "Worker run failed (%d/%d); restarting in %.1fs",
                failures, max_consecutive_failures, delay,
            )
        await _sleep_unless_stopped(stop_event, delay)
