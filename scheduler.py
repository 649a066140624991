"""
scheduler.py — re-runs the whole remediation job on a fixed interval.

  start(job, interval_minutes)  → background asyncio Task
  stop()                        → loop exits after the current sleep
  wait_idle()                   → let an in-flight run finish on shutdown

The first run fires immediately. Only one run is ever in flight: if a tick
arrives while the previous run is still going, that tick is skipped
(run_guarded returns None) instead of queueing a second run.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]

_running = False
_run_in_flight = False
_pending: set[asyncio.Task] = set()      # strong refs to fire-and-forget runs


def is_busy() -> bool:
    return _run_in_flight


async def run_guarded(job: Job) -> Optional[Any]:
    """Run job unless another guarded run is in progress. Errors are logged."""
    global _run_in_flight
    if _run_in_flight:
        logger.warning("Previous run still in progress — skipping this one")
        return None

    _run_in_flight = True
    try:
        return await job()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.error("Scheduled run failed: %s", exc, exc_info=True)
        return None
    finally:
        _run_in_flight = False


async def _scheduler_loop(job: Job, interval_minutes: float) -> None:
    logger.info("📅 Scheduler started (every %s min)", interval_minutes)
    while _running:
        # Fire-and-forget so a slow run doesn't stretch the interval
        task = asyncio.create_task(run_guarded(job))
        _pending.add(task)
        task.add_done_callback(_pending.discard)
        try:
            await asyncio.sleep(interval_minutes * 60)
        except asyncio.CancelledError:
            break
    logger.info("Scheduler stopped")


def start(job: Job, interval_minutes: float) -> asyncio.Task:
    """Start the scheduler as a background asyncio Task."""
    global _running
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    _running = True
    return asyncio.create_task(_scheduler_loop(job, interval_minutes))


def stop() -> None:
    global _running
    _running = False


async def wait_idle() -> None:
    """Wait for runs already started by the loop to finish."""
    if _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
