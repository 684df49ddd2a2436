"""
Lifecycle Scheduler — runs the order and booking jobs on fixed periods.

Jobs (each its own asyncio task):
    auto_cancel      — every AUTO_CANCEL_INTERVAL_SECONDS
    payment_reminder — every PAYMENT_REMINDER_INTERVAL_SECONDS, plus once at start
    auto_complete    — every AUTO_COMPLETE_INTERVAL_SECONDS
    booking_expiry   — every BOOKING_EXPIRY_INTERVAL_SECONDS

Each tick opens a fresh session, runs the job and records metrics. A tick
that raises is logged and the loop continues with the next tick. stop()
cancels the tasks; a tick in flight at that moment is abandoned.

Single instance only: nothing stops two processes from running the same job.
The conditional updates in the repositories keep that safe, but customers
may receive duplicate reminders.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import async_session
from services import booking_expiry_service, order_lifecycle_service
from services.scheduler_metrics import get_scheduler_metrics

logger = logging.getLogger(__name__)

JobFn = Callable[[AsyncSession], Awaitable[int]]


@dataclass(frozen=True)
class Job:
    name: str
    run: JobFn
    interval_seconds: int
    run_on_start: bool = False


def configured_jobs() -> list[Job]:
    return [
        Job("auto_cancel", order_lifecycle_service.auto_cancel_unpaid_orders,
            settings.auto_cancel_interval_seconds),
        Job("payment_reminder", order_lifecycle_service.remind_pending_payments,
            settings.payment_reminder_interval_seconds, run_on_start=True),
        Job("auto_complete", order_lifecycle_service.auto_complete_orders,
            settings.auto_complete_interval_seconds),
        Job("booking_expiry", booking_expiry_service.expire_pending_bookings,
            settings.booking_expiry_interval_seconds),
    ]


# Scheduler state
_tasks: dict[str, asyncio.Task] = {}
_jobs: list[Job] = []
_is_running: bool = False


async def run_job_once(job: Job, session_factory=None) -> Optional[int]:
    """
    Run one tick of `job` in its own session.

    Returns the number of records acted on, or None if the tick failed.
    """
    metrics = get_scheduler_metrics()
    factory = session_factory or async_session
    started = time.monotonic()
    try:
        async with factory() as db:
            acted_on = await job.run(db)
        metrics.record_tick(job.name, acted_on, time.monotonic() - started)
        return acted_on
    except asyncio.CancelledError:
        raise
    except Exception as e:
        metrics.record_error(job.name, e)
        logger.error(f"Scheduler job '{job.name}' tick failed: {e}", exc_info=True)
        return None


async def _job_loop(job: Job):
    """Run `job` every `interval_seconds` until stopped."""
    logger.info(f"Scheduler job '{job.name}' started (every {job.interval_seconds}s)")

    if job.run_on_start:
        await run_job_once(job)

    while _is_running:
        try:
            await asyncio.sleep(job.interval_seconds)
            await run_job_once(job)
        except asyncio.CancelledError:
            logger.info(f"Scheduler job '{job.name}' cancelled")
            break

    logger.info(f"Scheduler job '{job.name}' stopped")


# ════════════════════════════════════════════════════════════════════
# Public API — Start / Stop / Status
# ════════════════════════════════════════════════════════════════════


async def start(jobs: list[Job] | None = None):
    """Start one background task per job."""
    global _is_running, _jobs

    if _is_running and any(not t.done() for t in _tasks.values()):
        logger.warning("Scheduler already running")
        return

    _is_running = True
    _jobs = jobs if jobs is not None else configured_jobs()
    get_scheduler_metrics().mark_started()

    for job in _jobs:
        _tasks[job.name] = asyncio.create_task(_job_loop(job), name=f"scheduler:{job.name}")
    logger.info(f"Scheduler started with {len(_jobs)} job(s)")


async def stop():
    """Cancel every job task and wait for it to finish."""
    global _is_running
    _is_running = False

    for task in list(_tasks.values()):
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    _tasks.clear()
    logger.info("Scheduler stopped")


def get_status() -> dict:
    """Scheduler status for the /scheduler/status endpoint."""
    return {
        "running": _is_running,
        "enabled": settings.scheduler_enabled,
        "jobs": [
            {
                "name": job.name,
                "intervalSeconds": job.interval_seconds,
                "runOnStart": job.run_on_start,
                "active": job.name in _tasks and not _tasks[job.name].done(),
            }
            for job in _jobs
        ],
        "metrics": get_scheduler_metrics().to_dict(),
    }
