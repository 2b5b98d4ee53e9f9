"""
Maintenance scheduler.

Wraps a single APScheduler ``AsyncIOScheduler`` for the process. Modules
register their periodic jobs here at startup; the registry outlives the
scheduler so that jobs can still be run on demand (debug endpoints, tests)
when nothing is scheduled.

Jobs must be idempotent: a failed or interrupted run is simply repeated on
the next tick.

Usage:
    register_job("lifecycle_purge_tokens", purge_tokens, IntervalTrigger(hours=1))
    await start_scheduler()
    ...
    await stop_scheduler()
"""

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

# Missed runs collapse into one, never two copies of a job at once, and a
# run delayed by up to five minutes still fires.
JOB_DEFAULTS = {"coalesce": True, "max_instances": 1, "misfire_grace_time": 300}


@dataclass
class RegisteredJob:
    job_id: str
    func: JobFunc
    trigger: BaseTrigger


_job_registry: dict[str, RegisteredJob] = {}
_scheduler: AsyncIOScheduler | None = None


def _on_job_event(event: JobExecutionEvent) -> None:
    if event.exception is None:
        logger.info(f"Scheduled run of {event.job_id} finished")
        return
    logger.error(
        f"Scheduled run of {event.job_id} raised: {event.exception}",
        exc_info=event.exception,
    )


def _schedule(job: RegisteredJob) -> None:
    _scheduler.add_job(job.func, trigger=job.trigger, id=job.job_id, replace_existing=True)
    logger.info(f"Job {job.job_id} scheduled ({job.trigger})")


def _is_running() -> bool:
    return _scheduler is not None and _scheduler.running


async def start_scheduler() -> AsyncIOScheduler:
    """
    Build the scheduler, schedule every registered job and start it.

    Calling this twice returns the scheduler that is already running.
    """
    global _scheduler

    if _is_running():
        logger.warning("start_scheduler called twice; keeping the running scheduler")
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)
    _scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    for job in _job_registry.values():
        _schedule(job)

    _scheduler.start()
    logger.info(f"Maintenance scheduler running ({len(_job_registry)} jobs)")
    return _scheduler


async def stop_scheduler() -> None:
    """Shut the scheduler down, letting in-flight runs complete."""
    global _scheduler

    if not _is_running():
        return

    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Maintenance scheduler shut down")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Add a job to the registry.

    If the scheduler is already running the job is scheduled right away,
    otherwise it is picked up by ``start_scheduler``.
    """
    job = RegisteredJob(job_id=job_id, func=func, trigger=trigger)
    _job_registry[job_id] = job

    if _scheduler is not None:
        _schedule(job)


def clear_registry() -> None:
    _job_registry.clear()


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job now, outside its schedule.

    Returns:
        Dict with ``job_id``, ``status`` ("success" or "error"),
        ``executed_at`` and either the job's return value under ``result``
        or the failure message under ``error``.

    Raises:
        ValueError: If job_id is not registered
    """
    job = _job_registry.get(job_id)
    if job is None:
        known = ", ".join(sorted(_job_registry)) or "none"
        raise ValueError(f"Unknown job '{job_id}' (registered: {known})")

    outcome: dict[str, Any] = {
        "job_id": job_id,
        "executed_at": datetime.now(UTC).isoformat(),
    }
    logger.info(f"Running {job_id} on demand")

    try:
        outcome["result"] = await job.func()
    except Exception as e:
        logger.error(f"On-demand run of {job_id} raised: {e}", exc_info=True)
        outcome.update(status="error", error=str(e))
        return outcome

    outcome["status"] = "success"
    return outcome


def list_registered_jobs() -> list[dict[str, Any]]:
    """Describe each registered job; schedule details only while running."""
    described = []

    for job_id in _job_registry:
        entry: dict[str, Any] = {"job_id": job_id, "registered": True}

        if _scheduler is not None:
            live = _scheduler.get_job(job_id)
            next_run = live.next_run_time if live else None
            entry["next_run_time"] = next_run.isoformat() if next_run else None
            entry["is_paused"] = next_run is None

        described.append(entry)

    return described


def _toggle(job_id: str, pause: bool) -> bool:
    action = "pause" if pause else "resume"

    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Cannot {action} {job_id}: not scheduled")
        return False

    if pause:
        _scheduler.pause_job(job_id)
    else:
        _scheduler.resume_job(job_id)
    logger.info(f"Job {job_id}: {action}d")
    return True


def pause_job(job_id: str) -> bool:
    return _toggle(job_id, pause=True)


def resume_job(job_id: str) -> bool:
    return _toggle(job_id, pause=False)
