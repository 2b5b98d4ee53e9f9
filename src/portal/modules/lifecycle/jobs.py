"""
Lifecycle Background Jobs

1. Purge security tokens that expired more than ``token_retention_hours`` ago
2. Reconcile accounts whose cross-entity write was interrupted

Both jobs open their own database session and are idempotent. They share the
process-wide key locks with request handlers, so a reconciliation pass never
races a live status change for the same account.

Schedule:
- lifecycle_purge_tokens: hourly
- lifecycle_reconcile: every 15 minutes
"""

import logging
from collections.abc import Callable, Coroutine
from datetime import timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from portal.core.config import settings
from portal.core.database import async_session_maker
from portal.core.locks import KeyedLock
from portal.core.notifications import Notifier
from portal.core.scheduler import register_job
from portal.modules.lifecycle.dependencies import build_lifecycle

logger = logging.getLogger(__name__)

JOB_ID_PURGE_TOKENS = "lifecycle_purge_tokens"
JOB_ID_RECONCILE = "lifecycle_reconcile"


async def purge_expired_tokens(locks: KeyedLock, notifier: Notifier) -> dict[str, Any]:
    retention = timedelta(hours=settings.token_retention_hours)

    async with async_session_maker() as db:
        lifecycle = build_lifecycle(db, locks, notifier)
        deleted = await lifecycle.tokens.purge_expired(retention)

    logger.info(f"Token purge job completed. Deleted: {deleted}")
    return {"deleted": deleted}


async def reconcile_accounts(locks: KeyedLock, notifier: Notifier) -> dict[str, Any]:
    async with async_session_maker() as db:
        lifecycle = build_lifecycle(db, locks, notifier)
        report = await lifecycle.reconcile()

    logger.info(f"Reconciliation job completed. Repaired: {report.total}")
    return {
        "approvals_completed": report.approvals_completed,
        "withdrawals_marked": report.withdrawals_marked,
        "withdrawals_finished": report.withdrawals_finished,
    }


def _bind(
    job: Callable[[KeyedLock, Notifier], Coroutine[Any, Any, dict[str, Any]]],
    locks: KeyedLock,
    notifier: Notifier,
) -> Callable[[], Coroutine[Any, Any, dict[str, Any]]]:
    async def run() -> dict[str, Any]:
        return await job(locks, notifier)

    run.__name__ = job.__name__
    return run


def register_lifecycle_jobs(locks: KeyedLock, notifier: Notifier) -> None:
    """
    Register lifecycle jobs with the scheduler.

    Call during startup, before the scheduler starts.
    """
    register_job(
        job_id=JOB_ID_PURGE_TOKENS,
        func=_bind(purge_expired_tokens, locks, notifier),
        trigger=IntervalTrigger(hours=1),
    )
    register_job(
        job_id=JOB_ID_RECONCILE,
        func=_bind(reconcile_accounts, locks, notifier),
        trigger=IntervalTrigger(minutes=15),
    )
    logger.info("Lifecycle background jobs registered")
