"""
Lifecycle engine wiring.

Builds a LifecycleStateMachine around one database session. The key lock
registry and the notifier are process-wide and live on ``app.state``; they
are created in the application lifespan.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import Settings, settings
from portal.core.database import get_db
from portal.core.locks import KeyedLock
from portal.core.notifications import Notifier
from portal.modules.accounts.repository import AccountRepository
from portal.modules.activity.repository import ActivityRepository
from portal.modules.clearance.repository import ClearanceRepository
from portal.modules.enrollment.repository import EnrollmentRepository
from portal.modules.requests.repository import RequestRepository
from portal.modules.requests.workflow import (
    DOCUMENT_WORKFLOW,
    WITHDRAWAL_WORKFLOW,
    RequestWorkflow,
)
from portal.modules.tokens.issuer import TokenIssuer
from portal.modules.tokens.repository import TokenRepository

from .service import LifecycleStateMachine


def build_lifecycle(
    db: AsyncSession,
    locks: KeyedLock,
    notifier: Notifier,
    config: Settings = settings,
) -> LifecycleStateMachine:
    return LifecycleStateMachine(
        accounts=AccountRepository(db),
        enrollment=EnrollmentRepository(db),
        clearance=ClearanceRepository(db),
        withdrawals=RequestWorkflow(
            WITHDRAWAL_WORKFLOW, RequestRepository(db, WITHDRAWAL_WORKFLOW.model), locks
        ),
        documents=RequestWorkflow(
            DOCUMENT_WORKFLOW, RequestRepository(db, DOCUMENT_WORKFLOW.model), locks
        ),
        tokens=TokenIssuer(TokenRepository(db), locks, notifier, config),
        activity=ActivityRepository(db),
        locks=locks,
        notifier=notifier,
        settings=config,
    )


async def get_lifecycle(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> LifecycleStateMachine:
    """FastAPI dependency returning the engine for this request."""
    return build_lifecycle(db, request.app.state.locks, request.app.state.notifier)
