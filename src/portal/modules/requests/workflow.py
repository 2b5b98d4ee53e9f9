"""
Request Workflow

A generic ``pending -> outcome`` machine shared by student requests. Each use
site configures the outcomes it allows and whether a subject may have more
than one pending request at a time.

    withdrawal: pending -> approved | denied   (one pending per student)
    document:   pending -> ready | denied      (any number pending)

Resolution is a conditional update on ``status = pending``; of two
reviewers resolving the same request, exactly one wins and the other gets
AlreadyResolvedError.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from portal.core.errors import (
    AlreadyResolvedError,
    DuplicatePendingRequestError,
    IllegalTransitionError,
    NotFoundError,
)
from portal.core.locks import KeyedLock

from .models import DocumentRequest, DropoutRequest, RequestStatus
from .repository import RequestModel, RequestRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowConfig:
    name: str
    model: type[RequestModel]
    outcomes: frozenset[RequestStatus]
    allow_concurrent_pending: bool


WITHDRAWAL_WORKFLOW = WorkflowConfig(
    name="withdrawal",
    model=DropoutRequest,
    outcomes=frozenset({RequestStatus.APPROVED, RequestStatus.DENIED}),
    allow_concurrent_pending=False,
)

DOCUMENT_WORKFLOW = WorkflowConfig(
    name="document",
    model=DocumentRequest,
    outcomes=frozenset({RequestStatus.READY, RequestStatus.DENIED}),
    allow_concurrent_pending=True,
)


class RequestWorkflow:
    def __init__(
        self,
        config: WorkflowConfig,
        repository: RequestRepository,
        locks: KeyedLock,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.config = config
        self.repository = repository
        self.locks = locks
        self.clock = clock

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def entity(self) -> str:
        return f"{self.config.name} request"

    def _subject_key(self, subject_id: UUID) -> str:
        return f"{self.config.name}:{subject_id}"

    async def submit(self, subject_id: UUID, **payload: Any) -> RequestModel:
        """
        File a new pending request for ``subject_id``.

        Raises:
            DuplicatePendingRequestError: If the workflow allows one pending
                request per subject and one already exists
        """
        async with self.locks.hold(self._subject_key(subject_id)):
            if not self.config.allow_concurrent_pending:
                existing = await self.repository.get_pending_for_subject(subject_id)
                if existing is not None:
                    raise DuplicatePendingRequestError(self.config.name, subject_id)

            try:
                request = await self.repository.create(subject_id, **payload)
            except IntegrityError as e:
                # The partial unique index caught a pending row the check missed
                raise DuplicatePendingRequestError(self.config.name, subject_id) from e

        logger.info(f"Submitted {self.entity} {request.id} for {subject_id}")
        return request

    async def get_pending(self, request_id: UUID) -> RequestModel:
        """
        Fetch a request that is still awaiting a decision.

        Raises:
            NotFoundError, AlreadyResolvedError
        """
        request = await self.repository.get_by_id(request_id)
        if request is None:
            raise NotFoundError(self.entity, request_id)
        if request.status != RequestStatus.PENDING:
            raise AlreadyResolvedError(self.entity, request_id, request.status)
        return request

    async def resolve(
        self,
        request_id: UUID,
        outcome: RequestStatus,
        reviewer_note: str | None = None,
        reviewed_by: UUID | None = None,
    ) -> RequestModel:
        """
        Resolve a pending request with one of the workflow's outcomes.

        Raises:
            NotFoundError, AlreadyResolvedError, IllegalTransitionError
        """
        request = await self.get_pending(request_id)

        if outcome not in self.config.outcomes:
            raise IllegalTransitionError(self.entity, request_id, request.status, outcome)

        resolved = await self.repository.resolve(
            request_id,
            status=outcome,
            reviewer_note=reviewer_note,
            reviewed_by=reviewed_by,
            resolved_at=self.clock(),
        )
        if resolved is None:
            current = await self.repository.get_by_id(request_id)
            raise AlreadyResolvedError(self.entity, request_id, current.status)

        logger.info(f"Resolved {self.entity} {request_id} as {outcome.value}")
        return resolved

    async def list_for_subject(self, subject_id: UUID) -> list[RequestModel]:
        return await self.repository.list_for_subject(subject_id)

    async def list_pending(self) -> list[RequestModel]:
        return await self.repository.list_by_status(RequestStatus.PENDING)
