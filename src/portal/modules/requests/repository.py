"""
Student Request Repository

One repository class serves every request table; it is bound to a session
and a model at construction.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DocumentRequest, DropoutRequest, RequestStatus

RequestModel = DropoutRequest | DocumentRequest


class RequestRepository:
    """Repository for a student request table."""

    def __init__(self, db: AsyncSession, model: type[RequestModel]):
        self.db = db
        self.model = model

    async def create(self, subject_id: UUID, **payload: Any) -> RequestModel:
        """
        Insert and commit a pending request.

        Raises:
            IntegrityError: If a uniqueness rule (e.g. one pending withdrawal
                per student) rejects the row. The session is rolled back first.
        """
        request = self.model(subject_id=subject_id, status=RequestStatus.PENDING, **payload)

        self.db.add(request)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise
        await self.db.refresh(request)

        return request

    async def get_by_id(self, request_id: UUID) -> RequestModel | None:
        return await self.db.get(self.model, request_id, populate_existing=True)

    async def get_pending_for_subject(self, subject_id: UUID) -> RequestModel | None:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.subject_id == subject_id, self.model.status == RequestStatus.PENDING)
            .order_by(self.model.submitted_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_latest_resolved_for_subject(self, subject_id: UUID) -> RequestModel | None:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.subject_id == subject_id, self.model.status != RequestStatus.PENDING)
            .order_by(self.model.resolved_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def resolve(
        self,
        request_id: UUID,
        *,
        status: RequestStatus,
        reviewer_note: str | None,
        reviewed_by: UUID | None,
        resolved_at: datetime,
    ) -> RequestModel | None:
        """
        Resolve a request if it is still pending.

        Returns:
            The resolved request, or None if it was no longer pending
        """
        result = await self.db.execute(
            update(self.model)
            .where(self.model.id == request_id, self.model.status == RequestStatus.PENDING)
            .values(
                status=status,
                reviewer_note=reviewer_note,
                reviewed_by=reviewed_by,
                resolved_at=resolved_at,
            )
            .returning(self.model)
        )
        request = result.scalar_one_or_none()
        await self.db.commit()
        return request

    async def list_for_subject(self, subject_id: UUID) -> list[RequestModel]:
        """A subject's requests, newest first."""
        result = await self.db.execute(
            select(self.model)
            .where(self.model.subject_id == subject_id)
            .order_by(self.model.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: RequestStatus) -> list[RequestModel]:
        """Requests in a status, oldest first."""
        result = await self.db.execute(
            select(self.model)
            .where(self.model.status == status)
            .order_by(self.model.submitted_at)
        )
        return list(result.scalars().all())
