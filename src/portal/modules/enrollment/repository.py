"""
Enrollment Application Repository
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ApplicationStatus, EnrollmentApplication


class EnrollmentRepository:
    """Repository for enrollment application database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        account_id: UUID,
        full_name: str,
        email: str,
        target_grade: str,
        previous_school: str | None = None,
        psa_number: str | None = None,
        document_ref: str | None = None,
    ) -> EnrollmentApplication:
        application = EnrollmentApplication(
            account_id=account_id,
            full_name=full_name,
            email=email,
            target_grade=target_grade,
            previous_school=previous_school,
            psa_number=psa_number,
            document_ref=document_ref,
            status=ApplicationStatus.PENDING,
        )

        self.db.add(application)
        await self.db.commit()
        await self.db.refresh(application)

        return application

    async def get_by_id(self, application_id: UUID) -> EnrollmentApplication | None:
        return await self.db.get(EnrollmentApplication, application_id, populate_existing=True)

    async def get_by_account(self, account_id: UUID) -> EnrollmentApplication | None:
        result = await self.db.execute(
            select(EnrollmentApplication).where(EnrollmentApplication.account_id == account_id)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self,
        application_id: UUID,
        *,
        from_status: ApplicationStatus,
        to_status: ApplicationStatus,
        reviewed_by: UUID | None,
        reviewed_at: datetime,
        decision_reason: str | None = None,
    ) -> EnrollmentApplication | None:
        """
        Decide an application if it is still in ``from_status``.

        Returns:
            The updated application, or None if another reviewer got there first
        """
        result = await self.db.execute(
            update(EnrollmentApplication)
            .where(
                EnrollmentApplication.id == application_id,
                EnrollmentApplication.status == from_status,
            )
            .values(
                status=to_status,
                reviewed_by=reviewed_by,
                reviewed_at=reviewed_at,
                decision_reason=decision_reason,
            )
            .returning(EnrollmentApplication)
        )
        application = result.scalar_one_or_none()
        await self.db.commit()
        return application

    async def list_applications(
        self, status: ApplicationStatus | None = None
    ) -> list[EnrollmentApplication]:
        stmt = select(EnrollmentApplication).order_by(EnrollmentApplication.submitted_at)
        if status is not None:
            stmt = stmt.where(EnrollmentApplication.status == status)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
