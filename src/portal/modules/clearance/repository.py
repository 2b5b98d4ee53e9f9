"""
Clearance Repository

Database operations for per-department clearance items.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ClearanceItem, ClearanceStatus


class ClearanceRepository:
    """Repository for clearance item database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_student(self, student_id: UUID) -> list[ClearanceItem]:
        result = await self.db.execute(
            select(ClearanceItem)
            .where(ClearanceItem.student_id == student_id)
            .order_by(ClearanceItem.department)
        )
        return list(result.scalars().all())

    async def create(self, student_id: UUID, department: str) -> ClearanceItem:
        item = ClearanceItem(
            student_id=student_id,
            department=department,
            status=ClearanceStatus.PENDING,
        )

        self.db.add(item)
        await self.db.commit()
        await self.db.refresh(item)

        return item

    async def get_by_id(self, item_id: UUID) -> ClearanceItem | None:
        return await self.db.get(ClearanceItem, item_id, populate_existing=True)

    async def update(
        self,
        item_id: UUID,
        *,
        status: ClearanceStatus,
        remarks: str | None,
        reviewed_by: UUID | None,
        reviewed_at: datetime,
    ) -> ClearanceItem | None:
        result = await self.db.execute(
            update(ClearanceItem)
            .where(ClearanceItem.id == item_id)
            .values(
                status=status,
                remarks=remarks,
                reviewed_by=reviewed_by,
                reviewed_at=reviewed_at,
            )
            .returning(ClearanceItem)
        )
        item = result.scalar_one_or_none()
        await self.db.commit()
        return item
