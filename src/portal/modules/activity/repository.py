"""
Activity Log Repository
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ActivityCategory, ActivityLog


class ActivityRepository:
    """Append and read activity log rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        actor_id: UUID | None,
        subject_id: UUID | None,
        action: str,
        category: ActivityCategory,
        created_at: datetime,
    ) -> ActivityLog:
        entry = ActivityLog(
            actor_id=actor_id,
            subject_id=subject_id,
            action=action,
            category=category,
            created_at=created_at,
        )

        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)

        return entry

    async def list_recent(
        self,
        *,
        subject_id: UUID | None = None,
        category: ActivityCategory | None = None,
        limit: int = 100,
    ) -> list[ActivityLog]:
        """Newest first, optionally narrowed to one account or category."""
        query = select(ActivityLog)
        if subject_id is not None:
            query = query.where(ActivityLog.subject_id == subject_id)
        if category is not None:
            query = query.where(ActivityLog.category == category)

        result = await self.db.execute(
            query.order_by(ActivityLog.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
