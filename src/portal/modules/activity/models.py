"""
Activity Log Models

One row per lifecycle event: who acted, whose record changed, and what
happened. Rows are append-only.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.core.database import Base


class ActivityCategory(str, enum.Enum):
    AUTH = "auth"
    ADMISSIONS = "admissions"
    CLEARANCE = "clearance"
    DOCUMENTS = "documents"


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # None when the system acted (reconciliation)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    subject_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    action: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[ActivityCategory] = mapped_column(
        Enum(
            ActivityCategory,
            name="activity_category",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_activity_logs_subject_created", "subject_id", "created_at"),
        Index("ix_activity_logs_category_created", "category", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(category={self.category.value}, action={self.action!r})>"
