"""
Clearance Models

One row per (student, department). A student is cleared only when every
department has cleared them.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.core.database import Base


class ClearanceStatus(str, enum.Enum):
    PENDING = "pending"
    CLEARED = "cleared"
    BLOCKED = "blocked"


class ClearanceItem(Base):
    __tablename__ = "clearance_items"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    department: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[ClearanceStatus] = mapped_column(
        Enum(
            ClearanceStatus,
            name="clearance_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ClearanceStatus.PENDING,
    )
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("student_id", "department", name="uq_clearance_items_student_department"),
    )

    def __repr__(self) -> str:
        return f"<ClearanceItem(student_id={self.student_id}, department={self.department}, status={self.status.value})>"
