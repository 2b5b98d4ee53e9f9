"""
Account Models

The portal identity. Learner accounts carry a lifecycle status; staff
accounts (admin, registrar, faculty, teacher) carry none.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.core.database import Base


class AccountRole(str, enum.Enum):
    """Roles in the portal."""

    ADMIN = "admin"
    REGISTRAR = "registrar"
    FACULTY = "faculty"
    TEACHER = "teacher"
    STUDENT = "student"
    TRANSFEREE = "transferee"


class AccountStatus(str, enum.Enum):
    """Where a learner is in the enrollment lifecycle."""

    APPLICANT = "applicant"
    VERIFIED_APPLICANT = "verified_applicant"
    ACTIVE_STUDENT = "active_student"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    DROPPED = "dropped"


class Account(Base):
    """
    Portal account.

    Rows are never deleted. A dropped learner keeps their account for audit.
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Stored lower-cased
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[AccountRole] = mapped_column(
        Enum(AccountRole, name="account_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    status: Mapped[AccountStatus | None] = mapped_column(
        Enum(AccountStatus, name="account_status", values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )

    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("ix_accounts_status", "status"),)

    def __repr__(self) -> str:
        status = self.status.value if self.status else None
        return f"<Account(id={self.id}, email={self.email}, role={self.role.value}, status={status})>"

    @property
    def is_learner(self) -> bool:
        return self.role in (AccountRole.STUDENT, AccountRole.TRANSFEREE)
