"""
Student Request Models

Withdrawal (dropout) and document requests share one shape: a subject, a
payload and a ``pending -> outcome`` status. Resolved rows are kept as
history and never change again.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.core.database import Base


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    READY = "ready"
    DENIED = "denied"


class DocumentType(str, enum.Enum):
    GOOD_MORAL = "Good Moral"
    CERTIFICATE_OF_ENROLLMENT = "Certificate of Enrollment"
    FORM_137 = "Form 137"
    DIPLOMA_REPLACEMENT = "Diploma Replacement"


class StudentRequestMixin:
    """Columns common to every student request table."""

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    subject_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[RequestStatus] = mapped_column(
        Enum(
            RequestStatus,
            name="request_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    reviewer_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class DropoutRequest(StudentRequestMixin, Base):
    """A student's request to withdraw from the school."""

    __tablename__ = "dropout_requests"

    reason: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        # At most one pending withdrawal per student
        Index(
            "uq_dropout_requests_one_pending",
            "subject_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<DropoutRequest(id={self.id}, subject_id={self.subject_id}, status={self.status.value})>"


class DocumentRequest(StudentRequestMixin, Base):
    """A student's request for a school document."""

    __tablename__ = "document_requests"

    document_type: Mapped[DocumentType] = mapped_column(
        Enum(
            DocumentType,
            name="document_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(String(500), nullable=False)

    def __repr__(self) -> str:
        return f"<DocumentRequest(id={self.id}, type={self.document_type.value}, status={self.status.value})>"
