"""
Security Token Models

Single-use tokens for email verification and password recovery. Only the
SHA-256 hash of a token is stored.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.core.database import Base


class TokenPurpose(str, enum.Enum):
    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


class SecurityToken(Base):
    """
    A token issued to an account for one purpose.

    At most one unconsumed token exists per (account, purpose); issuing a
    new one deletes the previous ones.
    """

    __tablename__ = "security_tokens"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    # SHA-256 hex digest of the token value
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    purpose: Mapped[TokenPurpose] = mapped_column(
        Enum(TokenPurpose, name="token_purpose", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_security_tokens_account_purpose", "account_id", "purpose"),
        Index("ix_security_tokens_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<SecurityToken(id={self.id}, account_id={self.account_id}, purpose={self.purpose.value})>"
