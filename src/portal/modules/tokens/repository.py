"""
Security Token Repository

Storage for token hashes. Consumption is a conditional single-row update on
``consumed_at IS NULL`` so a token can only ever be consumed once.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SecurityToken, TokenPurpose


class TokenRepository:
    """Repository for security token database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        account_id: UUID,
        token_hash: str,
        purpose: TokenPurpose,
        expires_at: datetime,
    ) -> SecurityToken:
        token = SecurityToken(
            account_id=account_id,
            token_hash=token_hash,
            purpose=purpose,
            expires_at=expires_at,
        )

        self.db.add(token)
        await self.db.commit()
        await self.db.refresh(token)

        return token

    async def get_by_hash(self, token_hash: str) -> SecurityToken | None:
        result = await self.db.execute(
            select(SecurityToken)
            .where(SecurityToken.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def delete_outstanding(self, account_id: UUID, purpose: TokenPurpose) -> int:
        """Delete unconsumed tokens of an (account, purpose) pair."""
        result = await self.db.execute(
            delete(SecurityToken).where(
                SecurityToken.account_id == account_id,
                SecurityToken.purpose == purpose,
                SecurityToken.consumed_at.is_(None),
            )
        )
        await self.db.commit()
        return result.rowcount

    async def mark_consumed(self, token_id: UUID, consumed_at: datetime) -> bool:
        """
        Stamp ``consumed_at`` if the token is still unconsumed.

        Returns:
            True if this call consumed the token, False if it was already used
        """
        result = await self.db.execute(
            update(SecurityToken)
            .where(SecurityToken.id == token_id, SecurityToken.consumed_at.is_(None))
            .values(consumed_at=consumed_at)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def delete_expired(self, before: datetime) -> int:
        """Delete tokens that expired before the given time, consumed or not."""
        result = await self.db.execute(
            delete(SecurityToken).where(SecurityToken.expires_at < before)
        )
        await self.db.commit()
        return result.rowcount
