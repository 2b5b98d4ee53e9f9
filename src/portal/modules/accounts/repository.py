"""
Account Repository

Database operations for portal accounts. Every write commits its own row.
Status changes are compare-and-set on the expected prior status, so a
concurrent writer that already moved the account makes the update a no-op
instead of silently overwriting it.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Account, AccountRole, AccountStatus

logger = logging.getLogger(__name__)


class AccountRepository:
    """Repository for account database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        full_name: str,
        role: AccountRole,
        status: AccountStatus | None = None,
        email_verified: bool = False,
    ) -> Account:
        """
        Create and commit a new account.

        Raises:
            sqlalchemy.exc.IntegrityError: If the email is already registered
        """
        account = Account(
            email=email.strip().lower(),
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            status=status,
            email_verified=email_verified,
        )

        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise
        await self.db.refresh(account)

        logger.info(f"Created account: {account.id} ({account.role.value})")
        return account

    async def get_by_id(self, account_id: UUID) -> Account | None:
        return await self.db.get(Account, account_id, populate_existing=True)

    async def get_by_email(self, email: str) -> Account | None:
        result = await self.db.execute(
            select(Account).where(Account.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def transition_status(
        self,
        account_id: UUID,
        from_status: AccountStatus,
        to_status: AccountStatus,
        **fields: Any,
    ) -> Account | None:
        """
        Move an account from ``from_status`` to ``to_status``.

        Additional column values (e.g. ``email_verified``) are written in the
        same statement.

        Returns:
            The updated account, or None if the account was not in
            ``from_status`` when the statement ran
        """
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id, Account.status == from_status)
            .values(status=to_status, **fields)
            .returning(Account)
        )
        account = result.scalar_one_or_none()
        await self.db.commit()

        if account is not None:
            logger.info(
                f"Account {account_id} status: {from_status.value} -> {to_status.value}"
            )
        return account

    async def update_password(self, account_id: UUID, password_hash: str) -> Account | None:
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(password_hash=password_hash)
            .returning(Account)
        )
        account = result.scalar_one_or_none()
        await self.db.commit()
        return account

    async def list_by_status(self, status: AccountStatus) -> list[Account]:
        result = await self.db.execute(
            select(Account).where(Account.status == status).order_by(Account.created_at)
        )
        return list(result.scalars().all())
