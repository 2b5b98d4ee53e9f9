"""
Token Issuer

Issues, validates and consumes single-use security tokens.

Security considerations:
- Values come from secrets.token_urlsafe (256 bits of entropy)
- Only the SHA-256 hash is stored; a database leak does not expose tokens
- Issuing a token deletes the previous unconsumed tokens of the same
  (account, purpose), so only the newest link works
- Issue and consume for one (account, purpose) run under the same key lock
- Token values are never logged
"""

import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from portal.core.config import Settings
from portal.core.errors import (
    PurposeMismatchError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenNotFoundError,
)
from portal.core.locks import KeyedLock, token_key
from portal.core.notifications import Notifier

from .models import SecurityToken, TokenPurpose
from .repository import TokenRepository

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 32  # bytes, 256 bits


def _hash_token(token: str) -> str:
    """Hex-encoded SHA-256 of a token value."""
    return hashlib.sha256(token.encode()).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class IssuedToken:
    account_id: UUID
    purpose: TokenPurpose
    value: str
    expires_at: datetime


class TokenIssuer:
    """Issues and redeems verification and password-reset tokens."""

    def __init__(
        self,
        repository: TokenRepository,
        locks: KeyedLock,
        notifier: Notifier,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.locks = locks
        self.notifier = notifier
        self.clock = clock
        self.ttl = {
            TokenPurpose.VERIFY_EMAIL: timedelta(minutes=settings.verify_email_token_ttl_minutes),
            TokenPurpose.RESET_PASSWORD: timedelta(
                minutes=settings.reset_password_token_ttl_minutes
            ),
        }

    async def issue(
        self,
        account_id: UUID,
        purpose: TokenPurpose,
        *,
        recipient: str | None = None,
    ) -> IssuedToken:
        """
        Issue a fresh token, invalidating earlier unconsumed ones.

        When ``recipient`` is given the link is handed to the notifier for
        background delivery; this call does not wait for it.
        """
        value = secrets.token_urlsafe(TOKEN_LENGTH)
        expires_at = self.clock() + self.ttl[purpose]

        async with self.locks.hold(token_key(account_id, purpose.value)):
            removed = await self.repository.delete_outstanding(account_id, purpose)
            await self.repository.create(account_id, _hash_token(value), purpose, expires_at)

        if removed:
            logger.info(f"Invalidated {removed} earlier {purpose.value} token(s) for {account_id}")
        logger.info(f"Issued {purpose.value} token for account {account_id}")

        if recipient is not None:
            self.notifier.send(recipient, purpose, value)

        return IssuedToken(
            account_id=account_id,
            purpose=purpose,
            value=value,
            expires_at=expires_at,
        )

    async def _lookup(self, token: str) -> SecurityToken:
        record = await self.repository.get_by_hash(_hash_token(token))
        if record is None:
            raise TokenNotFoundError()
        return record

    async def validate(self, token: str, purpose: TokenPurpose) -> UUID:
        """
        Check that a token is usable for ``purpose`` without consuming it.

        Returns:
            The id of the account the token belongs to

        Raises:
            TokenNotFoundError, PurposeMismatchError, TokenAlreadyUsedError,
            TokenExpiredError (checked in that order)
        """
        record = await self._lookup(token)

        if record.purpose != purpose:
            raise PurposeMismatchError(expected=purpose, actual=record.purpose)
        if record.consumed_at is not None:
            raise TokenAlreadyUsedError()
        if record.expires_at <= self.clock():
            raise TokenExpiredError()

        return record.account_id

    async def consume(self, token: str) -> None:
        """
        Mark a token as used. Only the first call succeeds.

        Raises:
            TokenNotFoundError, TokenAlreadyUsedError, TokenExpiredError
        """
        record = await self._lookup(token)

        async with self.locks.hold(token_key(record.account_id, record.purpose.value)):
            if record.consumed_at is not None:
                raise TokenAlreadyUsedError()
            now = self.clock()
            if record.expires_at <= now:
                raise TokenExpiredError()
            if not await self.repository.mark_consumed(record.id, now):
                raise TokenAlreadyUsedError()

        logger.info(f"Consumed {record.purpose.value} token for account {record.account_id}")

    async def purge_expired(self, retention: timedelta) -> int:
        """Delete tokens whose expiry passed more than ``retention`` ago."""
        return await self.repository.delete_expired(self.clock() - retention)
