"""
Keyed Locks

Per-key asyncio mutual exclusion for the single writer process. Operations
that mutate the same account status, token pair or request subject hold the
same key, so two in-flight requests can never both observe and act on the
same prior state.

Usage:
    locks = KeyedLock()

    async with locks.hold(account_key(account_id)):
        ...
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLock:
    """A registry of asyncio locks created on demand and dropped when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        # Lookup and refcount happen without an await in between
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


def account_key(account_id: object) -> str:
    return f"account:{account_id}"


def token_key(account_id: object, purpose: str) -> str:
    return f"token:{account_id}:{purpose}"


__all__ = ["KeyedLock", "account_key", "token_key"]
