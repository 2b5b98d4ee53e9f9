"""
Background email delivery.

The engine hands messages to a Notifier and moves on. Each delivery runs as
its own asyncio task owned by the notifier, so a slow or failing email
provider never delays a status change. ``drain()`` waits for outstanding
deliveries on shutdown.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from portal.core import email

logger = logging.getLogger(__name__)

_TOKEN_SENDERS: dict[str, Callable[[str, str], Awaitable[bool]]] = {
    "verify_email": email.send_email_verification,
    "reset_password": email.send_password_reset,
}

_NOTICE_SENDERS: dict[str, Callable[..., Awaitable[bool]]] = {
    "application_approved": email.send_application_approved,
    "application_rejected": email.send_application_rejected,
    "request_decision": email.send_request_decision,
}


class Notifier:
    """Fire-and-forget email dispatch."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def send(self, account_email: str, token_kind: Enum, token_value: str) -> None:
        """Queue delivery of a security token link."""
        sender = _TOKEN_SENDERS.get(token_kind.value)
        if sender is None:
            raise ValueError(f"No email template for token kind '{token_kind.value}'")
        self._spawn(sender(account_email, token_value), f"{token_kind.value} to {account_email}")

    def notice(self, account_email: str, template: str, **context: Any) -> None:
        """Queue delivery of a decision notice."""
        sender = _NOTICE_SENDERS.get(template)
        if sender is None:
            raise ValueError(f"No email template named '{template}'")
        self._spawn(sender(account_email, **context), f"{template} to {account_email}")

    def _spawn(self, coro: Awaitable[bool], label: str) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finish(t, label))

    def _finish(self, task: asyncio.Task, label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Email delivery cancelled: {label}")
        elif task.exception() is not None:
            logger.error(f"Email delivery failed: {label}: {task.exception()}")
        elif task.result() is False:
            logger.warning(f"Email provider rejected delivery: {label}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for all queued deliveries to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
