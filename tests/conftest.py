"""
Shared fixtures.

The engine runs on the in-memory repositories from ``tests.fakes`` with a
settable clock, so token expiry and ordering are deterministic.
"""

from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from portal.api import api_router
from portal.core import rate_limit
from portal.core.config import Settings
from portal.core.database import get_db
from portal.core.locks import KeyedLock
from portal.modules.accounts.models import AccountRole, AccountStatus
from portal.modules.lifecycle.dependencies import get_lifecycle
from portal.modules.tokens.issuer import TokenIssuer
from tests.fakes import FakeClock, FakeNotifier, FakeStorage, make_lifecycle


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        verify_email_token_ttl_minutes=24 * 60,
        reset_password_token_ttl_minutes=30,
        require_clearance_for_withdrawal=True,
        clearance_departments=["Property", "Clinic", "Adviser", "Library"],
    )


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def storage(clock):
    return FakeStorage(clock)


@pytest.fixture
def issuer(storage, locks, notifier, test_settings, clock):
    return TokenIssuer(storage.tokens, locks, notifier, test_settings, clock=clock)


@pytest.fixture
def lifecycle(storage, locks, notifier, test_settings):
    return make_lifecycle(storage, locks, notifier, test_settings)


@pytest.fixture
def make_account(storage):
    """Factory for accounts already in a given lifecycle status."""

    async def _make(
        status: AccountStatus | None = AccountStatus.ACTIVE_STUDENT,
        *,
        email: str | None = None,
        role: AccountRole | None = None,
        email_verified: bool | None = None,
    ):
        if role is None:
            role = AccountRole.STUDENT if status is not None else AccountRole.REGISTRAR
        if email_verified is None:
            email_verified = status not in (None, AccountStatus.APPLICANT)
        return await storage.accounts.create(
            email=email or f"learner{len(storage.accounts.rows) + 1}@stonino.edu.ph",
            password_hash="not-a-real-hash",
            full_name="Juan dela Cruz",
            role=role,
            status=status,
            email_verified=email_verified,
        )

    return _make


@pytest.fixture(autouse=True)
def clear_rate_limits():
    rate_limit.reset_memory_store()
    yield
    rate_limit.reset_memory_store()


@pytest.fixture
def api_app(lifecycle, storage):
    """The API routers with the engine and database swapped for in-memory ones."""
    app = FastAPI()
    app.include_router(api_router, prefix="/api/v1")

    async def _no_db():
        yield None

    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    app.dependency_overrides[get_db] = _no_db
    return app


@pytest_asyncio.fixture
async def client(api_app, storage):
    transport = httpx.ASGITransport(app=api_app)
    with patch("portal.modules.auth.router.AccountRepository", return_value=storage.accounts):
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
