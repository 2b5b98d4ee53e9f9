"""
HTTP tests for the authentication router.

Covers login, the emailed-link endpoints and their error mapping, and the
rate limits on the endpoints that send email.
"""

import pytest

from portal.core.config import settings
from portal.core.security import hash_password
from portal.modules.accounts.models import AccountRole, AccountStatus
from portal.modules.auth.router import FORGOT_PASSWORD_MESSAGE, RESEND_VERIFICATION_MESSAGE
from portal.modules.tokens.models import TokenPurpose

AUTH = "/api/v1/auth"


@pytest.fixture
def student_with_password(storage):
    async def _make(status=AccountStatus.ACTIVE_STUDENT, password="correct-horse-battery"):
        return await storage.accounts.create(
            email="juan@stonino.edu.ph",
            password_hash=hash_password(password),
            full_name="Juan dela Cruz",
            role=AccountRole.STUDENT,
            status=status,
            email_verified=True,
        )

    return _make


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_returns_tokens(self, client, student_with_password):
        account = await student_with_password()

        response = await client.post(
            f"{AUTH}/login",
            json={"email": "juan@stonino.edu.ph", "password": "correct-horse-battery"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"]
        assert body["account"]["id"] == str(account.id)
        assert body["account"]["status"] == "active_student"

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(
        self, client, student_with_password
    ):
        await student_with_password()

        wrong = await client.post(
            f"{AUTH}/login", json={"email": "juan@stonino.edu.ph", "password": "nope-nope"}
        )
        unknown = await client.post(
            f"{AUTH}/login", json={"email": "ghost@stonino.edu.ph", "password": "nope-nope"}
        )

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["detail"]["error"] == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_dropped_account_cannot_log_in(self, client, student_with_password):
        await student_with_password(AccountStatus.DROPPED)

        response = await client.post(
            f"{AUTH}/login",
            json={"email": "juan@stonino.edu.ph", "password": "correct-horse-battery"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ACCOUNT_DROPPED"


class TestVerifyEmail:
    @pytest.mark.asyncio
    async def test_verify_then_replay(self, client, lifecycle, notifier, make_account):
        account = await make_account(AccountStatus.APPLICANT)
        await lifecycle.tokens.issue(account.id, TokenPurpose.VERIFY_EMAIL, recipient=account.email)
        token = notifier.last_token(TokenPurpose.VERIFY_EMAIL)

        first = await client.post(f"{AUTH}/verify-email", json={"token": token})
        replay = await client.post(f"{AUTH}/verify-email", json={"token": token})

        assert first.status_code == 200
        assert first.json()["status"] == "verified_applicant"
        assert replay.status_code == 409
        assert replay.json()["detail"]["error"] == "TOKEN_ALREADY_USED"

    @pytest.mark.asyncio
    async def test_unknown_token(self, client):
        response = await client.post(f"{AUTH}/verify-email", json={"token": "made-up"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "TOKEN_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_empty_token_is_a_validation_error(self, client):
        response = await client.post(f"{AUTH}/verify-email", json={"token": ""})
        assert response.status_code == 422


class TestForgotPassword:
    @pytest.mark.asyncio
    async def test_response_does_not_reveal_registration(self, client, notifier, make_account):
        account = await make_account()

        known = await client.post(f"{AUTH}/forgot-password", json={"email": account.email})
        unknown = await client.post(f"{AUTH}/forgot-password", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json() == {"message": FORGOT_PASSWORD_MESSAGE}
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_rate_limited_per_client(self, client):
        limit = settings.forgot_password_rate_limit

        for _ in range(limit):
            ok = await client.post(f"{AUTH}/forgot-password", json={"email": "a@example.com"})
            assert ok.status_code == 200

        blocked = await client.post(f"{AUTH}/forgot-password", json={"email": "a@example.com"})

        assert blocked.status_code == 429
        assert blocked.json()["detail"]["error"] == "RATE_LIMIT_EXCEEDED"
        assert "retry-after" in blocked.headers


class TestResendVerification:
    @pytest.mark.asyncio
    async def test_uniform_response(self, client, notifier, make_account):
        applicant = await make_account(AccountStatus.APPLICANT)

        eligible = await client.post(
            f"{AUTH}/resend-verification", json={"email": applicant.email}
        )
        unknown = await client.post(
            f"{AUTH}/resend-verification", json={"email": "ghost@example.com"}
        )

        assert eligible.json() == unknown.json() == {"message": RESEND_VERIFICATION_MESSAGE}
        assert [kind for _, kind, _ in notifier.sent] == [TokenPurpose.VERIFY_EMAIL]

    @pytest.mark.asyncio
    async def test_rate_limited(self, client):
        for _ in range(settings.resend_verification_rate_limit):
            await client.post(f"{AUTH}/resend-verification", json={"email": "a@example.com"})

        blocked = await client.post(
            f"{AUTH}/resend-verification", json={"email": "a@example.com"}
        )

        assert blocked.status_code == 429


class TestResetPassword:
    @pytest.mark.asyncio
    async def test_validate_then_reset(self, client, lifecycle, notifier, make_account):
        account = await make_account()
        await lifecycle.request_password_reset(account.email)
        token = notifier.last_token(TokenPurpose.RESET_PASSWORD)

        valid = await client.post(f"{AUTH}/reset-password/validate", json={"token": token})
        reset = await client.post(
            f"{AUTH}/reset-password", json={"token": token, "new_password": "brand-new-secret"}
        )
        again = await client.post(
            f"{AUTH}/reset-password", json={"token": token, "new_password": "another-secret"}
        )

        assert valid.json() == {"valid": True}
        assert reset.status_code == 200
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_verification_token_cannot_reset(self, client, lifecycle, make_account):
        account = await make_account(AccountStatus.APPLICANT)
        issued = await lifecycle.tokens.issue(account.id, TokenPurpose.VERIFY_EMAIL)

        response = await client.post(
            f"{AUTH}/reset-password/validate", json={"token": issued.value}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "PURPOSE_MISMATCH"

    @pytest.mark.asyncio
    async def test_short_password_is_rejected(self, client):
        response = await client.post(
            f"{AUTH}/reset-password", json={"token": "anything", "new_password": "short"}
        )
        assert response.status_code == 422
