"""
Authentication router.

Login plus the public token endpoints reached from emailed links:

- POST /auth/login
- POST /auth/verify-email
- POST /auth/resend-verification   (rate limited)
- POST /auth/forgot-password       (rate limited)
- POST /auth/reset-password/validate
- POST /auth/reset-password

forgot-password and resend-verification answer the same way whether or not
the email is registered.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import settings
from portal.core.database import get_db
from portal.core.errors import PortalServiceError, to_http_exception
from portal.core.rate_limit import client_ip, enforce_rate_limit
from portal.core.security import create_access_token, create_refresh_token, verify_password
from portal.modules.accounts.models import AccountStatus
from portal.modules.accounts.repository import AccountRepository
from portal.modules.auth.schemas import (
    AccountResponse,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
    TokenRequest,
    ValidateResetResponse,
    VerifyEmailResponse,
)
from portal.modules.lifecycle.dependencies import get_lifecycle
from portal.modules.lifecycle.service import LifecycleStateMachine

logger = logging.getLogger(__name__)

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = (
    "If an account exists for that email, a password reset link has been sent."
)
RESEND_VERIFICATION_MESSAGE = (
    "If that email belongs to an unverified application, a new verification link has been sent."
)


def _handle_service_error(e: PortalServiceError) -> None:
    raise to_http_exception(e) from e


def _invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "INVALID_CREDENTIALS",
            "message": "Invalid email or password.",
        },
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate and return JWT tokens.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account has been dropped
    """
    account = await AccountRepository(db).get_by_email(credentials.email)

    if not account or not verify_password(credentials.password, account.password_hash):
        logger.warning("Failed login attempt")
        raise _invalid_credentials()

    if account.status == AccountStatus.DROPPED:
        logger.warning(f"Login attempt for dropped account: {account.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ACCOUNT_DROPPED",
                "message": "This account has been withdrawn from the school.",
            },
        )

    access_token = create_access_token(
        subject=str(account.id),
        additional_claims={
            "email": account.email,
            "role": account.role.value,
            "name": account.full_name,
        },
    )
    refresh_token = create_refresh_token(subject=str(account.id))

    logger.info(f"Account logged in: {account.id} (role: {account.role.value})")

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        account=AccountResponse.model_validate(account),
    )


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    data: TokenRequest,
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> VerifyEmailResponse:
    """
    Redeem an email verification link.

    Raises:
        HTTPException 400: Unknown, expired or wrong-purpose token
        HTTPException 409: Token already used, or account already verified
    """
    try:
        account = await lifecycle.complete_email_verification(data.token)
    except PortalServiceError as e:
        _handle_service_error(e)

    return VerifyEmailResponse(status=account.status)


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    data: EmailRequest,
    request: Request,
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> MessageResponse:
    await enforce_rate_limit(
        f"resend_verification:{client_ip(request)}",
        settings.resend_verification_rate_limit,
        settings.resend_verification_rate_window_seconds,
    )

    await lifecycle.resend_verification(data.email)
    return MessageResponse(message=RESEND_VERIFICATION_MESSAGE)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: EmailRequest,
    request: Request,
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> MessageResponse:
    """
    Start password recovery.

    The response is identical for registered and unregistered emails.
    """
    await enforce_rate_limit(
        f"forgot_password:{client_ip(request)}",
        settings.forgot_password_rate_limit,
        settings.forgot_password_rate_window_seconds,
    )

    await lifecycle.request_password_reset(data.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password/validate", response_model=ValidateResetResponse)
async def validate_reset_token(
    data: TokenRequest,
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> ValidateResetResponse:
    try:
        await lifecycle.validate_password_reset(data.token)
    except PortalServiceError as e:
        _handle_service_error(e)

    return ValidateResetResponse()


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> MessageResponse:
    try:
        await lifecycle.complete_password_reset(data.token, data.new_password)
    except PortalServiceError as e:
        _handle_service_error(e)

    return MessageResponse(message="Your password has been reset. You can now sign in.")
