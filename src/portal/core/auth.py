"""
Authentication and Authorization Module

FastAPI dependencies that validate the JWT access token and enforce
role-based access on portal endpoints.
"""

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portal.core.security import decode_token

logger = logging.getLogger(__name__)

security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)

# Roles allowed to review applications, requests and clearance
STAFF_ROLES = ("admin", "registrar", "faculty", "teacher")


@dataclass
class CurrentAccount:
    """
    The authenticated caller, populated from JWT claims.

    Attributes:
        id: Account id
        email: Account email
        role: Account role at the time the token was issued
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: str
    name: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __str__(self) -> str:
        return f"CurrentAccount(id={self.id}, email={self.email}, role={self.role})"


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _validate_jwt_token(token: str) -> CurrentAccount:
    """
    Validate a JWT access token and extract the caller's claims.

    Raises:
        HTTPException 401: If the token is invalid, expired, of the wrong
            type or missing claims
    """
    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    token_type = payload.get("type", "access")
    if token_type != "access":
        logger.warning(f"Invalid token type: {token_type}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        return CurrentAccount(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            name=payload.get("name"),
        )
    except ValueError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_account(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentAccount:
    """
    FastAPI dependency returning the authenticated caller.

    The account id is also stored on ``request.state`` so per-account rate
    limit keys can be derived from it.
    """
    account = _validate_jwt_token(credentials.credentials)
    request.state.account_id = account.id
    logger.debug(f"Authenticated account: {account.id} ({account.role})")
    return account


def require_roles(*roles: str) -> Callable[..., Coroutine[Any, Any, CurrentAccount]]:
    """
    Build a dependency that only admits callers holding one of ``roles``.

    Usage:
        @router.post("/admin/thing")
        async def thing(staff: CurrentAccount = Depends(require_roles(*STAFF_ROLES))):
            ...
    """

    async def dependency(
        account: CurrentAccount = Depends(get_current_account),
    ) -> CurrentAccount:
        if account.role not in roles:
            logger.warning(
                f"Access denied: account {account.id} has role '{account.role}', "
                f"one of {roles} is required"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "INSUFFICIENT_ROLE",
                    "message": "You do not have access to this endpoint.",
                },
            )
        return account

    return dependency


require_staff = require_roles(*STAFF_ROLES)
require_student = require_roles("student")


__all__ = [
    "CurrentAccount",
    "STAFF_ROLES",
    "get_current_account",
    "require_roles",
    "require_staff",
    "require_student",
]
