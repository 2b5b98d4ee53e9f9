"""
Service Errors

Named failures raised by the identity and lifecycle engine. Every error
carries a machine-readable ``error_code`` and the HTTP status the API layer
should answer with. Nothing here is retried internally; retry policy belongs
to the caller.
"""

from enum import Enum

from fastapi import HTTPException


class PortalServiceError(Exception):
    """Base exception for engine errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class TokenNotFoundError(PortalServiceError):
    """Unknown token, or a token invalidated by a newer one."""

    def __init__(self):
        super().__init__(
            message="Invalid or unknown token.",
            error_code="TOKEN_NOT_FOUND",
            status_code=400,
        )


class TokenExpiredError(PortalServiceError):
    def __init__(self):
        super().__init__(
            message="This link has expired. Please request a new one.",
            error_code="TOKEN_EXPIRED",
            status_code=400,
        )


class TokenAlreadyUsedError(PortalServiceError):
    def __init__(self):
        super().__init__(
            message="This link has already been used.",
            error_code="TOKEN_ALREADY_USED",
            status_code=409,
        )


class PurposeMismatchError(PortalServiceError):
    def __init__(self, expected: Enum, actual: Enum):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=f"Token was issued for '{actual.value}', not '{expected.value}'.",
            error_code="PURPOSE_MISMATCH",
            status_code=400,
        )


class IllegalTransitionError(PortalServiceError):
    """
    Raised when a status change is not allowed from the current state.

    The message always names the attempted transition and the state the
    entity was actually in, so the violation can be audited from logs.
    """

    def __init__(
        self,
        entity: str,
        entity_id: object,
        current: Enum | None,
        target: Enum,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        current_label = current.value if current is not None else "none"
        super().__init__(
            message=(
                f"Illegal transition for {entity} {entity_id}: "
                f"cannot move to '{target.value}' (current state: '{current_label}')"
            ),
            error_code="ILLEGAL_TRANSITION",
            status_code=409,
        )


class DuplicatePendingRequestError(PortalServiceError):
    def __init__(self, workflow: str, subject_id: object):
        self.workflow = workflow
        self.subject_id = subject_id
        super().__init__(
            message=f"A pending {workflow} request already exists for this student.",
            error_code="DUPLICATE_PENDING_REQUEST",
            status_code=409,
        )


class NotFoundError(PortalServiceError):
    def __init__(self, entity: str, entity_id: object | None = None):
        self.entity = entity
        self.entity_id = entity_id
        message = f"{entity} {entity_id} not found" if entity_id else f"{entity} not found"
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
        )


class AlreadyResolvedError(PortalServiceError):
    def __init__(self, entity: str, entity_id: object, status: Enum):
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        super().__init__(
            message=f"{entity} {entity_id} has already been resolved as '{status.value}'.",
            error_code="ALREADY_RESOLVED",
            status_code=409,
        )


class ClearanceIncompleteError(PortalServiceError):
    def __init__(self, account_id: object, overall: Enum):
        self.account_id = account_id
        self.overall = overall
        super().__init__(
            message=(
                f"Clearance for student {account_id} is '{overall.value}'. "
                "All departments must clear the student before the withdrawal is approved."
            ),
            error_code="CLEARANCE_INCOMPLETE",
            status_code=409,
        )


class EmailAlreadyRegisteredError(PortalServiceError):
    def __init__(self):
        super().__init__(
            message="An account with this email already exists.",
            error_code="EMAIL_ALREADY_REGISTERED",
            status_code=409,
        )


class AccountNotEligibleError(PortalServiceError):
    """Raised when the account's status does not allow the operation."""

    def __init__(self, account_id: object, current: Enum | None, operation: str):
        self.account_id = account_id
        self.current = current
        current_label = current.value if current is not None else "none"
        super().__init__(
            message=f"Account {account_id} cannot {operation} (current state: '{current_label}')",
            error_code="ACCOUNT_NOT_ELIGIBLE",
            status_code=409,
        )


def to_http_exception(e: PortalServiceError) -> HTTPException:
    """Convert a service error into the API's structured HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )
