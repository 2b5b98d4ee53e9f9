"""
Lifecycle Router

Public enrollment endpoint and the student self-service endpoints.

Endpoints:
- POST /enrollment/applications - Submit an enrollment application
- GET /students/me/clearance - Own clearance status
- POST /students/me/withdrawals - Request withdrawal
- GET /students/me/withdrawals - Own withdrawal history
- POST /students/me/document-requests - Request a document
- GET /students/me/document-requests - Own document requests
"""

import logging

from fastapi import APIRouter, Depends, status

from portal.core.auth import CurrentAccount, require_student
from portal.core.errors import PortalServiceError, to_http_exception
from portal.modules.lifecycle.dependencies import get_lifecycle
from portal.modules.lifecycle.schemas import (
    ClearanceSummaryResponse,
    DocumentRequestCreate,
    DocumentRequestResponse,
    DropoutRequestResponse,
    EnrollmentApplicationCreate,
    SubmitApplicationResponse,
    WithdrawalCreate,
)
from portal.modules.lifecycle.service import LifecycleStateMachine

logger = logging.getLogger(__name__)

enrollment_router = APIRouter()
router = APIRouter()


def _handle_service_error(e: PortalServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise to_http_exception(e) from e


@enrollment_router.post(
    "/applications",
    response_model=SubmitApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Enrollment Application",
)
async def submit_application(
    data: EnrollmentApplicationCreate,
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> SubmitApplicationResponse:
    """
    Register as an applicant and submit an enrollment application.

    A verification link is emailed to the applicant. The application can
    only be approved once the email is verified.

    Raises:
        HTTPException 409: Email already registered
    """
    try:
        application = await lifecycle.submit_application(**data.model_dump())
    except PortalServiceError as e:
        _handle_service_error(e)

    return SubmitApplicationResponse(id=application.id, status=application.status)


@router.get("/clearance", response_model=ClearanceSummaryResponse)
async def my_clearance(
    student: CurrentAccount = Depends(require_student),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> ClearanceSummaryResponse:
    summary = await lifecycle.clearance_status(student.id)
    return ClearanceSummaryResponse.model_validate(summary)


@router.post(
    "/withdrawals",
    response_model=DropoutRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_withdrawal(
    data: WithdrawalCreate,
    student: CurrentAccount = Depends(require_student),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> DropoutRequestResponse:
    """
    Ask to withdraw from the school.

    Raises:
        HTTPException 409: Not an active student, or a withdrawal is already pending
    """
    try:
        request = await lifecycle.request_withdrawal(student.id, data.reason)
    except PortalServiceError as e:
        _handle_service_error(e)

    return DropoutRequestResponse.model_validate(request)


@router.get("/withdrawals", response_model=list[DropoutRequestResponse])
async def my_withdrawals(
    student: CurrentAccount = Depends(require_student),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> list[DropoutRequestResponse]:
    requests = await lifecycle.list_withdrawals(student.id)
    return [DropoutRequestResponse.model_validate(r) for r in requests]


@router.post(
    "/document-requests",
    response_model=DocumentRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_document(
    data: DocumentRequestCreate,
    student: CurrentAccount = Depends(require_student),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> DocumentRequestResponse:
    try:
        request = await lifecycle.submit_document_request(
            student.id, data.document_type, data.purpose
        )
    except PortalServiceError as e:
        _handle_service_error(e)

    return DocumentRequestResponse.model_validate(request)


@router.get("/document-requests", response_model=list[DocumentRequestResponse])
async def my_document_requests(
    student: CurrentAccount = Depends(require_student),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> list[DocumentRequestResponse]:
    requests = await lifecycle.list_document_requests(student.id)
    return [DocumentRequestResponse.model_validate(r) for r in requests]
