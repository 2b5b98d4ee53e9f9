"""
Lifecycle Admin Router

Staff endpoints for the administrative events of the lifecycle: deciding
enrollment applications, resolving student requests and running clearance.

Endpoints:
- GET /admin/applications - List enrollment applications
- POST /admin/applications/{id}/approve - Approve (applicant becomes a student)
- POST /admin/applications/{id}/reject - Reject
- GET /admin/withdrawals - Pending withdrawals
- POST /admin/withdrawals/{id}/resolve - Approve or deny a withdrawal
- GET /admin/document-requests - Pending document requests
- POST /admin/document-requests/{id}/resolve - Mark ready or deny
- POST /admin/students/{id}/clearance - Open a clearance cycle
- GET /admin/students/{id}/clearance - Clearance status
- PATCH /admin/clearance-items/{id} - Record a department verdict
- GET /admin/activity-logs - Recent lifecycle activity

Security:
- Every endpoint requires a staff role
- Decision endpoints are rate limited per staff account
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from portal.core.auth import CurrentAccount, require_staff
from portal.core.errors import PortalServiceError, to_http_exception
from portal.core.rate_limit import enforce_rate_limit, staff_action_key
from portal.modules.activity.models import ActivityCategory
from portal.modules.enrollment.models import ApplicationStatus
from portal.modules.lifecycle.dependencies import get_lifecycle
from portal.modules.lifecycle.schemas import (
    ActivityLogResponse,
    ClearanceItemResponse,
    ClearanceSummaryResponse,
    DocumentRequestResponse,
    DropoutRequestResponse,
    EnrollmentApplicationResponse,
    OpenClearanceRequest,
    RejectApplicationRequest,
    ResolveRequest,
    ReviewClearanceItemRequest,
)
from portal.modules.lifecycle.service import LifecycleStateMachine

logger = logging.getLogger(__name__)

router = APIRouter()

# (requests, window seconds) per staff account and endpoint
RATE_LIMIT_DECISION = (30, 60)


def _handle_service_error(e: PortalServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise to_http_exception(e) from e


async def _check_staff_rate_limit(request: Request, staff: CurrentAccount) -> None:
    limit, window = RATE_LIMIT_DECISION
    await enforce_rate_limit(staff_action_key(request, staff.id), limit, window)


# ============================================
# Enrollment applications
# ============================================


@router.get("/applications", response_model=list[EnrollmentApplicationResponse])
async def list_applications(
    status: ApplicationStatus | None = Query(None, description="Filter by status"),
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> list[EnrollmentApplicationResponse]:
    applications = await lifecycle.enrollment.list_applications(status)
    return [EnrollmentApplicationResponse.model_validate(a) for a in applications]


@router.post("/applications/{application_id}/approve", response_model=EnrollmentApplicationResponse)
async def approve_application(
    application_id: UUID,
    request: Request,
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> EnrollmentApplicationResponse:
    """
    Approve an enrollment application.

    The applicant must have verified their email. On success the account
    becomes an active student.

    Raises:
        HTTPException 404: Application not found
        HTTPException 409: Already decided, or applicant not verified
    """
    await _check_staff_rate_limit(request, staff)

    try:
        application = await lifecycle.approve_application(application_id, reviewed_by=staff.id)
    except PortalServiceError as e:
        _handle_service_error(e)

    logger.info(f"Staff {staff.id} approved application {application_id}")
    return EnrollmentApplicationResponse.model_validate(application)


@router.post("/applications/{application_id}/reject", response_model=EnrollmentApplicationResponse)
async def reject_application(
    application_id: UUID,
    data: RejectApplicationRequest,
    request: Request,
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> EnrollmentApplicationResponse:
    await _check_staff_rate_limit(request, staff)

    try:
        application = await lifecycle.reject_application(
            application_id, data.reason, reviewed_by=staff.id
        )
    except PortalServiceError as e:
        _handle_service_error(e)

    logger.info(f"Staff {staff.id} rejected application {application_id}")
    return EnrollmentApplicationResponse.model_validate(application)


# ============================================
# Withdrawals
# ============================================


@router.get("/withdrawals", response_model=list[DropoutRequestResponse])
async def pending_withdrawals(
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> list[DropoutRequestResponse]:
    requests = await lifecycle.pending_withdrawals()
    return [DropoutRequestResponse.model_validate(r) for r in requests]


@router.post("/withdrawals/{request_id}/resolve", response_model=DropoutRequestResponse)
async def resolve_withdrawal(
    request_id: UUID,
    data: ResolveRequest,
    request: Request,
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> DropoutRequestResponse:
    """
    Approve or deny a withdrawal.

    Raises:
        HTTPException 404: Request not found
        HTTPException 409: Already resolved, clearance incomplete, or the
            student is not awaiting withdrawal
    """
    await _check_staff_rate_limit(request, staff)

    try:
        resolved = await lifecycle.resolve_withdrawal(
            request_id, data.outcome, reviewer_note=data.reviewer_note, reviewed_by=staff.id
        )
    except PortalServiceError as e:
        _handle_service_error(e)

    logger.info(f"Staff {staff.id} resolved withdrawal {request_id} as {data.outcome.value}")
    return DropoutRequestResponse.model_validate(resolved)


# ============================================
# Document requests
# ============================================


@router.get("/document-requests", response_model=list[DocumentRequestResponse])
async def pending_document_requests(
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> list[DocumentRequestResponse]:
    requests = await lifecycle.pending_document_requests()
    return [DocumentRequestResponse.model_validate(r) for r in requests]


@router.post("/document-requests/{request_id}/resolve", response_model=DocumentRequestResponse)
async def resolve_document_request(
    request_id: UUID,
    data: ResolveRequest,
    request: Request,
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> DocumentRequestResponse:
    await _check_staff_rate_limit(request, staff)

    try:
        resolved = await lifecycle.resolve_document_request(
            request_id, data.outcome, reviewer_note=data.reviewer_note, reviewed_by=staff.id
        )
    except PortalServiceError as e:
        _handle_service_error(e)

    return DocumentRequestResponse.model_validate(resolved)


# ============================================
# Clearance
# ============================================


@router.post("/students/{account_id}/clearance", response_model=ClearanceSummaryResponse)
async def open_clearance(
    account_id: UUID,
    data: OpenClearanceRequest,
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> ClearanceSummaryResponse:
    try:
        summary = await lifecycle.open_clearance_cycle(
            account_id, data.departments, opened_by=staff.id
        )
    except PortalServiceError as e:
        _handle_service_error(e)

    return ClearanceSummaryResponse.model_validate(summary)


@router.get("/students/{account_id}/clearance", response_model=ClearanceSummaryResponse)
async def student_clearance(
    account_id: UUID,
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> ClearanceSummaryResponse:
    summary = await lifecycle.clearance_status(account_id)
    return ClearanceSummaryResponse.model_validate(summary)


@router.patch("/clearance-items/{item_id}", response_model=ClearanceItemResponse)
async def review_clearance_item(
    item_id: UUID,
    data: ReviewClearanceItemRequest,
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> ClearanceItemResponse:
    try:
        item = await lifecycle.review_clearance_item(
            item_id, data.status, remarks=data.remarks, reviewed_by=staff.id
        )
    except PortalServiceError as e:
        _handle_service_error(e)

    return ClearanceItemResponse.model_validate(item)


# ============================================
# Activity
# ============================================


@router.get("/activity-logs", response_model=list[ActivityLogResponse])
async def activity_logs(
    student_id: UUID | None = Query(None, description="Only events for this account"),
    category: ActivityCategory | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    staff: CurrentAccount = Depends(require_staff),
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
) -> list[ActivityLogResponse]:
    entries = await lifecycle.activity.list_recent(
        subject_id=student_id, category=category, limit=limit
    )
    return [ActivityLogResponse.model_validate(e) for e in entries]
