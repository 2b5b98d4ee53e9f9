"""
Lifecycle Schemas

Pydantic schemas for enrollment, student request and clearance endpoints.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from portal.modules.activity.models import ActivityCategory
from portal.modules.clearance.models import ClearanceStatus
from portal.modules.enrollment.models import ApplicationStatus
from portal.modules.requests.models import DocumentType, RequestStatus

# ============================================
# Enrollment
# ============================================


class EnrollmentApplicationCreate(BaseModel):
    """Request body for POST /enrollment/applications."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=200)
    target_grade: str = Field(..., min_length=1, max_length=50)
    previous_school: str | None = Field(None, max_length=200)
    psa_number: str | None = Field(None, max_length=50)
    document_ref: str | None = Field(
        None, max_length=500, description="Reference to an uploaded report card"
    )


class EnrollmentApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    full_name: str
    email: str
    target_grade: str
    previous_school: str | None = None
    psa_number: str | None = None
    status: ApplicationStatus
    submitted_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None
    decision_reason: str | None = None


class SubmitApplicationResponse(BaseModel):
    id: UUID
    status: ApplicationStatus
    message: str = "Application submitted. Please check your email to verify your address."


class RejectApplicationRequest(BaseModel):
    reason: str = Field(
        ...,
        min_length=10,
        max_length=1000,
        description="Reason shared with the applicant",
        json_schema_extra={"example": "The submitted PSA number could not be verified."},
    )


# ============================================
# Student requests
# ============================================


class WithdrawalCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class DropoutRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subject_id: UUID
    reason: str
    status: RequestStatus
    reviewer_note: str | None = None
    reviewed_by: UUID | None = None
    submitted_at: datetime
    resolved_at: datetime | None = None


class DocumentRequestCreate(BaseModel):
    document_type: DocumentType
    purpose: str = Field(..., min_length=1, max_length=500)


class DocumentRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subject_id: UUID
    document_type: DocumentType
    purpose: str
    status: RequestStatus
    reviewer_note: str | None = None
    reviewed_by: UUID | None = None
    submitted_at: datetime
    resolved_at: datetime | None = None


class ResolveRequest(BaseModel):
    """Request body for resolving a withdrawal or document request."""

    outcome: RequestStatus
    reviewer_note: str | None = Field(None, max_length=1000)


# ============================================
# Clearance
# ============================================


class ClearanceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    department: str
    status: ClearanceStatus
    remarks: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None


class ClearanceSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: UUID
    overall: ClearanceStatus
    items: list[ClearanceItemResponse]


class OpenClearanceRequest(BaseModel):
    departments: list[str] | None = Field(
        None, description="Departments to include. Defaults to the configured list."
    )


class ReviewClearanceItemRequest(BaseModel):
    status: ClearanceStatus
    remarks: str | None = Field(None, max_length=1000)


# ============================================
# Activity
# ============================================


class ActivityLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: UUID | None = None
    subject_id: UUID | None = None
    action: str
    category: ActivityCategory
    created_at: datetime
