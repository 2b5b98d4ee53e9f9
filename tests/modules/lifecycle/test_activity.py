"""
Tests for the activity trail written by the lifecycle engine.
"""

from uuid import uuid4

import pytest

from portal.core.errors import IllegalTransitionError
from portal.modules.accounts.models import AccountStatus
from portal.modules.activity.models import ActivityCategory
from portal.modules.clearance.models import ClearanceStatus
from portal.modules.requests.models import DocumentType, RequestStatus
from portal.modules.tokens.models import TokenPurpose

APPLICATION = {
    "email": "maria.santos@example.com",
    "password": "correct-horse-battery",
    "full_name": "Maria Santos",
    "target_grade": "Grade 7",
}


class TestEnrollmentActivity:
    @pytest.mark.asyncio
    async def test_enrollment_journey_is_recorded(self, lifecycle, notifier, storage):
        registrar = uuid4()
        application = await lifecycle.submit_application(**APPLICATION)
        await lifecycle.complete_email_verification(notifier.last_token(TokenPurpose.VERIFY_EMAIL))
        await lifecycle.approve_application(application.id, reviewed_by=registrar)

        account_id = application.account_id
        assert storage.activity.actions_for(account_id) == [
            "Submitted enrollment application for Grade 7",
            "Email verified",
            "Enrollment application approved",
        ]
        submitted, verified, approved = storage.activity.rows
        assert submitted.actor_id == account_id
        assert verified.category == ActivityCategory.AUTH
        assert approved.actor_id == registrar
        assert approved.category == ActivityCategory.ADMISSIONS

    @pytest.mark.asyncio
    async def test_rejection_is_recorded(self, lifecycle, storage):
        application = await lifecycle.submit_application(**APPLICATION)

        await lifecycle.reject_application(application.id, "Missing report card")

        assert storage.activity.rows[-1].action == "Enrollment application rejected"
        assert storage.activity.rows[-1].subject_id == application.account_id


class TestAccountActivity:
    @pytest.mark.asyncio
    async def test_password_reset_is_recorded_once_completed(
        self, lifecycle, notifier, storage, make_account
    ):
        account = await make_account()

        await lifecycle.request_password_reset(account.email)
        assert storage.activity.rows == []

        await lifecycle.complete_password_reset(
            notifier.last_token(TokenPurpose.RESET_PASSWORD), "a-brand-new-secret"
        )
        assert storage.activity.actions_for(account.id) == ["Password reset"]

    @pytest.mark.asyncio
    async def test_failed_operation_writes_nothing(self, lifecycle, storage, make_account):
        applicant = await make_account(AccountStatus.APPLICANT)

        with pytest.raises(IllegalTransitionError):
            await lifecycle.request_withdrawal(applicant.id, "Changed my mind")

        assert storage.activity.rows == []


class TestWithdrawalActivity:
    @pytest.mark.asyncio
    async def test_withdrawal_with_clearance_is_recorded(self, lifecycle, storage, make_account):
        student = await make_account()
        registrar = uuid4()

        request = await lifecycle.request_withdrawal(student.id, "Moving abroad")
        summary = await lifecycle.open_clearance_cycle(student.id, ["Library"], opened_by=registrar)
        await lifecycle.review_clearance_item(
            summary.items[0].id, ClearanceStatus.CLEARED, reviewed_by=registrar
        )
        await lifecycle.resolve_withdrawal(request.id, RequestStatus.APPROVED, reviewed_by=registrar)

        assert storage.activity.actions_for(student.id) == [
            "Submitted withdrawal request",
            "Opened clearance: Library",
            "Library clearance cleared",
            "Withdrawal request approved",
        ]
        categories = [r.category for r in storage.activity.rows]
        assert categories == [
            ActivityCategory.ADMISSIONS,
            ActivityCategory.CLEARANCE,
            ActivityCategory.CLEARANCE,
            ActivityCategory.ADMISSIONS,
        ]

    @pytest.mark.asyncio
    async def test_reopening_clearance_records_nothing_new(self, lifecycle, storage, make_account):
        student = await make_account()
        await lifecycle.open_clearance_cycle(student.id, ["Library"])

        await lifecycle.open_clearance_cycle(student.id, ["Library"])

        assert storage.activity.actions_for(student.id) == ["Opened clearance: Library"]


class TestDocumentActivity:
    @pytest.mark.asyncio
    async def test_document_request_and_decision(self, lifecycle, storage, make_account):
        student = await make_account()
        registrar = uuid4()

        request = await lifecycle.submit_document_request(
            student.id, DocumentType.GOOD_MORAL, "Scholarship"
        )
        await lifecycle.resolve_document_request(
            request.id, RequestStatus.READY, reviewed_by=registrar
        )

        assert storage.activity.actions_for(student.id) == [
            "Requested document: Good Moral",
            "Good Moral request ready",
        ]
        assert storage.activity.rows[-1].actor_id == registrar
        assert storage.activity.rows[-1].category == ActivityCategory.DOCUMENTS


class TestReconcileActivity:
    @pytest.mark.asyncio
    async def test_repairs_are_recorded_without_actor(self, lifecycle, storage, make_account):
        student = await make_account()
        await storage.dropouts.create(student.id, reason="Moving abroad")

        await lifecycle.reconcile()

        [entry] = storage.activity.rows
        assert entry.action == "Reconciled pending withdrawal"
        assert entry.subject_id == student.id
        assert entry.actor_id is None
