"""
Lifecycle Service Layer

The LifecycleStateMachine is the only writer of account status. It moves a
learner through

    applicant -> verified_applicant -> active_student
              -> withdrawal_requested -> dropped

and coordinates the rows that move with the account: security tokens, the
enrollment application, clearance items and student requests.

Each operation touches several rows and each row commits on its own, so
consistency comes from three rules:

1. Every status change runs under the account's key lock and is written as
   a compare-and-set on the status that was read.
2. The request or application row is written first and the account second.
   A crash in between leaves a state the reconciliation job can recognise
   and finish.
3. Legality is decided by ``transitions.VALID_STATUS_TRANSITIONS`` alone.

Issuing and redeeming an account's tokens also runs under the account lock,
and a token is validated again once the lock is held, so a reissue or a
second redemption can never slip in between the check and the write.

Every completed operation appends an activity log row after its state
writes have committed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from portal.core.config import Settings
from portal.core.errors import (
    AccountNotEligibleError,
    AlreadyResolvedError,
    ClearanceIncompleteError,
    EmailAlreadyRegisteredError,
    IllegalTransitionError,
    NotFoundError,
)
from portal.core.locks import KeyedLock, account_key
from portal.core.notifications import Notifier
from portal.core.security import hash_password
from portal.modules.accounts.models import Account, AccountRole, AccountStatus
from portal.modules.accounts.repository import AccountRepository
from portal.modules.activity.models import ActivityCategory
from portal.modules.activity.repository import ActivityRepository
from portal.modules.clearance.aggregator import overall_status
from portal.modules.clearance.models import ClearanceItem, ClearanceStatus
from portal.modules.clearance.repository import ClearanceRepository
from portal.modules.enrollment.models import ApplicationStatus, EnrollmentApplication
from portal.modules.enrollment.repository import EnrollmentRepository
from portal.modules.requests.models import (
    DocumentRequest,
    DocumentType,
    DropoutRequest,
    RequestStatus,
)
from portal.modules.requests.workflow import RequestWorkflow
from portal.modules.tokens.issuer import TokenIssuer
from portal.modules.tokens.models import TokenPurpose

from .transitions import ensure_transition

logger = logging.getLogger(__name__)

# Where each withdrawal outcome sends the account
WITHDRAWAL_OUTCOME_STATUS = {
    RequestStatus.APPROVED: AccountStatus.DROPPED,
    RequestStatus.DENIED: AccountStatus.ACTIVE_STUDENT,
}

# Students who may still ask the registrar for documents
DOCUMENT_REQUEST_STATUSES = frozenset(
    {AccountStatus.ACTIVE_STUDENT, AccountStatus.WITHDRAWAL_REQUESTED}
)


@dataclass
class ClearanceSummary:
    account_id: UUID
    overall: ClearanceStatus
    items: list[ClearanceItem]


@dataclass
class ReconcileReport:
    approvals_completed: int = 0
    withdrawals_marked: int = 0
    withdrawals_finished: int = 0

    @property
    def total(self) -> int:
        return self.approvals_completed + self.withdrawals_marked + self.withdrawals_finished


class LifecycleStateMachine:
    """Status-changing operations on accounts and everything tied to them."""

    def __init__(
        self,
        *,
        accounts: AccountRepository,
        enrollment: EnrollmentRepository,
        clearance: ClearanceRepository,
        withdrawals: RequestWorkflow,
        documents: RequestWorkflow,
        tokens: TokenIssuer,
        activity: ActivityRepository,
        locks: KeyedLock,
        notifier: Notifier,
        settings: Settings,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.accounts = accounts
        self.activity = activity
        self.enrollment = enrollment
        self.clearance = clearance
        self.withdrawals = withdrawals
        self.documents = documents
        self.tokens = tokens
        self.locks = locks
        self.notifier = notifier
        self.settings = settings
        self.clock = clock

    # ============================================
    # Helpers
    # ============================================

    async def _load_account(self, account_id: UUID) -> Account:
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    async def _advance(self, account: Account, target: AccountStatus, **fields: Any) -> Account:
        """
        Move ``account`` to ``target``. The caller holds the account lock.

        Raises:
            IllegalTransitionError: If the transition is not allowed, or the
                stored status no longer matches the one that was read
        """
        ensure_transition(account.id, account.status, target)

        updated = await self.accounts.transition_status(
            account.id, account.status, target, **fields
        )
        if updated is None:
            current = await self._load_account(account.id)
            raise IllegalTransitionError("account", account.id, current.status, target)
        return updated

    async def _record(
        self,
        category: ActivityCategory,
        action: str,
        subject_id: UUID | None,
        actor_id: UUID | None = None,
    ) -> None:
        await self.activity.create(
            actor_id=actor_id,
            subject_id=subject_id,
            action=action,
            category=category,
            created_at=self.clock(),
        )

    # ============================================
    # Enrollment
    # ============================================

    async def submit_application(
        self,
        *,
        email: str,
        password: str,
        full_name: str,
        target_grade: str,
        previous_school: str | None = None,
        psa_number: str | None = None,
        document_ref: str | None = None,
    ) -> EnrollmentApplication:
        """
        Register a prospective student and file their application.

        Creates the applicant account, then the pending application, then
        sends the email verification link.

        Raises:
            EmailAlreadyRegisteredError: If an account already uses the email
        """
        if await self.accounts.get_by_email(email) is not None:
            raise EmailAlreadyRegisteredError()

        try:
            account = await self.accounts.create(
                email=email,
                password_hash=hash_password(password),
                full_name=full_name,
                role=AccountRole.TRANSFEREE,
                status=AccountStatus.APPLICANT,
            )
        except IntegrityError as e:
            raise EmailAlreadyRegisteredError() from e

        application = await self.enrollment.create(
            account_id=account.id,
            full_name=full_name,
            email=account.email,
            target_grade=target_grade,
            previous_school=previous_school,
            psa_number=psa_number,
            document_ref=document_ref,
        )

        await self.tokens.issue(account.id, TokenPurpose.VERIFY_EMAIL, recipient=account.email)

        await self._record(
            ActivityCategory.ADMISSIONS,
            f"Submitted enrollment application for {target_grade}",
            account.id,
            actor_id=account.id,
        )
        logger.info(f"Enrollment application {application.id} submitted for account {account.id}")
        return application

    async def approve_application(
        self,
        application_id: UUID,
        reviewed_by: UUID | None = None,
    ) -> EnrollmentApplication:
        """
        Approve an application: the administrative approval event.

        The application is written first, then the account becomes an
        active student with the ``student`` role.

        Raises:
            NotFoundError, AlreadyResolvedError, IllegalTransitionError
        """
        application = await self._pending_application(application_id)

        async with self.locks.hold(account_key(application.account_id)):
            account = await self._load_account(application.account_id)
            ensure_transition(account.id, account.status, AccountStatus.ACTIVE_STUDENT)
            if not account.email_verified:
                raise IllegalTransitionError(
                    "account", account.id, account.status, AccountStatus.ACTIVE_STUDENT
                )

            decided = await self._decide_application(
                application_id, ApplicationStatus.APPROVED, reviewed_by
            )
            account = await self._advance(
                account, AccountStatus.ACTIVE_STUDENT, role=AccountRole.STUDENT
            )

        await self._record(
            ActivityCategory.ADMISSIONS,
            "Enrollment application approved",
            account.id,
            actor_id=reviewed_by,
        )
        self.notifier.notice(
            account.email, "application_approved", applicant_name=decided.full_name
        )
        logger.info(f"Application {application_id} approved by {reviewed_by}")
        return decided

    async def reject_application(
        self,
        application_id: UUID,
        reason: str,
        reviewed_by: UUID | None = None,
    ) -> EnrollmentApplication:
        """Reject an application. The account keeps its current status."""
        await self._pending_application(application_id)

        decided = await self._decide_application(
            application_id, ApplicationStatus.REJECTED, reviewed_by, decision_reason=reason
        )

        await self._record(
            ActivityCategory.ADMISSIONS,
            "Enrollment application rejected",
            decided.account_id,
            actor_id=reviewed_by,
        )
        self.notifier.notice(
            decided.email,
            "application_rejected",
            applicant_name=decided.full_name,
            reason=reason,
        )
        logger.info(f"Application {application_id} rejected by {reviewed_by}")
        return decided

    async def _pending_application(self, application_id: UUID) -> EnrollmentApplication:
        application = await self.enrollment.get_by_id(application_id)
        if application is None:
            raise NotFoundError("enrollment application", application_id)
        if application.status != ApplicationStatus.PENDING:
            raise AlreadyResolvedError("enrollment application", application_id, application.status)
        return application

    async def _decide_application(
        self,
        application_id: UUID,
        outcome: ApplicationStatus,
        reviewed_by: UUID | None,
        decision_reason: str | None = None,
    ) -> EnrollmentApplication:
        decided = await self.enrollment.update_status(
            application_id,
            from_status=ApplicationStatus.PENDING,
            to_status=outcome,
            reviewed_by=reviewed_by,
            reviewed_at=self.clock(),
            decision_reason=decision_reason,
        )
        if decided is None:
            current = await self.enrollment.get_by_id(application_id)
            raise AlreadyResolvedError("enrollment application", application_id, current.status)
        return decided

    # ============================================
    # Email verification
    # ============================================

    async def complete_email_verification(self, token: str) -> Account:
        """
        Redeem a verification link and advance the applicant.

        Raises:
            Token errors, or IllegalTransitionError if the account is no
            longer an unverified applicant
        """
        account_id = await self.tokens.validate(token, TokenPurpose.VERIFY_EMAIL)

        async with self.locks.hold(account_key(account_id)):
            await self.tokens.validate(token, TokenPurpose.VERIFY_EMAIL)
            account = await self._load_account(account_id)
            ensure_transition(account.id, account.status, AccountStatus.VERIFIED_APPLICANT)

            await self.tokens.consume(token)
            account = await self._advance(
                account,
                AccountStatus.VERIFIED_APPLICANT,
                email_verified=True,
                email_verified_at=self.clock(),
            )

        await self._record(ActivityCategory.AUTH, "Email verified", account_id, actor_id=account_id)
        logger.info(f"Email verified for account {account_id}")
        return account

    async def resend_verification(self, email: str) -> None:
        """
        Send a fresh verification link to an unverified applicant.

        Returns None whether or not anything was sent, so the caller cannot
        learn which emails belong to applicants.
        """
        account = await self.accounts.get_by_email(email)
        if account is None:
            logger.info("Verification resend requested for an unknown email")
            return None

        async with self.locks.hold(account_key(account.id)):
            # Re-read under the lock; the applicant may have verified meanwhile
            account = await self._load_account(account.id)
            if account.status != AccountStatus.APPLICANT or account.email_verified:
                logger.info("Verification resend requested for an ineligible email")
                return None

            await self.tokens.issue(
                account.id, TokenPurpose.VERIFY_EMAIL, recipient=account.email
            )
        return None

    # ============================================
    # Password recovery
    # ============================================

    async def request_password_reset(self, email: str) -> None:
        """
        Email a password reset link if the address belongs to an account.

        Always returns None so the response never reveals whether the email
        is registered.
        """
        account = await self.accounts.get_by_email(email)
        if account is None:
            logger.info("Password reset requested for an unknown email")
            return None

        async with self.locks.hold(account_key(account.id)):
            await self.tokens.issue(
                account.id, TokenPurpose.RESET_PASSWORD, recipient=account.email
            )
        return None

    async def validate_password_reset(self, token: str) -> UUID:
        """Check a reset link before the new-password form is shown."""
        return await self.tokens.validate(token, TokenPurpose.RESET_PASSWORD)

    async def complete_password_reset(self, token: str, new_password: str) -> None:
        """
        Set a new password with a reset link.

        The credential is written before the token is consumed, so a failed
        write leaves the link usable for a retry. The token is checked again
        after the account lock is taken: a link that was redeemed or replaced
        while this call waited changes nothing.
        """
        account_id = await self.tokens.validate(token, TokenPurpose.RESET_PASSWORD)
        password_hash = hash_password(new_password)

        async with self.locks.hold(account_key(account_id)):
            await self.tokens.validate(token, TokenPurpose.RESET_PASSWORD)

            updated = await self.accounts.update_password(account_id, password_hash)
            if updated is None:
                raise NotFoundError("account", account_id)
            await self.tokens.consume(token)

        await self._record(
            ActivityCategory.AUTH, "Password reset", account_id, actor_id=account_id
        )
        logger.info(f"Password reset completed for account {account_id}")

    # ============================================
    # Withdrawal
    # ============================================

    async def request_withdrawal(self, account_id: UUID, reason: str) -> DropoutRequest:
        """
        File a withdrawal request for an active student.

        Raises:
            IllegalTransitionError: If the account is not an active student
            DuplicatePendingRequestError: If a withdrawal is already pending
        """
        async with self.locks.hold(account_key(account_id)):
            account = await self._load_account(account_id)
            ensure_transition(account.id, account.status, AccountStatus.WITHDRAWAL_REQUESTED)

            request = await self.withdrawals.submit(account_id, reason=reason)
            await self._advance(account, AccountStatus.WITHDRAWAL_REQUESTED)

        await self._record(
            ActivityCategory.ADMISSIONS, "Submitted withdrawal request", account_id, account_id
        )
        return request

    async def resolve_withdrawal(
        self,
        request_id: UUID,
        outcome: RequestStatus,
        reviewer_note: str | None = None,
        reviewed_by: UUID | None = None,
    ) -> DropoutRequest:
        """
        Approve or deny a pending withdrawal.

        Approval drops the student; denial returns them to active. When
        ``require_clearance_for_withdrawal`` is set, approval needs every
        department to have cleared the student.

        Raises:
            NotFoundError, AlreadyResolvedError, ClearanceIncompleteError,
            IllegalTransitionError
        """
        request = await self.withdrawals.get_pending(request_id)

        target = WITHDRAWAL_OUTCOME_STATUS.get(outcome)
        if target is None:
            raise IllegalTransitionError(self.withdrawals.entity, request_id, request.status, outcome)

        async with self.locks.hold(account_key(request.subject_id)):
            if self.settings.require_clearance_for_withdrawal and outcome == RequestStatus.APPROVED:
                summary = await self.clearance_status(request.subject_id)
                if summary.overall != ClearanceStatus.CLEARED:
                    raise ClearanceIncompleteError(request.subject_id, summary.overall)

            account = await self._load_account(request.subject_id)
            ensure_transition(account.id, account.status, target)

            resolved = await self.withdrawals.resolve(
                request_id, outcome, reviewer_note=reviewer_note, reviewed_by=reviewed_by
            )
            account = await self._advance(account, target)

        await self._record(
            ActivityCategory.ADMISSIONS,
            f"Withdrawal request {outcome.value}",
            account.id,
            actor_id=reviewed_by,
        )
        self.notifier.notice(
            account.email,
            "request_decision",
            request_label="withdrawal",
            outcome=outcome.value,
            note=reviewer_note,
        )
        return resolved

    async def list_withdrawals(self, account_id: UUID) -> list[DropoutRequest]:
        return await self.withdrawals.list_for_subject(account_id)

    async def pending_withdrawals(self) -> list[DropoutRequest]:
        return await self.withdrawals.list_pending()

    # ============================================
    # Clearance
    # ============================================

    async def open_clearance_cycle(
        self,
        account_id: UUID,
        departments: list[str] | None = None,
        opened_by: UUID | None = None,
    ) -> ClearanceSummary:
        """
        Create a pending clearance item for each department.

        Departments that already have an item are left alone, so opening a
        cycle twice changes nothing.
        """
        await self._load_account(account_id)
        wanted = list(dict.fromkeys(departments or self.settings.clearance_departments))

        async with self.locks.hold(f"clearance:{account_id}"):
            existing = {item.department for item in await self.clearance.list_for_student(account_id)}
            created = [dept for dept in wanted if dept not in existing]
            for department in created:
                await self.clearance.create(account_id, department)

        if created:
            await self._record(
                ActivityCategory.CLEARANCE,
                f"Opened clearance: {', '.join(created)}",
                account_id,
                actor_id=opened_by,
            )
            logger.info(f"Opened clearance for {account_id}: {', '.join(created)}")
        return await self.clearance_status(account_id)

    async def clearance_status(self, account_id: UUID) -> ClearanceSummary:
        items = await self.clearance.list_for_student(account_id)
        return ClearanceSummary(account_id=account_id, overall=overall_status(items), items=items)

    async def review_clearance_item(
        self,
        item_id: UUID,
        status: ClearanceStatus,
        remarks: str | None = None,
        reviewed_by: UUID | None = None,
    ) -> ClearanceItem:
        """
        Record a department's verdict on one clearance item.

        Runs under the student's account lock, so a verdict cannot land
        between a withdrawal approval's clearance check and its write.
        """
        item = await self.clearance.get_by_id(item_id)
        if item is None:
            raise NotFoundError("clearance item", item_id)

        async with self.locks.hold(account_key(item.student_id)):
            updated = await self.clearance.update(
                item_id,
                status=status,
                remarks=remarks,
                reviewed_by=reviewed_by,
                reviewed_at=self.clock(),
            )
            if updated is None:
                raise NotFoundError("clearance item", item_id)

        await self._record(
            ActivityCategory.CLEARANCE,
            f"{item.department} clearance {status.value}",
            item.student_id,
            actor_id=reviewed_by,
        )
        logger.info(
            f"Clearance item {item_id} ({item.department}) for {item.student_id}: {status.value}"
        )
        return updated

    # ============================================
    # Document requests
    # ============================================

    async def submit_document_request(
        self,
        account_id: UUID,
        document_type: DocumentType,
        purpose: str,
    ) -> DocumentRequest:
        """
        File a document request for an enrolled student.

        Raises:
            AccountNotEligibleError: If the student is not active or awaiting
                withdrawal
        """
        account = await self._load_account(account_id)
        if account.status not in DOCUMENT_REQUEST_STATUSES:
            raise AccountNotEligibleError(account_id, account.status, "request documents")

        request = await self.documents.submit(
            account_id, document_type=document_type, purpose=purpose
        )
        await self._record(
            ActivityCategory.DOCUMENTS,
            f"Requested document: {document_type.value}",
            account_id,
            actor_id=account_id,
        )
        return request

    async def resolve_document_request(
        self,
        request_id: UUID,
        outcome: RequestStatus,
        reviewer_note: str | None = None,
        reviewed_by: UUID | None = None,
    ) -> DocumentRequest:
        resolved = await self.documents.resolve(
            request_id, outcome, reviewer_note=reviewer_note, reviewed_by=reviewed_by
        )
        await self._record(
            ActivityCategory.DOCUMENTS,
            f"{resolved.document_type.value} request {outcome.value}",
            resolved.subject_id,
            actor_id=reviewed_by,
        )

        account = await self.accounts.get_by_id(resolved.subject_id)
        if account is not None:
            self.notifier.notice(
                account.email,
                "request_decision",
                request_label=resolved.document_type.value,
                outcome=outcome.value,
                note=reviewer_note,
            )
        return resolved

    async def list_document_requests(self, account_id: UUID) -> list[DocumentRequest]:
        return await self.documents.list_for_subject(account_id)

    async def pending_document_requests(self) -> list[DocumentRequest]:
        return await self.documents.list_pending()

    # ============================================
    # Reconciliation
    # ============================================

    async def reconcile(self) -> ReconcileReport:
        """
        Finish cross-entity writes that were interrupted after the first row.

        Safe to run any number of times; accounts that are already
        consistent are left untouched.
        """
        report = ReconcileReport()

        for application in await self.enrollment.list_applications(ApplicationStatus.APPROVED):
            async with self.locks.hold(account_key(application.account_id)):
                account = await self.accounts.get_by_id(application.account_id)
                if account is None or account.status != AccountStatus.VERIFIED_APPLICANT:
                    continue
                await self._advance(account, AccountStatus.ACTIVE_STUDENT, role=AccountRole.STUDENT)
                await self._record(
                    ActivityCategory.ADMISSIONS, "Reconciled enrollment approval", account.id
                )
                report.approvals_completed += 1
                logger.warning(f"Reconciled approval of application {application.id}")

        for account in await self.accounts.list_by_status(AccountStatus.ACTIVE_STUDENT):
            async with self.locks.hold(account_key(account.id)):
                pending = await self.withdrawals.repository.get_pending_for_subject(account.id)
                if pending is None:
                    continue
                current = await self._load_account(account.id)
                if current.status != AccountStatus.ACTIVE_STUDENT:
                    continue
                await self._advance(current, AccountStatus.WITHDRAWAL_REQUESTED)
                await self._record(
                    ActivityCategory.ADMISSIONS, "Reconciled pending withdrawal", account.id
                )
                report.withdrawals_marked += 1
                logger.warning(f"Reconciled pending withdrawal {pending.id} for {account.id}")

        for account in await self.accounts.list_by_status(AccountStatus.WITHDRAWAL_REQUESTED):
            async with self.locks.hold(account_key(account.id)):
                if await self.withdrawals.repository.get_pending_for_subject(account.id):
                    continue
                latest = await self.withdrawals.repository.get_latest_resolved_for_subject(
                    account.id
                )
                if latest is None:
                    logger.error(f"Account {account.id} awaits withdrawal with no request on file")
                    continue
                current = await self._load_account(account.id)
                if current.status != AccountStatus.WITHDRAWAL_REQUESTED:
                    continue
                await self._advance(current, WITHDRAWAL_OUTCOME_STATUS[latest.status])
                await self._record(
                    ActivityCategory.ADMISSIONS,
                    f"Reconciled withdrawal {latest.status.value}",
                    account.id,
                )
                report.withdrawals_finished += 1
                logger.warning(f"Reconciled resolved withdrawal {latest.id} for {account.id}")

        if report.total:
            logger.info(f"Reconciliation repaired {report.total} account(s)")
        return report
