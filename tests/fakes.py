"""
In-memory stand-ins for the repositories and the notifier.

They expose the same async methods as the SQLAlchemy repositories and hold
transient ORM objects, so the engine runs unchanged on top of them. Each
write is applied immediately, which mirrors the per-row commits of the real
repositories. Compare-and-set methods honour their preconditions the same
way the conditional UPDATE statements do.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, OperationalError

from portal.core.config import Settings
from portal.core.locks import KeyedLock
from portal.core.security import create_access_token
from portal.modules.accounts.models import Account, AccountRole, AccountStatus
from portal.modules.activity.models import ActivityCategory, ActivityLog
from portal.modules.clearance.models import ClearanceItem, ClearanceStatus
from portal.modules.enrollment.models import ApplicationStatus, EnrollmentApplication
from portal.modules.lifecycle.service import LifecycleStateMachine
from portal.modules.requests.models import DropoutRequest, RequestStatus
from portal.modules.requests.workflow import (
    DOCUMENT_WORKFLOW,
    WITHDRAWAL_WORKFLOW,
    RequestWorkflow,
)
from portal.modules.tokens.issuer import TokenIssuer
from portal.modules.tokens.models import SecurityToken, TokenPurpose


def _duplicate(table: str) -> IntegrityError:
    return IntegrityError(f"INSERT INTO {table}", {}, Exception("duplicate key value"))


class FakeClock:
    """A settable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 1, 8, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeNotifier:
    """Records deliveries instead of emailing."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, TokenPurpose, str]] = []
        self.notices: list[tuple[str, str, dict[str, Any]]] = []

    def send(self, account_email: str, token_kind: TokenPurpose, token_value: str) -> None:
        self.sent.append((account_email, token_kind, token_value))

    def notice(self, account_email: str, template: str, **context: Any) -> None:
        self.notices.append((account_email, template, context))

    def last_token(self, purpose: TokenPurpose) -> str:
        return [value for _, kind, value in self.sent if kind == purpose][-1]


class FakeAccountRepository:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: dict[UUID, Account] = {}
        self.fail_password_write = False

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        full_name: str,
        role: AccountRole,
        status: AccountStatus | None = None,
        email_verified: bool = False,
    ) -> Account:
        email = email.strip().lower()
        if any(a.email == email for a in self.rows.values()):
            raise _duplicate("accounts")
        account = Account(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            status=status,
            email_verified=email_verified,
            email_verified_at=None,
            created_at=self.clock(),
            updated_at=self.clock(),
        )
        self.rows[account.id] = account
        return account

    async def get_by_id(self, account_id: UUID) -> Account | None:
        return self.rows.get(account_id)

    async def get_by_email(self, email: str) -> Account | None:
        email = email.strip().lower()
        return next((a for a in self.rows.values() if a.email == email), None)

    async def transition_status(
        self,
        account_id: UUID,
        from_status: AccountStatus,
        to_status: AccountStatus,
        **fields: Any,
    ) -> Account | None:
        account = self.rows.get(account_id)
        if account is None or account.status != from_status:
            return None
        account.status = to_status
        for key, value in fields.items():
            setattr(account, key, value)
        account.updated_at = self.clock()
        return account

    async def update_password(self, account_id: UUID, password_hash: str) -> Account | None:
        if self.fail_password_write:
            raise OperationalError("UPDATE accounts", {}, Exception("connection reset"))
        account = self.rows.get(account_id)
        if account is None:
            return None
        account.password_hash = password_hash
        return account

    async def list_by_status(self, status: AccountStatus) -> list[Account]:
        return [a for a in self.rows.values() if a.status == status]


class FakeTokenRepository:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: dict[UUID, SecurityToken] = {}

    async def create(
        self,
        account_id: UUID,
        token_hash: str,
        purpose: TokenPurpose,
        expires_at: datetime,
    ) -> SecurityToken:
        token = SecurityToken(
            id=uuid4(),
            account_id=account_id,
            token_hash=token_hash,
            purpose=purpose,
            created_at=self.clock(),
            expires_at=expires_at,
            consumed_at=None,
        )
        self.rows[token.id] = token
        return token

    async def get_by_hash(self, token_hash: str) -> SecurityToken | None:
        return next((t for t in self.rows.values() if t.token_hash == token_hash), None)

    async def delete_outstanding(self, account_id: UUID, purpose: TokenPurpose) -> int:
        doomed = [
            t.id
            for t in self.rows.values()
            if t.account_id == account_id and t.purpose == purpose and t.consumed_at is None
        ]
        for token_id in doomed:
            del self.rows[token_id]
        return len(doomed)

    async def mark_consumed(self, token_id: UUID, consumed_at: datetime) -> bool:
        token = self.rows.get(token_id)
        if token is None or token.consumed_at is not None:
            return False
        token.consumed_at = consumed_at
        return True

    async def delete_expired(self, before: datetime) -> int:
        doomed = [t.id for t in self.rows.values() if t.expires_at < before]
        for token_id in doomed:
            del self.rows[token_id]
        return len(doomed)


class FakeClearanceRepository:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: dict[UUID, ClearanceItem] = {}

    async def list_for_student(self, student_id: UUID) -> list[ClearanceItem]:
        items = [i for i in self.rows.values() if i.student_id == student_id]
        return sorted(items, key=lambda i: i.department)

    async def create(self, student_id: UUID, department: str) -> ClearanceItem:
        if any(
            i.student_id == student_id and i.department == department for i in self.rows.values()
        ):
            raise _duplicate("clearance_items")
        item = ClearanceItem(
            id=uuid4(),
            student_id=student_id,
            department=department,
            status=ClearanceStatus.PENDING,
            remarks=None,
            reviewed_by=None,
            reviewed_at=None,
            created_at=self.clock(),
        )
        self.rows[item.id] = item
        return item

    async def get_by_id(self, item_id: UUID) -> ClearanceItem | None:
        return self.rows.get(item_id)

    async def update(
        self,
        item_id: UUID,
        *,
        status: ClearanceStatus,
        remarks: str | None,
        reviewed_by: UUID | None,
        reviewed_at: datetime,
    ) -> ClearanceItem | None:
        item = self.rows.get(item_id)
        if item is None:
            return None
        item.status = status
        item.remarks = remarks
        item.reviewed_by = reviewed_by
        item.reviewed_at = reviewed_at
        return item


class FakeRequestRepository:
    def __init__(self, model: type, clock: FakeClock):
        self.model = model
        self.clock = clock
        self.rows: dict[UUID, Any] = {}
        self._sequence = 0

    async def create(self, subject_id: UUID, **payload: Any):
        if self.model is DropoutRequest and await self.get_pending_for_subject(subject_id):
            # One pending withdrawal per student, as the partial unique index enforces
            raise _duplicate("dropout_requests")
        self._sequence += 1
        request = self.model(
            id=uuid4(),
            subject_id=subject_id,
            status=RequestStatus.PENDING,
            reviewer_note=None,
            reviewed_by=None,
            submitted_at=self.clock() + timedelta(microseconds=self._sequence),
            resolved_at=None,
            **payload,
        )
        self.rows[request.id] = request
        return request

    async def get_by_id(self, request_id: UUID):
        return self.rows.get(request_id)

    async def get_pending_for_subject(self, subject_id: UUID):
        pending = [
            r
            for r in self.rows.values()
            if r.subject_id == subject_id and r.status == RequestStatus.PENDING
        ]
        return max(pending, key=lambda r: r.submitted_at, default=None)

    async def get_latest_resolved_for_subject(self, subject_id: UUID):
        resolved = [
            r
            for r in self.rows.values()
            if r.subject_id == subject_id and r.status != RequestStatus.PENDING
        ]
        return max(resolved, key=lambda r: r.resolved_at, default=None)

    async def resolve(
        self,
        request_id: UUID,
        *,
        status: RequestStatus,
        reviewer_note: str | None,
        reviewed_by: UUID | None,
        resolved_at: datetime,
    ):
        request = self.rows.get(request_id)
        if request is None or request.status != RequestStatus.PENDING:
            return None
        request.status = status
        request.reviewer_note = reviewer_note
        request.reviewed_by = reviewed_by
        request.resolved_at = resolved_at
        return request

    async def list_for_subject(self, subject_id: UUID) -> list:
        rows = [r for r in self.rows.values() if r.subject_id == subject_id]
        return sorted(rows, key=lambda r: r.submitted_at, reverse=True)

    async def list_by_status(self, status: RequestStatus) -> list:
        rows = [r for r in self.rows.values() if r.status == status]
        return sorted(rows, key=lambda r: r.submitted_at)


class FakeEnrollmentRepository:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: dict[UUID, EnrollmentApplication] = {}

    async def create(
        self,
        *,
        account_id: UUID,
        full_name: str,
        email: str,
        target_grade: str,
        previous_school: str | None = None,
        psa_number: str | None = None,
        document_ref: str | None = None,
    ) -> EnrollmentApplication:
        if await self.get_by_account(account_id):
            raise _duplicate("enrollment_applications")
        application = EnrollmentApplication(
            id=uuid4(),
            account_id=account_id,
            full_name=full_name,
            email=email,
            target_grade=target_grade,
            previous_school=previous_school,
            psa_number=psa_number,
            document_ref=document_ref,
            status=ApplicationStatus.PENDING,
            submitted_at=self.clock(),
            reviewed_at=None,
            reviewed_by=None,
            decision_reason=None,
        )
        self.rows[application.id] = application
        return application

    async def get_by_id(self, application_id: UUID) -> EnrollmentApplication | None:
        return self.rows.get(application_id)

    async def get_by_account(self, account_id: UUID) -> EnrollmentApplication | None:
        return next((a for a in self.rows.values() if a.account_id == account_id), None)

    async def update_status(
        self,
        application_id: UUID,
        *,
        from_status: ApplicationStatus,
        to_status: ApplicationStatus,
        reviewed_by: UUID | None,
        reviewed_at: datetime,
        decision_reason: str | None = None,
    ) -> EnrollmentApplication | None:
        application = self.rows.get(application_id)
        if application is None or application.status != from_status:
            return None
        application.status = to_status
        application.reviewed_by = reviewed_by
        application.reviewed_at = reviewed_at
        application.decision_reason = decision_reason
        return application

    async def list_applications(
        self, status: ApplicationStatus | None = None
    ) -> list[EnrollmentApplication]:
        rows = [a for a in self.rows.values() if status is None or a.status == status]
        return sorted(rows, key=lambda a: a.submitted_at)


class FakeActivityRepository:
    def __init__(self) -> None:
        self.rows: list[ActivityLog] = []

    async def create(
        self,
        *,
        actor_id: UUID | None,
        subject_id: UUID | None,
        action: str,
        category: ActivityCategory,
        created_at: datetime,
    ) -> ActivityLog:
        entry = ActivityLog(
            id=uuid4(),
            actor_id=actor_id,
            subject_id=subject_id,
            action=action,
            category=category,
            created_at=created_at,
        )
        self.rows.append(entry)
        return entry

    async def list_recent(
        self,
        *,
        subject_id: UUID | None = None,
        category: ActivityCategory | None = None,
        limit: int = 100,
    ) -> list[ActivityLog]:
        rows = [
            r
            for r in reversed(self.rows)
            if (subject_id is None or r.subject_id == subject_id)
            and (category is None or r.category == category)
        ]
        return rows[:limit]

    def actions_for(self, subject_id: UUID) -> list[str]:
        return [r.action for r in self.rows if r.subject_id == subject_id]


@dataclass
class FakeStorage:
    clock: FakeClock
    accounts: FakeAccountRepository = field(init=False)
    tokens: FakeTokenRepository = field(init=False)
    clearance: FakeClearanceRepository = field(init=False)
    dropouts: FakeRequestRepository = field(init=False)
    documents: FakeRequestRepository = field(init=False)
    enrollment: FakeEnrollmentRepository = field(init=False)
    activity: FakeActivityRepository = field(init=False)

    def __post_init__(self) -> None:
        self.accounts = FakeAccountRepository(self.clock)
        self.tokens = FakeTokenRepository(self.clock)
        self.clearance = FakeClearanceRepository(self.clock)
        self.dropouts = FakeRequestRepository(WITHDRAWAL_WORKFLOW.model, self.clock)
        self.documents = FakeRequestRepository(DOCUMENT_WORKFLOW.model, self.clock)
        self.enrollment = FakeEnrollmentRepository(self.clock)
        self.activity = FakeActivityRepository()


def make_lifecycle(
    storage: FakeStorage,
    locks: KeyedLock,
    notifier: FakeNotifier,
    settings: Settings,
) -> LifecycleStateMachine:
    clock = storage.clock
    return LifecycleStateMachine(
        accounts=storage.accounts,
        enrollment=storage.enrollment,
        clearance=storage.clearance,
        withdrawals=RequestWorkflow(WITHDRAWAL_WORKFLOW, storage.dropouts, locks, clock=clock),
        documents=RequestWorkflow(DOCUMENT_WORKFLOW, storage.documents, locks, clock=clock),
        tokens=TokenIssuer(storage.tokens, locks, notifier, settings, clock=clock),
        activity=storage.activity,
        locks=locks,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )


def bearer(account: Account) -> dict[str, str]:
    """Authorization header carrying an access token for ``account``."""
    token = create_access_token(
        subject=str(account.id),
        additional_claims={"email": account.email, "role": account.role.value},
    )
    return {"Authorization": f"Bearer {token}"}
