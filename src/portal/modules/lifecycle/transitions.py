"""
Account lifecycle transitions.

The only place that decides which status changes are legal:

    applicant            -> verified_applicant
    verified_applicant   -> active_student          (administrative approval)
    active_student       -> withdrawal_requested
    withdrawal_requested -> dropped | active_student
    dropped              -> (terminal)
"""

from uuid import UUID

from portal.core.errors import IllegalTransitionError
from portal.modules.accounts.models import AccountStatus

VALID_STATUS_TRANSITIONS: dict[AccountStatus, frozenset[AccountStatus]] = {
    AccountStatus.APPLICANT: frozenset({AccountStatus.VERIFIED_APPLICANT}),
    AccountStatus.VERIFIED_APPLICANT: frozenset({AccountStatus.ACTIVE_STUDENT}),
    AccountStatus.ACTIVE_STUDENT: frozenset({AccountStatus.WITHDRAWAL_REQUESTED}),
    AccountStatus.WITHDRAWAL_REQUESTED: frozenset(
        {AccountStatus.DROPPED, AccountStatus.ACTIVE_STUDENT}
    ),
    AccountStatus.DROPPED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_STATUS_TRANSITIONS.items() if not targets
)


def can_transition(current: AccountStatus | None, target: AccountStatus) -> bool:
    if current is None:
        return False
    return target in VALID_STATUS_TRANSITIONS[current]


def ensure_transition(
    account_id: UUID,
    current: AccountStatus | None,
    target: AccountStatus,
) -> None:
    """Raise IllegalTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise IllegalTransitionError("account", account_id, current, target)
