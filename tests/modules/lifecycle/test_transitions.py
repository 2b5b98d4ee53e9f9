"""Tests for the account status transition table."""

from uuid import uuid4

import pytest

from portal.core.errors import IllegalTransitionError
from portal.modules.accounts.models import AccountStatus
from portal.modules.lifecycle.transitions import (
    TERMINAL_STATUSES,
    VALID_STATUS_TRANSITIONS,
    can_transition,
    ensure_transition,
)

ALLOWED = {
    (AccountStatus.APPLICANT, AccountStatus.VERIFIED_APPLICANT),
    (AccountStatus.VERIFIED_APPLICANT, AccountStatus.ACTIVE_STUDENT),
    (AccountStatus.ACTIVE_STUDENT, AccountStatus.WITHDRAWAL_REQUESTED),
    (AccountStatus.WITHDRAWAL_REQUESTED, AccountStatus.DROPPED),
    (AccountStatus.WITHDRAWAL_REQUESTED, AccountStatus.ACTIVE_STUDENT),
}


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(VALID_STATUS_TRANSITIONS) == set(AccountStatus)

    def test_dropped_is_the_only_terminal_status(self):
        assert TERMINAL_STATUSES == frozenset({AccountStatus.DROPPED})

    @pytest.mark.parametrize("current", list(AccountStatus))
    @pytest.mark.parametrize("target", list(AccountStatus))
    def test_can_transition_matches_table(self, current, target):
        assert can_transition(current, target) == ((current, target) in ALLOWED)

    def test_no_self_transitions(self):
        for status in AccountStatus:
            assert not can_transition(status, status)

    def test_status_less_accounts_never_transition(self):
        # Staff accounts carry no lifecycle status
        for target in AccountStatus:
            assert not can_transition(None, target)


class TestEnsureTransition:
    def test_allowed_transition_passes(self):
        ensure_transition(uuid4(), AccountStatus.APPLICANT, AccountStatus.VERIFIED_APPLICANT)

    def test_illegal_transition_names_both_states(self):
        account_id = uuid4()

        with pytest.raises(IllegalTransitionError) as exc_info:
            ensure_transition(account_id, AccountStatus.DROPPED, AccountStatus.ACTIVE_STUDENT)

        error = exc_info.value
        assert error.entity_id == account_id
        assert error.current == AccountStatus.DROPPED
        assert error.target == AccountStatus.ACTIVE_STUDENT
        assert "dropped" in error.message
        assert "active_student" in error.message
        assert error.status_code == 409

    def test_skipping_verification_is_illegal(self):
        with pytest.raises(IllegalTransitionError):
            ensure_transition(uuid4(), AccountStatus.APPLICANT, AccountStatus.ACTIVE_STUDENT)

    def test_none_current_is_reported(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            ensure_transition(uuid4(), None, AccountStatus.WITHDRAWAL_REQUESTED)

        assert "none" in exc_info.value.message
