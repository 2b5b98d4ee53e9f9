"""Tests for the overall clearance verdict."""

import itertools
from uuid import uuid4

import pytest

from portal.modules.clearance.aggregator import overall_status
from portal.modules.clearance.models import ClearanceItem, ClearanceStatus

CLEARED = ClearanceStatus.CLEARED
PENDING = ClearanceStatus.PENDING
BLOCKED = ClearanceStatus.BLOCKED


def _item(status: ClearanceStatus, department: str = "Library") -> ClearanceItem:
    return ClearanceItem(id=uuid4(), student_id=uuid4(), department=department, status=status)


class TestOverallStatus:
    def test_no_items_is_pending(self):
        assert overall_status([]) == PENDING

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ([CLEARED], CLEARED),
            ([PENDING], PENDING),
            ([BLOCKED], BLOCKED),
            ([CLEARED, CLEARED, CLEARED, CLEARED], CLEARED),
            ([CLEARED, CLEARED, PENDING], PENDING),
            ([CLEARED, BLOCKED], BLOCKED),
            ([PENDING, BLOCKED], BLOCKED),
            ([CLEARED, PENDING, BLOCKED], BLOCKED),
        ],
    )
    def test_truth_table(self, statuses, expected):
        assert overall_status(statuses) == expected

    def test_blocked_wins_over_pending(self):
        # Property office flagged an unreturned book while others have not reviewed
        items = [
            _item(BLOCKED, "Property"),
            _item(PENDING, "Clinic"),
            _item(PENDING, "Adviser"),
        ]
        assert overall_status(items) == BLOCKED

    def test_order_does_not_matter(self):
        statuses = [CLEARED, PENDING, BLOCKED, CLEARED]
        results = {overall_status(list(p)) for p in itertools.permutations(statuses)}
        assert results == {BLOCKED}

    def test_accepts_items_and_generators(self):
        items = (_item(CLEARED, dept) for dept in ("Property", "Clinic", "Adviser"))
        assert overall_status(items) == CLEARED
