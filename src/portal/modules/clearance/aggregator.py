"""
Clearance aggregation.

Folds a student's per-department verdicts into one overall status:

- ``cleared`` only when there is at least one item and all are cleared
- ``blocked`` when any item is blocked, even if others are still pending
- ``pending`` otherwise, including when there are no items at all
"""

from collections.abc import Iterable

from .models import ClearanceItem, ClearanceStatus

# Higher rank wins
_RANK = {
    ClearanceStatus.CLEARED: 0,
    ClearanceStatus.PENDING: 1,
    ClearanceStatus.BLOCKED: 2,
}


def overall_status(items: Iterable[ClearanceItem | ClearanceStatus]) -> ClearanceStatus:
    """Compute the overall clearance verdict. Order of ``items`` does not matter."""
    statuses = [item if isinstance(item, ClearanceStatus) else item.status for item in items]
    if not statuses:
        return ClearanceStatus.PENDING
    return max(statuses, key=_RANK.__getitem__)
