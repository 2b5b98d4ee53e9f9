"""
Clearance module - per-department clearance of departing students.
"""

from portal.modules.clearance.aggregator import overall_status
from portal.modules.clearance.models import ClearanceItem, ClearanceStatus
from portal.modules.clearance.repository import ClearanceRepository

__all__ = ["ClearanceItem", "ClearanceRepository", "ClearanceStatus", "overall_status"]
