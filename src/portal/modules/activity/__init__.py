"""
Activity module - persisted trail of lifecycle events.
"""

from portal.modules.activity.models import ActivityCategory, ActivityLog
from portal.modules.activity.repository import ActivityRepository

__all__ = ["ActivityCategory", "ActivityLog", "ActivityRepository"]
