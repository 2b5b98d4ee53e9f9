"""
Lifecycle Module

The student lifecycle engine:
    applicant -> verified_applicant -> active_student
              -> withdrawal_requested -> dropped

API Endpoints:
- POST /enrollment/applications - Submit an enrollment application
- /students/me/* - Clearance, withdrawals and document requests for the caller
- /admin/* - Application decisions, request resolution and clearance review

Background Jobs (via APScheduler):
- lifecycle_purge_tokens: hourly
- lifecycle_reconcile: every 15 minutes
"""

from .admin_router import router as admin_router
from .jobs import register_lifecycle_jobs
from .router import enrollment_router, router

__all__ = ["admin_router", "enrollment_router", "register_lifecycle_jobs", "router"]
