"""
Enrollment module - applications from prospective students.
"""

from portal.modules.enrollment.models import ApplicationStatus, EnrollmentApplication
from portal.modules.enrollment.repository import EnrollmentRepository

__all__ = ["ApplicationStatus", "EnrollmentApplication", "EnrollmentRepository"]
