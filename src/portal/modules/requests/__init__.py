"""
Requests module - student withdrawal and document requests.
"""

from portal.modules.requests.models import (
    DocumentRequest,
    DocumentType,
    DropoutRequest,
    RequestStatus,
)
from portal.modules.requests.repository import RequestRepository
from portal.modules.requests.workflow import (
    DOCUMENT_WORKFLOW,
    WITHDRAWAL_WORKFLOW,
    RequestWorkflow,
    WorkflowConfig,
)

__all__ = [
    "DOCUMENT_WORKFLOW",
    "WITHDRAWAL_WORKFLOW",
    "DocumentRequest",
    "DocumentType",
    "DropoutRequest",
    "RequestRepository",
    "RequestStatus",
    "RequestWorkflow",
    "WorkflowConfig",
]
