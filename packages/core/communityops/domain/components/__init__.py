"""Domain components."""

from communityops.domain.components.audit_trail import AuditTrail
from communityops.domain.components.bulk_import import BulkImportPipeline
from communityops.domain.components.resilient_invoker import (
    ResilientInvoker,
    classify_error,
    classify_message,
)

__all__ = [
    "AuditTrail",
    "BulkImportPipeline",
    "ResilientInvoker",
    "classify_error",
    "classify_message",
]
