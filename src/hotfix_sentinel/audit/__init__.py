"""
Audit trail of workflow runs.
"""

from .trail import (
    AuditBackend,
    AuditEvent,
    AuditEventType,
    AuditTrail,
    InMemoryAuditBackend,
    JsonlAuditBackend,
)

__all__ = [
    "AuditBackend",
    "AuditEvent",
    "AuditEventType",
    "AuditTrail",
    "InMemoryAuditBackend",
    "JsonlAuditBackend",
]
