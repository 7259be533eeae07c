"""
Audit Package.

Exports AuditLogger and EvidenceStore.
"""

from .audit_logger import AuditLogger
from .evidence_store import EvidenceStore

__all__ = ["AuditLogger", "EvidenceStore"]
