"""
vaultrelay Observation Ledger - signed, hash-chained audit trail.
"""

from vaultrelay.ledger.audit import AuditSummary, AuditViolation, audit_log
from vaultrelay.ledger.observations import ObservationLog

__all__ = ["ObservationLog", "AuditSummary", "AuditViolation", "audit_log"]
