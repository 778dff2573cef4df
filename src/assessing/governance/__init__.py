"""Governance module for the assessing engine.

Provides the hash-chained audit trail for valuation runs.
"""

from assessing.governance.audit import AuditEntry, AuditLogger

__all__ = ["AuditEntry", "AuditLogger"]
