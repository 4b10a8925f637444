"""Audit trail of gatekeeper decisions (daily JSON lines files)."""

from gatekeeper.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
