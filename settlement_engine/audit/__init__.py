"""Audit logging package."""

from settlement_engine.audit.logger import AuditLogger, AuditSink, create_correlation_id

__all__ = ["AuditLogger", "AuditSink", "create_correlation_id"]
