"""Settlement validation package."""

from settlement_engine.validation.validator import (
    SEVERITY_MESSAGES,
    AuditTrail,
    Clock,
    SettlementValidator,
    apply_auto_correction,
    correction_id_for,
    ensure_consensus,
    summarize_validation,
    utc_now,
)

__all__ = [
    "SEVERITY_MESSAGES",
    "AuditTrail",
    "Clock",
    "SettlementValidator",
    "apply_auto_correction",
    "correction_id_for",
    "ensure_consensus",
    "summarize_validation",
    "utc_now",
]
