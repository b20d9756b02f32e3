"""
Audit Event Models

Every significant step of a settlement request is emitted as an
AuditEvent for structured logging. This provides:
1. Traceability of each request (all events share a correlation id)
2. Debugging information when a cross-check fails
3. A record of which corrections were accepted

DESIGN DECISION: Audit events are side output. They are never part of a
settlement object, so logging cannot affect idempotence.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the settlement flow has its own event type.
    """
    # Request lifecycle
    SETTLEMENT_REQUESTED = "settlement_requested"
    BALANCES_AGGREGATED = "balances_aggregated"

    # Algorithms
    ALGORITHM_COMPLETED = "algorithm_completed"
    SEARCH_FALLBACK = "search_fallback"
    RECOMMENDATION_SELECTED = "recommendation_selected"

    # Validation and proof
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"
    PROOF_GENERATED = "proof_generated"
    AUTO_CORRECTION_APPLIED = "auto_correction_applied"

    # Post-settlement
    MONITORING_WARNING = "monitoring_warning"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit log.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'settlement', 'proof', 'ledger')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by every event of one settlement request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by an organizer action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.settlement_requested(4, "greedy_debt_reduction", cid)
        event = AuditEventBuilder.proof_generated(settlement_id, proof_id, True, cid)
    """

    @staticmethod
    def settlement_requested(
        player_count: int,
        algorithm: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_REQUESTED,
            entity_type="settlement",
            correlation_id=correlation_id,
            description=f"Settlement requested for {player_count} players",
            details={
                "player_count": player_count,
                "algorithm": algorithm or "all",
            },
            is_user_action=True,
        )

    @staticmethod
    def balances_aggregated(
        player_count: int,
        net_sum: int,
        adjustments: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_AGGREGATED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Balances aggregated: net sum {net_sum}, {adjustments} adjustments",
            details={
                "player_count": player_count,
                "net_sum": net_sum,
                "fractional_cent_adjustments": adjustments,
            },
        )

    @staticmethod
    def algorithm_completed(
        algorithm: str,
        transaction_count: int,
        elapsed_ms: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALGORITHM_COMPLETED,
            severity=AuditSeverity.DEBUG,
            entity_type="algorithm",
            entity_id=algorithm,
            correlation_id=correlation_id,
            description=f"{algorithm} produced {transaction_count} payments",
            details={
                "transaction_count": transaction_count,
                "elapsed_ms": round(elapsed_ms, 3),
            },
        )

    @staticmethod
    def search_fallback(
        nodes_explored: int,
        elapsed_ms: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SEARCH_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="algorithm",
            entity_id="minimal_transactions",
            correlation_id=correlation_id,
            description="Minimal-transactions search exceeded its budget, using greedy plan",
            details={
                "nodes_explored": nodes_explored,
                "elapsed_ms": round(elapsed_ms, 3),
            },
        )

    @staticmethod
    def recommendation_selected(
        algorithm: str,
        overall_score: float,
        confidence: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOMMENDATION_SELECTED,
            entity_type="comparison",
            entity_id=algorithm,
            correlation_id=correlation_id,
            description=f"Recommended {algorithm} (score {overall_score:.2f})",
            details={
                "overall_score": overall_score,
                "confidence": confidence,
            },
        )

    @staticmethod
    def validation_passed(
        settlement_id: str,
        warning_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_PASSED,
            entity_type="settlement",
            entity_id=settlement_id,
            correlation_id=correlation_id,
            description=f"Validation passed with {warning_count} warnings",
            details={
                "warning_count": warning_count,
            },
        )

    @staticmethod
    def validation_failed(
        stage: str,
        errors: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="settlement",
            correlation_id=correlation_id,
            description=f"{stage.capitalize()} validation failed with {len(errors)} errors",
            details={
                "stage": stage,
                "errors": errors,
            },
        )

    @staticmethod
    def proof_generated(
        settlement_id: str,
        proof_id: str,
        is_valid: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROOF_GENERATED,
            severity=AuditSeverity.INFO if is_valid else AuditSeverity.ERROR,
            entity_type="proof",
            entity_id=proof_id,
            correlation_id=correlation_id,
            description=f"Proof generated for {settlement_id}",
            details={
                "settlement_id": settlement_id,
                "is_valid": is_valid,
            },
        )

    @staticmethod
    def auto_correction_applied(
        correction_id: str,
        affected_players: list[str],
        estimated_impact: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_CORRECTION_APPLIED,
            entity_type="correction",
            entity_id=correction_id,
            correlation_id=correlation_id,
            description=f"Correction {correction_id} accepted",
            details={
                "affected_players": affected_players,
                "estimated_impact": estimated_impact,
            },
            is_user_action=True,
        )

    @staticmethod
    def monitoring_warning(
        settlement_id: str,
        code: str,
        severity: str,
        message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONITORING_WARNING,
            severity=AuditSeverity.ERROR if severity == "critical" else AuditSeverity.WARNING,
            entity_type="settlement",
            entity_id=settlement_id,
            correlation_id=correlation_id,
            description=message[:500],
            details={
                "code": code,
                "warning_severity": severity,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_code=error_type,
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
