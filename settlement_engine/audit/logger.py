"""
Audit Logger

DESIGN DECISION: Every significant step of a settlement request is logged.
This provides:
1. Complete traceability of each request
2. Debugging capability when a cross-check fails
3. A record of which corrections the organizer accepted

The audit logger:
- Is synchronous, like the engine it observes
- Gracefully handles failures (a broken sink never changes a settlement)
- Supports correlation IDs to trace related events
"""

from typing import Callable, Optional
from uuid import UUID, uuid4

import structlog

from settlement_engine.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


AuditSink = Callable[[AuditEvent], None]


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional sink supplied by the caller (session history, export)
    """

    def __init__(
        self,
        sink: Optional[AuditSink] = None,
    ):
        """
        Initialize audit logger.

        Args:
            sink: Callable receiving every event.
                  If None, only logs locally.
        """
        self._sink = sink
        self._logger = structlog.get_logger("settlement_engine.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Forwards to the sink if available.

        Returns True if the sink accepted the event (or no sink configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._sink:
            try:
                self._sink(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_settlement_requested(
        self,
        player_count: int,
        algorithm: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log the start of a settlement request."""
        self.log(AuditEventBuilder.settlement_requested(
            player_count=player_count,
            algorithm=algorithm,
            correlation_id=correlation_id,
        ))

    def log_balances_aggregated(
        self,
        player_count: int,
        net_sum: int,
        adjustments: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.balances_aggregated(
            player_count=player_count,
            net_sum=net_sum,
            adjustments=adjustments,
            correlation_id=correlation_id,
        ))

    def log_algorithm_completed(
        self,
        algorithm: str,
        transaction_count: int,
        elapsed_ms: float,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.algorithm_completed(
            algorithm=algorithm,
            transaction_count=transaction_count,
            elapsed_ms=elapsed_ms,
            correlation_id=correlation_id,
        ))

    def log_search_fallback(
        self,
        nodes_explored: int,
        elapsed_ms: float,
        correlation_id: UUID,
    ) -> None:
        """Log that the bounded search gave up and greedy was used."""
        self.log(AuditEventBuilder.search_fallback(
            nodes_explored=nodes_explored,
            elapsed_ms=elapsed_ms,
            correlation_id=correlation_id,
        ))

    def log_recommendation_selected(
        self,
        algorithm: str,
        overall_score: float,
        confidence: float,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.recommendation_selected(
            algorithm=algorithm,
            overall_score=overall_score,
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    def log_validation_passed(
        self,
        settlement_id: str,
        warning_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.validation_passed(
            settlement_id=settlement_id,
            warning_count=warning_count,
            correlation_id=correlation_id,
        ))

    def log_validation_failed(
        self,
        stage: str,
        errors: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        self.log(AuditEventBuilder.validation_failed(
            stage=stage,
            errors=errors,
            correlation_id=correlation_id,
        ))

    def log_proof_generated(
        self,
        settlement_id: str,
        proof_id: str,
        is_valid: bool,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.proof_generated(
            settlement_id=settlement_id,
            proof_id=proof_id,
            is_valid=is_valid,
            correlation_id=correlation_id,
        ))

    def log_auto_correction_applied(
        self,
        correction_id: str,
        affected_players: list[str],
        estimated_impact: int,
        correlation_id: UUID,
    ) -> None:
        """Log that the organizer accepted a correction."""
        self.log(AuditEventBuilder.auto_correction_applied(
            correction_id=correction_id,
            affected_players=affected_players,
            estimated_impact=estimated_impact,
            correlation_id=correlation_id,
        ))

    def log_monitoring_warning(
        self,
        settlement_id: str,
        code: str,
        severity: str,
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.monitoring_warning(
            settlement_id=settlement_id,
            code=code,
            severity=severity,
            message=message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a settlement request.
    Pass it through all subsequent operations.
    """
    return uuid4()
