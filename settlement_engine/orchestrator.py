"""
Main Orchestrator for the Settlement Engine

This module ties together all the components and defines the
end-to-end flows for:
1. Settlement (ledger/balances -> normalize -> run -> validate -> prove)
2. Comparison (balances -> every algorithm -> scores -> recommendation)
3. Correction (accepted auto-correction -> full settlement flow again)

DESIGN DECISION: The orchestrator enforces the boundaries:
- An unbalanced snapshot never reaches an algorithm
- No settlement is returned without passing validation
- Every step is audited

Library components raise; this module converts engine errors and
blocking validation errors into Err outcomes. Warnings travel inside Ok.
"""

import hashlib
import json
from datetime import datetime
from typing import Iterable, Optional, Sequence, Union
from uuid import UUID

from settlement_engine.aggregation import (
    aggregate_balances,
    net_settled_amount,
    net_sum,
    normalize_positions,
)
from settlement_engine.algorithms import get_algorithm, parse_algorithm_type
from settlement_engine.algorithms.manual import ManualPayment
from settlement_engine.audit import AuditLogger, create_correlation_id
from settlement_engine.config import Settings, get_settings
from settlement_engine.errors import (
    AlgorithmDivergenceError,
    InvalidPaymentPlanError,
    PrecisionToleranceExceededError,
    SettlementEngineError,
    UnbalancedInputError,
    UnknownAlgorithmError,
)
from settlement_engine.models.balance import LedgerEntry, PaymentPlanEntry, PlayerBalance
from settlement_engine.models.result import Err, ErrorKind, Ok, SettlementOutcome
from settlement_engine.models.settlement import (
    AlgorithmRun,
    AlgorithmType,
    OptimizationMetrics,
    OptimizedSettlement,
    SettlementComparison,
    SettlementRecommendation,
)
from settlement_engine.models.validation import (
    ErrorCode,
    SettlementCorrection,
    SettlementValidation,
)
from settlement_engine.proof import ProofGenerator
from settlement_engine.scoring import SettlementComparator, optimization_percentage
from settlement_engine.validation import Clock, SettlementValidator, apply_auto_correction


ComparisonOutcome = Union[Ok[SettlementComparison], Err]

_ERROR_KINDS = {
    UnbalancedInputError: ErrorKind.UNBALANCED_INPUT,
    AlgorithmDivergenceError: ErrorKind.ALGORITHM_DIVERGENCE,
    PrecisionToleranceExceededError: ErrorKind.PRECISION_TOLERANCE_EXCEEDED,
    InvalidPaymentPlanError: ErrorKind.INVALID_REQUEST,
    UnknownAlgorithmError: ErrorKind.INVALID_REQUEST,
}


def settlement_id_for(
    balances: Sequence[PlayerBalance],
    algorithm: AlgorithmType,
    payments: Sequence[PaymentPlanEntry],
) -> str:
    """Content-derived id: the same snapshot and plan always get the same id."""
    content = {
        "algorithm": algorithm.value,
        "balances": [[b.player_id, b.net_position] for b in balances],
        "payments": [[p.from_player_id, p.to_player_id, p.amount] for p in payments],
    }
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"))
    return "stl_" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


class SettlementFlow:
    """
    Orchestrates settlement requests.

    Flow:
    1. Validate input → reject unbalanced or duplicated snapshots
    2. Normalize → absorb a within-tolerance remainder
    3. Run → requested algorithm, or all of them and recommend the best
    4. Validate → structural, business and cross-verification checks
    5. Prove → mathematical proof with checksum
    6. Return → Ok(settlement) or Err(kind)

    The engine is stateless; one flow instance can serve any number of
    sessions.

    Processing time is measured on the injected clock (the validator's
    by default), so a fixed clock yields identical settlements and trails.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        validator: Optional[SettlementValidator] = None,
        comparator: Optional[SettlementComparator] = None,
        proof_generator: Optional[ProofGenerator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or get_settings()
        self._validator = validator or SettlementValidator(self._settings, clock=clock)
        self._clock = clock or self._validator.clock
        self._comparator = comparator or SettlementComparator(self._settings, self._validator)
        self._proof_generator = proof_generator or ProofGenerator(self._settings)
        self._audit_logger = audit_logger

    # ========================================================================
    # Settlement
    # ========================================================================

    def settle(
        self,
        balances: Sequence[PlayerBalance],
        algorithm: Optional[Union[AlgorithmType, str]] = None,
        hub_player_id: Optional[str] = None,
        manual_payments: Optional[Sequence[ManualPayment]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementOutcome:
        """
        Settle a balance snapshot.

        Args:
            balances: One PlayerBalance per player
            algorithm: Strategy to use; None runs all and uses the recommendation
            hub_player_id: Hub for the hub-based plan (default: largest creditor)
            manual_payments: Organizer plan, required for manual settlement
            correlation_id: Shared by every audit event of this request

        Returns:
            Ok(OptimizedSettlement) or Err
        """
        correlation_id = correlation_id or create_correlation_id()
        started = self._clock()

        if self._audit_logger:
            self._audit_logger.log_settlement_requested(
                player_count=len(balances),
                algorithm=algorithm.value if isinstance(algorithm, AlgorithmType) else algorithm,
                correlation_id=correlation_id,
            )

        try:
            return self._settle(
                balances, algorithm, hub_player_id, manual_payments, correlation_id, started
            )
        except SettlementEngineError as e:
            return self._engine_error(e, correlation_id)

    def _settle(
        self,
        balances: Sequence[PlayerBalance],
        algorithm: Optional[Union[AlgorithmType, str]],
        hub_player_id: Optional[str],
        manual_payments: Optional[Sequence[ManualPayment]],
        correlation_id: UUID,
        started: datetime,
    ) -> SettlementOutcome:
        requested = parse_algorithm_type(algorithm) if algorithm is not None else None
        if requested == AlgorithmType.MANUAL_SETTLEMENT and manual_payments is None:
            raise InvalidPaymentPlanError("Manual settlement requires a payment plan")

        # Input stage
        input_validation = self._validator.validate_input(balances)
        if not input_validation.is_valid:
            return self._validation_error(input_validation, "input", correlation_id)

        tolerance = self._settings.engine.tolerance_for(len(balances))
        normalized, adjustments = normalize_positions(balances, tolerance)
        if self._audit_logger:
            self._audit_logger.log_balances_aggregated(
                player_count=len(balances),
                net_sum=net_sum(balances),
                adjustments=len(adjustments),
                correlation_id=correlation_id,
            )

        # Algorithms
        runs = self._run_algorithms(
            normalized, requested, hub_player_id, manual_payments, correlation_id
        )

        recommendation: Optional[SettlementRecommendation] = None
        if requested is None:
            comparison = self._comparator.compare(
                normalized,
                hub_player_id=hub_player_id,
                manual_payments=manual_payments,
                input_balances=balances,
                runs=runs,
            )
            if comparison.recommended is None:
                greedy = comparison.get(AlgorithmType.GREEDY_DEBT_REDUCTION)
                return self._validation_error(greedy.validation, "plan", correlation_id)
            chosen = comparison.recommended.algorithm
            recommendation = comparison.recommendation
            if self._audit_logger:
                self._audit_logger.log_recommendation_selected(
                    algorithm=chosen.value,
                    overall_score=comparison.recommended.scores.overall,
                    confidence=recommendation.confidence,
                    correlation_id=correlation_id,
                )
        else:
            chosen = requested

        run = runs[chosen]
        direct = runs[AlgorithmType.DIRECT_SETTLEMENT]
        cross_check = (
            direct if chosen == AlgorithmType.GREEDY_DEBT_REDUCTION
            else runs[AlgorithmType.GREEDY_DEBT_REDUCTION]
        )

        # Validation
        validation = self._validator.validate(
            normalized,
            run.payments,
            chosen,
            input_balances=balances,
            alternative=cross_check,
            baseline_count=direct.transaction_count,
            fell_back=run.fell_back,
            processing_time_ms=self._elapsed_ms(started),
        )
        if not validation.is_valid:
            return self._validation_error(validation, "plan", correlation_id)

        # Proof
        settlement_id = settlement_id_for(normalized, chosen, run.payments)
        proof = self._proof_generator.generate(
            settlement_id,
            chosen,
            normalized,
            run.payments,
            direct_count=direct.transaction_count,
            rounding_operations=run.rounding_operations,
            adjustments=adjustments,
            runs=runs,
            hub_player_id=hub_player_id,
        )
        if self._audit_logger:
            self._audit_logger.log_proof_generated(
                settlement_id=settlement_id,
                proof_id=proof.proof_id,
                is_valid=proof.is_valid,
                correlation_id=correlation_id,
            )
        if not proof.is_valid:
            return Err(
                kind=ErrorKind.VALIDATION_FAILED,
                message=f"Proof {proof.proof_id} failed verification",
                audit_trail=validation.audit_trail,
            )

        settlement = OptimizedSettlement(
            settlement_id=settlement_id,
            algorithm=chosen,
            balances=normalized,
            payments=run.payments,
            direct_payments=direct.payments,
            optimization_metrics=OptimizationMetrics(
                original_payment_count=direct.transaction_count,
                optimized_payment_count=run.transaction_count,
                reduction_percentage=optimization_percentage(
                    run.transaction_count, direct.transaction_count
                ),
                total_amount_settled=net_settled_amount(run.payments),
                processing_time_ms=self._elapsed_ms(started),
            ),
            mathematical_proof=proof,
            validation=validation,
            validation_errors=validation.errors,
            validation_warnings=validation.warnings,
            is_valid=validation.is_valid and proof.is_valid,
            recommendation=recommendation,
        )

        if self._audit_logger:
            self._audit_logger.log_validation_passed(
                settlement_id=settlement_id,
                warning_count=len(validation.warnings),
                correlation_id=correlation_id,
            )

        return Ok[OptimizedSettlement](value=settlement)

    def _elapsed_ms(self, started: datetime) -> float:
        """Milliseconds since started, on the injected clock."""
        return (self._clock() - started).total_seconds() * 1000

    def _run_algorithms(
        self,
        balances: Sequence[PlayerBalance],
        requested: Optional[AlgorithmType],
        hub_player_id: Optional[str],
        manual_payments: Optional[Sequence[ManualPayment]],
        correlation_id: UUID,
    ) -> dict[AlgorithmType, AlgorithmRun]:
        """The requested algorithm plus the baseline and cross-check, or everything."""
        if requested is None:
            runs = self._comparator.run_all(balances, hub_player_id, manual_payments)
        else:
            runs = {}
            for algorithm_type in (
                AlgorithmType.DIRECT_SETTLEMENT,
                AlgorithmType.GREEDY_DEBT_REDUCTION,
                requested,
            ):
                if algorithm_type in runs:
                    continue
                runs[algorithm_type] = get_algorithm(
                    algorithm_type,
                    settings=self._settings,
                    hub_player_id=hub_player_id,
                    manual_payments=manual_payments,
                ).run(balances)

        if self._audit_logger:
            for run in runs.values():
                self._audit_logger.log_algorithm_completed(
                    algorithm=run.algorithm.value,
                    transaction_count=run.transaction_count,
                    elapsed_ms=run.elapsed_ms,
                    correlation_id=correlation_id,
                )
                if run.fell_back:
                    self._audit_logger.log_search_fallback(
                        nodes_explored=run.nodes_explored,
                        elapsed_ms=run.elapsed_ms,
                        correlation_id=correlation_id,
                    )
        return runs

    def settle_ledger(
        self,
        entries: Iterable[LedgerEntry],
        chip_counts: Optional[dict[str, int]] = None,
        algorithm: Optional[Union[AlgorithmType, str]] = None,
        hub_player_id: Optional[str] = None,
        manual_payments: Optional[Sequence[ManualPayment]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementOutcome:
        """Aggregate ledger entries, then settle the resulting balances."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            balances = aggregate_balances(entries, chip_counts, self._settings.engine)
        except UnbalancedInputError as e:
            return self._engine_error(e, correlation_id)
        except ValueError as e:
            return Err(kind=ErrorKind.INVALID_REQUEST, message=str(e))

        return self.settle(
            balances,
            algorithm=algorithm,
            hub_player_id=hub_player_id,
            manual_payments=manual_payments,
            correlation_id=correlation_id,
        )

    # ========================================================================
    # Comparison
    # ========================================================================

    def compare(
        self,
        balances: Sequence[PlayerBalance],
        hub_player_id: Optional[str] = None,
        manual_payments: Optional[Sequence[ManualPayment]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ComparisonOutcome:
        """
        Compare every strategy for a snapshot, for UIs that let the organizer pick.

        Returns:
            Ok(SettlementComparison) or Err
        """
        correlation_id = correlation_id or create_correlation_id()

        input_validation = self._validator.validate_input(balances)
        if not input_validation.is_valid:
            return self._validation_error(input_validation, "input", correlation_id)

        try:
            comparison = self._comparator.compare(
                balances,
                hub_player_id=hub_player_id,
                manual_payments=manual_payments,
            )
        except SettlementEngineError as e:
            return self._engine_error(e, correlation_id)

        if self._audit_logger and comparison.recommended is not None:
            self._audit_logger.log_recommendation_selected(
                algorithm=comparison.recommended.algorithm.value,
                overall_score=comparison.recommended.scores.overall,
                confidence=comparison.recommendation.confidence,
                correlation_id=correlation_id,
            )

        return Ok[SettlementComparison](value=comparison)

    # ========================================================================
    # Corrections
    # ========================================================================

    def accept_correction(
        self,
        balances: Sequence[PlayerBalance],
        correction: SettlementCorrection,
        algorithm: Optional[Union[AlgorithmType, str]] = None,
        hub_player_id: Optional[str] = None,
        manual_payments: Optional[Sequence[ManualPayment]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementOutcome:
        """
        Apply an accepted auto-correction and settle the corrected snapshot.

        CRITICAL: Called ONLY after the organizer explicitly accepts the
        correction. The corrected snapshot goes through the full flow,
        validation included.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            corrected = apply_auto_correction(balances, correction)
        except ValueError as e:
            return Err(kind=ErrorKind.INVALID_REQUEST, message=str(e))

        if self._audit_logger:
            self._audit_logger.log_auto_correction_applied(
                correction_id=correction.correction_id,
                affected_players=correction.affected_players,
                estimated_impact=correction.estimated_impact,
                correlation_id=correlation_id,
            )

        return self.settle(
            corrected,
            algorithm=algorithm,
            hub_player_id=hub_player_id,
            manual_payments=manual_payments,
            correlation_id=correlation_id,
        )

    # ========================================================================
    # Error conversion
    # ========================================================================

    def _validation_error(
        self,
        validation: SettlementValidation,
        stage: str,
        correlation_id: UUID,
    ) -> Err:
        codes = {e.code for e in validation.errors}
        if ErrorCode.UNBALANCED_INPUT in codes:
            kind = ErrorKind.UNBALANCED_INPUT
        elif ErrorCode.ALGORITHM_DIVERGENCE in codes:
            kind = ErrorKind.ALGORITHM_DIVERGENCE
        elif stage == "input":
            kind = ErrorKind.INVALID_REQUEST
        else:
            kind = ErrorKind.VALIDATION_FAILED

        if self._audit_logger:
            self._audit_logger.log_validation_failed(
                stage=stage,
                errors=[
                    {"code": e.code.value, "severity": e.severity.value, "message": e.message}
                    for e in validation.errors
                ],
                correlation_id=correlation_id,
            )
            if kind == ErrorKind.ALGORITHM_DIVERGENCE:
                self._audit_logger.log_error(
                    error_type=kind.value,
                    error_message="; ".join(
                        e.message for e in validation.errors
                        if e.code == ErrorCode.ALGORITHM_DIVERGENCE
                    ),
                    correlation_id=correlation_id,
                )

        return Err(
            kind=kind,
            message="; ".join(e.message for e in validation.errors),
            errors=validation.errors,
            audit_trail=validation.audit_trail,
        )

    def _engine_error(self, error: SettlementEngineError, correlation_id: UUID) -> Err:
        kind = _ERROR_KINDS.get(type(error), ErrorKind.INVALID_REQUEST)
        if self._audit_logger:
            self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                details={"kind": kind.value},
                correlation_id=correlation_id,
            )
        return Err(kind=kind, message=str(error))
