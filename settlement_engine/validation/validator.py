"""
Settlement Validation Pipeline

DESIGN DECISION: Validation happens in ordered stages:

STAGE 1 - INPUT:
- Net positions sum to zero within tolerance
- No player appears twice
A failure here stops the pipeline; nothing downstream is meaningful.

STAGE 2 - STRUCTURAL:
- Every amount is positive
- Nobody pays themselves
- No duplicate (from, to) pair unless it is one split into installments
- Every payment names a player of the snapshot

STAGE 3 - BUSINESS:
- Each debtor's net outflow equals their debt
- Each creditor's net inflow equals their credit
- Total settled equals total credit

STAGE 4 - CROSS-VERIFICATION:
- Totals agree with an independent algorithm's totals

STAGE 5 - WARNINGS:
- Non-blocking findings, attached to a still-valid result

Every check appends one AuditTrailEntry, in the order executed.

IMPORTANT: Validation NEVER silently fixes issues. A fix is offered as
an auto-correction that the caller may accept or reject.
"""

import hashlib
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from settlement_engine.aggregation import (
    find_absorber,
    net_settled_amount,
    net_sum,
    payment_flows,
)
from settlement_engine.algorithms import run_algorithm
from settlement_engine.config import Settings, get_settings
from settlement_engine.errors import AlgorithmDivergenceError
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmRun, AlgorithmType
from settlement_engine.models.validation import (
    AuditTrailEntry,
    CorrectionType,
    ErrorCode,
    PlayerCorrection,
    SettlementCorrection,
    SettlementError,
    SettlementValidation,
    SettlementWarning,
    Severity,
    WarningCode,
)


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


SEVERITY_MESSAGES = {
    Severity.CRITICAL: "Settlement cannot proceed until this is resolved.",
    Severity.MAJOR: "Manual approval required before proceeding.",
    Severity.MINOR: "Consider reviewing before finalizing settlement.",
}


class AuditTrail:
    """Ordered, append-only list of audit entries for one validation run."""

    def __init__(self, clock: Clock):
        self._clock = clock
        self._entries: list[AuditTrailEntry] = []

    def record(
        self,
        operation: str,
        input: dict[str, Any],
        output: dict[str, Any],
        validation_check: bool,
    ) -> None:
        self._entries.append(AuditTrailEntry(
            step=len(self._entries) + 1,
            operation=operation,
            input=input,
            output=output,
            validation_check=validation_check,
            timestamp=self._clock(),
        ))

    @property
    def entries(self) -> list[AuditTrailEntry]:
        return list(self._entries)


def ensure_consensus(
    primary: str,
    primary_total: int,
    alternative: str,
    alternative_total: int,
    tolerance: int,
) -> None:
    """Raise AlgorithmDivergenceError if two settled totals differ beyond tolerance."""
    if abs(primary_total - alternative_total) > tolerance:
        raise AlgorithmDivergenceError(
            primary=primary,
            alternative=alternative,
            primary_total=primary_total,
            alternative_total=alternative_total,
        )


def correction_id_for(corrections: Sequence[PlayerCorrection]) -> str:
    """Content-derived id, so identical input yields an identical correction."""
    key = "|".join(
        f"{c.player_id}:{c.original_value}:{c.suggested_value}" for c in corrections
    )
    return "corr_" + hashlib.sha256(key.encode()).hexdigest()[:12]


class SettlementValidator:
    """
    Validates a payment plan against the balance snapshot it settles.

    Stateless apart from configuration; the clock is injectable so that
    audit trails are reproducible in tests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or get_settings()
        self._engine = self._settings.engine
        self._warning_settings = self._settings.warnings
        self._clock = clock or utc_now

    @property
    def clock(self) -> Clock:
        return self._clock

    # ========================================================================
    # Stage 1: input
    # ========================================================================

    def _check_input(
        self,
        balances: Sequence[PlayerBalance],
        trail: AuditTrail,
        tolerance: int,
    ) -> list[SettlementError]:
        errors = []

        total = net_sum(balances)
        balanced = abs(total) <= tolerance
        trail.record(
            "input_balance_check",
            {"player_count": len(balances), "net_sum": total, "tolerance": tolerance},
            {"within_tolerance": balanced, "remainder": total},
            balanced,
        )
        if not balanced:
            errors.append(SettlementError(
                code=ErrorCode.UNBALANCED_INPUT,
                message=(
                    f"Net positions sum to {total} minor units "
                    f"(tolerance {tolerance}); the ledger is inconsistent"
                ),
                suggested_fix="Check buy-ins and cash-outs for missing or duplicated entries",
            ))

        seen = set()
        duplicates = []
        for balance in balances:
            if balance.player_id in seen and balance.player_id not in duplicates:
                duplicates.append(balance.player_id)
            seen.add(balance.player_id)
        trail.record(
            "unique_players_check",
            {"player_count": len(balances)},
            {"duplicate_players": duplicates},
            not duplicates,
        )
        if duplicates:
            errors.append(SettlementError(
                code=ErrorCode.DUPLICATE_PLAYER,
                message=f"Players listed more than once: {', '.join(duplicates)}",
                affected_players=duplicates,
                suggested_fix="Aggregate each player's entries into one balance",
            ))

        return errors

    # ========================================================================
    # Stage 2: structural
    # ========================================================================

    def _check_structure(
        self,
        balances: Sequence[PlayerBalance],
        payments: Sequence[PaymentPlanEntry],
        trail: AuditTrail,
    ) -> list[SettlementError]:
        errors = []

        bad_amounts = [p for p in payments if p.amount <= 0]
        trail.record(
            "positive_amounts_check",
            {"payment_count": len(payments)},
            {"non_positive_payments": [p.priority for p in bad_amounts]},
            not bad_amounts,
        )
        for payment in bad_amounts:
            errors.append(SettlementError(
                code=ErrorCode.NON_POSITIVE_AMOUNT,
                message=(
                    f"Payment #{payment.priority} from {payment.from_player_id} to "
                    f"{payment.to_player_id} has non-positive amount {payment.amount}"
                ),
                affected_players=[payment.from_player_id, payment.to_player_id],
                suggested_fix="Remove the payment or enter a positive amount",
            ))

        self_payments = [p for p in payments if p.from_player_id == p.to_player_id]
        trail.record(
            "self_payment_check",
            {"payment_count": len(payments)},
            {"self_payments": [p.priority for p in self_payments]},
            not self_payments,
        )
        for payment in self_payments:
            errors.append(SettlementError(
                code=ErrorCode.SELF_PAYMENT,
                message=f"Payment #{payment.priority} has {payment.from_player_id} paying themselves",
                affected_players=[payment.from_player_id],
                suggested_fix="Remove the payment",
            ))

        duplicate_pairs = self._find_duplicate_pairs(payments)
        trail.record(
            "duplicate_pair_check",
            {"payment_count": len(payments)},
            {"duplicate_pairs": [f"{a}->{b}" for a, b in duplicate_pairs]},
            not duplicate_pairs,
        )
        for from_id, to_id in duplicate_pairs:
            errors.append(SettlementError(
                code=ErrorCode.DUPLICATE_PAYMENT_PAIR,
                message=f"{from_id} pays {to_id} more than once",
                severity=Severity.MAJOR,
                affected_players=[from_id, to_id],
                suggested_fix="Consolidate the payments into one",
            ))

        known = {b.player_id for b in balances}
        unknown = sorted({
            player_id
            for p in payments
            for player_id in (p.from_player_id, p.to_player_id)
            if player_id not in known
        })
        trail.record(
            "known_players_check",
            {"player_count": len(known), "payment_count": len(payments)},
            {"unknown_players": unknown},
            not unknown,
        )
        if unknown:
            errors.append(SettlementError(
                code=ErrorCode.UNKNOWN_PLAYER,
                message=f"Payments reference players outside this session: {', '.join(unknown)}",
                affected_players=unknown,
                suggested_fix="Only settle between players of this session",
            ))

        return errors

    @staticmethod
    def _find_duplicate_pairs(payments: Sequence[PaymentPlanEntry]) -> list[tuple[str, str]]:
        """Pairs that occur more than once and are not one consistent installment split."""
        by_pair: dict[tuple[str, str], list[PaymentPlanEntry]] = {}
        for payment in payments:
            by_pair.setdefault(payment.pair, []).append(payment)

        duplicates = []
        for pair, entries in by_pair.items():
            if len(entries) < 2:
                continue
            count = len(entries)
            consolidated = (
                all(e.is_installment for e in entries)
                and all(e.installments == count for e in entries)
                and sorted(e.installment for e in entries) == list(range(1, count + 1))
            )
            if not consolidated:
                duplicates.append(pair)
        return duplicates

    # ========================================================================
    # Stage 3: business
    # ========================================================================

    def _check_business(
        self,
        balances: Sequence[PlayerBalance],
        payments: Sequence[PaymentPlanEntry],
        trail: AuditTrail,
        tolerance: int,
    ) -> tuple[list[SettlementError], list[tuple[str, int]]]:
        """
        Returns (errors, near_misses); a near miss is (player_id, diff)
        with 0 < |diff| <= tolerance.
        """
        errors = []
        near_misses = []
        flows = payment_flows(payments)

        debtor_mismatches = []
        creditor_mismatches = []
        for balance in balances:
            paid, received = flows.get(balance.player_id, (0, 0))
            diff = (received - paid) - balance.net_position
            if diff == 0:
                continue
            if abs(diff) <= tolerance:
                near_misses.append((balance.player_id, diff))
            elif balance.net_position > 0:
                creditor_mismatches.append((balance, paid, received))
            else:
                debtor_mismatches.append((balance, paid, received))

        debtor_count = sum(1 for b in balances if b.net_position <= 0)
        trail.record(
            "debtor_payment_check",
            {"debtor_count": debtor_count, "tolerance": tolerance},
            {"mismatched_players": [b.player_id for b, _, _ in debtor_mismatches]},
            not debtor_mismatches,
        )
        for balance, paid, received in debtor_mismatches:
            errors.append(SettlementError(
                code=ErrorCode.DEBTOR_PAYMENT_MISMATCH,
                message=(
                    f"{balance.display_name} owes {-balance.net_position} but pays "
                    f"{paid - received} net"
                ),
                affected_players=[balance.player_id],
                suggested_fix="Adjust the payments so the debt is paid exactly",
            ))

        creditor_count = sum(1 for b in balances if b.net_position > 0)
        trail.record(
            "creditor_receipt_check",
            {"creditor_count": creditor_count, "tolerance": tolerance},
            {"mismatched_players": [b.player_id for b, _, _ in creditor_mismatches]},
            not creditor_mismatches,
        )
        for balance, paid, received in creditor_mismatches:
            errors.append(SettlementError(
                code=ErrorCode.CREDITOR_RECEIPT_MISMATCH,
                message=(
                    f"{balance.display_name} is owed {balance.net_position} but receives "
                    f"{received - paid} net"
                ),
                affected_players=[balance.player_id],
                suggested_fix="Adjust the payments so the credit is received exactly",
            ))

        total_credit = sum(b.net_position for b in balances if b.net_position > 0)
        settled = net_settled_amount(payments)
        conserved = abs(settled - total_credit) <= tolerance
        trail.record(
            "conservation_check",
            {"total_credit": total_credit, "tolerance": tolerance},
            {"total_settled": settled, "difference": settled - total_credit},
            conserved,
        )
        if not conserved:
            errors.append(SettlementError(
                code=ErrorCode.CONSERVATION_VIOLATION,
                message=(
                    f"Payments settle {settled} but creditors are owed {total_credit}"
                ),
                suggested_fix="The plan creates or destroys money; regenerate it",
            ))

        return errors, near_misses

    # ========================================================================
    # Stage 4: cross-verification
    # ========================================================================

    def _cross_verify(
        self,
        balances: Sequence[PlayerBalance],
        payments: Sequence[PaymentPlanEntry],
        algorithm: AlgorithmType,
        alternative: Optional[AlgorithmRun],
        trail: AuditTrail,
        tolerance: int,
    ) -> list[SettlementError]:
        if alternative is None:
            alternative_type = (
                AlgorithmType.DIRECT_SETTLEMENT
                if algorithm == AlgorithmType.GREEDY_DEBT_REDUCTION
                else AlgorithmType.GREEDY_DEBT_REDUCTION
            )
            alternative = run_algorithm(alternative_type, balances, settings=self._settings)

        primary_total = net_settled_amount(payments)
        alternative_total = net_settled_amount(alternative.payments)
        try:
            ensure_consensus(
                algorithm.value, primary_total,
                alternative.algorithm.value, alternative_total,
                tolerance,
            )
            agrees = True
        except AlgorithmDivergenceError as e:
            agrees = False
            divergence = str(e)
        trail.record(
            "cross_verification",
            {
                "algorithm": algorithm.value,
                "alternative_algorithm": alternative.algorithm.value,
                "tolerance": tolerance,
            },
            {
                "primary_total": primary_total,
                "alternative_total": alternative_total,
                "difference": primary_total - alternative_total,
            },
            agrees,
        )

        # A manual plan that disagrees is already reported by stage 3
        if agrees or algorithm == AlgorithmType.MANUAL_SETTLEMENT:
            return []
        return [SettlementError(
            code=ErrorCode.ALGORITHM_DIVERGENCE,
            message=divergence,
            suggested_fix="Engine defect: report this snapshot",
        )]

    # ========================================================================
    # Stage 5: warnings
    # ========================================================================

    def _warning(
        self,
        code: WarningCode,
        message: str,
        severity: Severity,
        affected_players: Optional[list[str]] = None,
        balance_discrepancy: int = 0,
        suggested_actions: Optional[list[str]] = None,
        auto_correction: Optional[SettlementCorrection] = None,
        requires_approval: Optional[bool] = None,
    ) -> SettlementWarning:
        if requires_approval is None:
            requires_approval = (
                severity == Severity.CRITICAL
                or abs(balance_discrepancy) > self._warning_settings.require_approval_threshold_minor_units
            )
        return SettlementWarning(
            code=code,
            message=message,
            severity=severity,
            affected_players=affected_players or [],
            can_proceed=severity != Severity.CRITICAL,
            requires_approval=requires_approval,
            balance_discrepancy=balance_discrepancy,
            suggested_actions=suggested_actions or [],
            auto_correction=auto_correction,
        )

    def _input_remainder_correction(
        self,
        balances: Sequence[PlayerBalance],
        remainder: int,
    ) -> Optional[SettlementCorrection]:
        """Suggest the same absorption the engine applies, for the upstream ledger."""
        if not self._warning_settings.enable_auto_correction:
            return None
        if abs(remainder) > self._warning_settings.auto_correct_threshold_minor_units:
            return None
        absorber = find_absorber(balances, remainder)
        if absorber is None:
            return None
        corrections = [PlayerCorrection(
            player_id=absorber.player_id,
            player_name=absorber.name,
            original_value=absorber.net_position,
            suggested_value=absorber.net_position - remainder,
            reason="Absorb the rounding remainder so positions sum to zero",
        )]
        return SettlementCorrection(
            correction_id=correction_id_for(corrections),
            type=CorrectionType.AUTOMATIC,
            description=f"Adjust {absorber.display_name} by {-remainder} to balance the ledger",
            affected_players=[absorber.player_id],
            corrections=corrections,
            estimated_impact=abs(remainder),
        )

    def _collect_warnings(
        self,
        input_balances: Sequence[PlayerBalance],
        balances: Sequence[PlayerBalance],
        payments: Sequence[PaymentPlanEntry],
        algorithm: AlgorithmType,
        near_misses: list[tuple[str, int]],
        trail: AuditTrail,
        tolerance: int,
        baseline_count: Optional[int],
        fell_back: bool,
        processing_time_ms: Optional[float],
    ) -> list[SettlementWarning]:
        warnings = []
        engine = self._engine

        # Precision near-misses
        remainder = net_sum(input_balances)
        precision_warnings = []
        if remainder != 0:
            precision_warnings.append(self._warning(
                WarningCode.PRECISION_NEAR_MISS,
                (
                    f"Net positions sum to {remainder} minor units; within tolerance "
                    f"({tolerance}) and absorbed by the settlement"
                ),
                Severity.MINOR,
                balance_discrepancy=remainder,
                suggested_actions=[
                    "Review recent transactions for accuracy",
                    "Check for any voided or missing transactions",
                ],
                auto_correction=self._input_remainder_correction(input_balances, remainder),
            ))
        for player_id, diff in near_misses:
            precision_warnings.append(self._warning(
                WarningCode.PRECISION_NEAR_MISS,
                f"Payments for {player_id} are off by {diff} minor units (within tolerance)",
                Severity.MINOR,
                affected_players=[player_id],
                balance_discrepancy=diff,
                suggested_actions=["Adjust the payment amounts by hand"],
            ))
        trail.record(
            "precision_check",
            {"input_remainder": remainder, "tolerance": tolerance},
            {"near_misses": len(precision_warnings)},
            True,
        )
        warnings.extend(precision_warnings)

        # Payment sizes
        threshold = engine.large_payment_threshold_minor_units
        large = [p for p in payments if p.amount > threshold]
        trail.record(
            "payment_size_check",
            {"threshold": threshold},
            {"large_payments": [p.priority for p in large]},
            True,
        )
        for payment in large:
            warnings.append(self._warning(
                WarningCode.LARGE_SINGLE_PAYMENT,
                (
                    f"{payment.from_player_name or payment.from_player_id} pays "
                    f"{payment.amount} to {payment.to_player_name or payment.to_player_id} "
                    "in a single payment"
                ),
                Severity.MAJOR,
                affected_players=[payment.from_player_id, payment.to_player_id],
                suggested_actions=[
                    "Confirm the amount with both players",
                    "Consider the balanced flow plan to split it",
                ],
                requires_approval=False,
            ))

        # Participants
        active = [b for b in balances if b.net_position != 0]
        trail.record(
            "participant_check",
            {"player_count": len(balances)},
            {"active_players": len(active)},
            True,
        )
        if len(balances) < 2 or len(active) < 2:
            warnings.append(self._warning(
                WarningCode.SINGLE_PLAYER,
                (
                    "Only one player in this session"
                    if len(balances) < 2
                    else "Fewer than two players have an open position; no payments are needed"
                ),
                Severity.MINOR,
                affected_players=[b.player_id for b in active],
            ))

        # Positions
        flagged = []
        for balance in balances:
            if balance.net_position < -engine.large_negative_position_minor_units:
                flagged.append(balance.player_id)
                warnings.append(self._warning(
                    WarningCode.LARGE_NEGATIVE_POSITION,
                    f"Player {balance.display_name} has large negative position: {-balance.net_position}",
                    Severity.MAJOR,
                    affected_players=[balance.player_id],
                    balance_discrepancy=abs(balance.net_position),
                    suggested_actions=[
                        f"Verify {balance.display_name}'s chip count",
                        "Check buy-in and cash-out transaction history",
                        "Confirm this reflects actual game state",
                    ],
                    requires_approval=True,
                ))
            elif balance.net_position > engine.large_positive_position_minor_units:
                flagged.append(balance.player_id)
                warnings.append(self._warning(
                    WarningCode.LARGE_POSITIVE_POSITION,
                    f"Player {balance.display_name} has large positive position: {balance.net_position}",
                    Severity.MINOR,
                    affected_players=[balance.player_id],
                    balance_discrepancy=balance.net_position,
                    suggested_actions=[
                        f"Verify {balance.display_name}'s current chip count",
                        "Confirm large winnings are accurate",
                    ],
                    requires_approval=False,
                ))
        trail.record(
            "position_check",
            {
                "large_negative_threshold": engine.large_negative_position_minor_units,
                "large_positive_threshold": engine.large_positive_position_minor_units,
            },
            {"flagged_players": flagged},
            True,
        )

        # Performance
        budget = engine.processing_time_budget_ms
        over_budget = processing_time_ms is not None and processing_time_ms > budget
        trail.record(
            "performance_check",
            {"processing_time_budget_ms": budget},
            {"search_fell_back": fell_back, "over_budget": over_budget},
            True,
        )
        if over_budget:
            warnings.append(self._warning(
                WarningCode.PROCESSING_TIME_EXCEEDED,
                f"Settlement took {processing_time_ms:.0f} ms, budget is {budget} ms",
                Severity.MINOR,
            ))
        if fell_back:
            warnings.append(self._warning(
                WarningCode.SEARCH_BUDGET_EXHAUSTED,
                "Minimal-transactions search ran out of budget; the greedy plan is used instead",
                Severity.MINOR,
                suggested_actions=["Raise the search budget for large sessions"],
            ))

        # Optimization
        reduction = None
        insufficient = False
        if (
            baseline_count
            and algorithm not in (AlgorithmType.DIRECT_SETTLEMENT, AlgorithmType.MANUAL_SETTLEMENT)
            and len(payments) > 2
        ):
            reduction = round((baseline_count - len(payments)) / baseline_count * 100, 2)
            insufficient = reduction < engine.insufficient_optimization_percentage
        trail.record(
            "optimization_check",
            {"baseline_count": baseline_count, "payment_count": len(payments)},
            {"reduction_percentage": reduction, "insufficient": insufficient},
            True,
        )
        if insufficient:
            warnings.append(self._warning(
                WarningCode.INSUFFICIENT_OPTIMIZATION,
                (
                    f"{algorithm.value} only reduces payments by {reduction}% "
                    f"({baseline_count} -> {len(payments)})"
                ),
                Severity.MINOR,
                suggested_actions=["Compare with the other settlement options"],
            ))

        return warnings

    # ========================================================================
    # Public API
    # ========================================================================

    def validate_input(
        self,
        balances: Sequence[PlayerBalance],
    ) -> SettlementValidation:
        """Run only the input stage; used to reject a request before any algorithm runs."""
        trail = AuditTrail(self._clock)
        tolerance = self._engine.tolerance_for(len(balances))
        errors = self._check_input(balances, trail, tolerance)
        self._record_summary(trail, errors, [])
        return SettlementValidation(
            is_valid=not errors,
            errors=errors,
            audit_trail=trail.entries,
        )

    def validate(
        self,
        balances: Sequence[PlayerBalance],
        payments: Sequence[PaymentPlanEntry],
        algorithm: AlgorithmType,
        input_balances: Optional[Sequence[PlayerBalance]] = None,
        alternative: Optional[AlgorithmRun] = None,
        baseline_count: Optional[int] = None,
        fell_back: bool = False,
        processing_time_ms: Optional[float] = None,
    ) -> SettlementValidation:
        """
        Run the full validation pipeline.

        Args:
            balances: The (normalized) snapshot the plan settles
            payments: The plan to check
            algorithm: Which algorithm produced the plan
            input_balances: The snapshot as received, before remainder
                absorption; defaults to balances
            alternative: Independent run used for cross-verification;
                computed when omitted
            baseline_count: Direct plan payment count, for the
                optimization warning
            fell_back: Whether the search fell back to greedy
            processing_time_ms: Time spent on the request so far

        Returns:
            SettlementValidation with errors, warnings and audit trail
        """
        input_balances = input_balances if input_balances is not None else balances
        trail = AuditTrail(self._clock)
        tolerance = self._engine.tolerance_for(len(balances))

        # Stage 1
        errors = self._check_input(input_balances, trail, tolerance)
        if errors:
            self._record_summary(trail, errors, [])
            return SettlementValidation(is_valid=False, errors=errors, audit_trail=trail.entries)

        # Stages 2-4
        errors.extend(self._check_structure(balances, payments, trail))
        business_errors, near_misses = self._check_business(balances, payments, trail, tolerance)
        errors.extend(business_errors)
        errors.extend(self._cross_verify(
            balances, payments, algorithm, alternative, trail, tolerance
        ))

        # Stage 5
        warnings = self._collect_warnings(
            input_balances=input_balances,
            balances=balances,
            payments=payments,
            algorithm=algorithm,
            near_misses=near_misses,
            trail=trail,
            tolerance=tolerance,
            baseline_count=baseline_count,
            fell_back=fell_back,
            processing_time_ms=processing_time_ms,
        )

        self._record_summary(trail, errors, warnings)
        return SettlementValidation(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            audit_trail=trail.entries,
        )

    @staticmethod
    def _record_summary(
        trail: AuditTrail,
        errors: list[SettlementError],
        warnings: list[SettlementWarning],
    ) -> None:
        trail.record(
            "validation_summary",
            {},
            {
                "error_count": len(errors),
                "warning_count": len(warnings),
                "error_codes": [e.code.value for e in errors],
                "warning_codes": [w.code.value for w in warnings],
            },
            not errors,
        )


def apply_auto_correction(
    balances: Sequence[PlayerBalance],
    correction: SettlementCorrection,
) -> list[PlayerBalance]:
    """
    Return a corrected copy of the snapshot.

    Raises ValueError if the correction names a player that is not in the
    snapshot or whose position no longer matches the correction.
    """
    by_player = {c.player_id: c for c in correction.corrections}
    known = {b.player_id for b in balances}
    missing = sorted(set(by_player) - known)
    if missing:
        raise ValueError(f"Correction refers to unknown players: {', '.join(missing)}")

    corrected = []
    for balance in balances:
        fix = by_player.get(balance.player_id)
        if fix is None:
            corrected.append(balance)
            continue
        if fix.original_value != balance.net_position:
            raise ValueError(
                f"Correction for {balance.player_id} expects {fix.original_value}, "
                f"position is {balance.net_position}"
            )
        corrected.append(balance.with_net_position(fix.suggested_value))
    return corrected


def summarize_validation(validation: SettlementValidation) -> str:
    """
    Generate a user-friendly summary of validation results.

    This is what we show to the organizer.
    """
    if validation.is_valid and not validation.warnings:
        return "✅ All checks passed! The settlement is ready."

    lines = []

    if not validation.is_valid:
        lines.append("❌ The settlement cannot be used:")
        for error in validation.errors:
            lines.append(f"   • {error.message}")
            if error.suggested_fix:
                lines.append(f"     💡 {error.suggested_fix}")

    if validation.warnings:
        if lines:
            lines.append("")
        lines.append("⚠️ Please review the following:")
        for warning in validation.warnings:
            lines.append(f"   • [{warning.severity.value}] {warning.message}")
            if warning.auto_correction:
                lines.append(f"     🔧 {warning.auto_correction.description}")

    lines.append("")
    if validation.can_proceed:
        lines.append("You can proceed, but please review the warnings.")
    elif validation.is_valid:
        lines.append(SEVERITY_MESSAGES[Severity.CRITICAL])
    else:
        lines.append("Please fix the issues above before settling.")

    return "\n".join(lines)
