"""
Mathematical Proof Generator

Restates the arithmetic of a settlement so it can be checked by hand.

DESIGN DECISION: Every calculation step carries its own verification
flag, computed by an independent route to the same number (for example
debits summed per payer versus summed per debtor). A proof is valid only
when the debit/credit balance holds and every step verifies.

The proof is deterministic: proof_id is derived from a SHA-256 checksum
over the canonical JSON of the settlement id, the payments and the step
results. No clock or random value enters it.
"""

import hashlib
import json
from typing import Any, Optional, Sequence

from settlement_engine.aggregation import net_settled_amount, net_sum, payment_flows
from settlement_engine.algorithms import AUTOMATIC_ALGORITHMS, get_algorithm
from settlement_engine.config import Settings, get_settings
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.proof import (
    AlgorithmCrossCheck,
    BalanceVerification,
    CalculationStep,
    FractionalCentAdjustment,
    MathematicalProof,
    PrecisionAnalysis,
    ProofExportFormats,
    ProofIntegrityReport,
    RoundingOperation,
)
from settlement_engine.models.settlement import AlgorithmRun, AlgorithmType
from settlement_engine.precision import format_minor_units


SUMMARY_PAYMENT_LIMIT = 5


def compute_checksum(
    settlement_id: str,
    payments: Sequence[PaymentPlanEntry],
    steps: Sequence[CalculationStep],
) -> str:
    """SHA-256 over the canonical JSON of the proof's load-bearing content."""
    content = {
        "settlement_id": settlement_id,
        "payments": [
            [p.priority, p.from_player_id, p.to_player_id, p.amount]
            for p in payments
        ],
        "steps": [
            [s.step_number, s.operation, s.result, s.verification]
            for s in steps
        ],
    }
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class _StepRecorder:
    """Numbers calculation steps in the order they are added."""

    def __init__(self, tolerance: int):
        self.tolerance = tolerance
        self.steps: list[CalculationStep] = []

    def add(
        self,
        operation: str,
        description: str,
        inputs: dict[str, Any],
        formula: str,
        result,
        verification: bool,
        tolerance: Optional[int] = None,
    ) -> None:
        self.steps.append(CalculationStep(
            step_number=len(self.steps) + 1,
            operation=operation,
            description=description,
            inputs=inputs,
            formula=formula,
            result=result,
            tolerance=self.tolerance if tolerance is None else tolerance,
            verification=verification,
        ))


class ProofGenerator:
    """
    Builds and re-checks MathematicalProof objects.

    Usage:
        generator = ProofGenerator()
        proof = generator.generate(settlement_id, algorithm, balances, payments)
        report = generator.verify_proof_integrity(proof)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._engine = self._settings.engine

    # ========================================================================
    # Generation
    # ========================================================================

    def generate(
        self,
        settlement_id: str,
        algorithm: AlgorithmType,
        balances: Sequence[PlayerBalance],
        payments: Sequence[PaymentPlanEntry],
        direct_count: Optional[int] = None,
        rounding_operations: Sequence[RoundingOperation] = (),
        adjustments: Sequence[FractionalCentAdjustment] = (),
        runs: Optional[dict[AlgorithmType, AlgorithmRun]] = None,
        hub_player_id: Optional[str] = None,
    ) -> MathematicalProof:
        """
        Generate the proof for a settlement.

        Args:
            settlement_id: Id of the settlement being proven
            algorithm: Algorithm that produced the payments
            balances: Normalized snapshot the payments settle
            payments: The chosen plan
            direct_count: Payment count of the direct plan; computed when omitted
            rounding_operations: Rounding trace of the chosen algorithm
            adjustments: Fractional-cent absorptions applied to the input
            runs: Precomputed runs of other algorithms for the cross-checks
            hub_player_id: Hub used when the hub-based plan has to be computed

        Returns:
            MathematicalProof with checksum and export formats
        """
        tolerance = self._engine.tolerance_for(len(balances))
        runs = dict(runs or {})

        if direct_count is None:
            direct_count = self._run(
                AlgorithmType.DIRECT_SETTLEMENT, balances, runs, hub_player_id
            ).transaction_count

        total_debits = net_settled_amount(payments)
        total_credits = sum(b.net_position for b in balances if b.net_position > 0)
        net_balance = total_debits - total_credits
        balance_verification = BalanceVerification(
            total_debits=total_debits,
            total_credits=total_credits,
            net_balance=net_balance,
            is_balanced=abs(net_balance) <= tolerance,
            tolerance=tolerance,
        )

        steps = self._calculation_steps(balances, payments, direct_count, tolerance)
        precision = self._precision_analysis(rounding_operations, adjustments, tolerance)
        cross_checks = self._cross_checks(
            algorithm, balances, total_debits, total_credits, tolerance, runs, hub_player_id
        )

        is_valid = (
            balance_verification.is_balanced
            and all(s.verification for s in steps)
            and precision.is_within_tolerance
        )

        checksum = compute_checksum(settlement_id, payments, steps)
        proof_id = f"proof_{checksum[:16]}"

        summary = self._summary(algorithm, payments, balance_verification, is_valid)
        text = self._text_export(
            settlement_id, proof_id, checksum, algorithm, payments, balance_verification
        )

        proof = MathematicalProof(
            proof_id=proof_id,
            settlement_id=settlement_id,
            algorithm=algorithm.value,
            payments=list(payments),
            balance_verification=balance_verification,
            calculation_steps=steps,
            precision_analysis=precision,
            alternative_algorithm_results=cross_checks,
            human_readable_summary=summary,
            checksum=checksum,
            is_valid=is_valid,
        )
        json_data = proof.model_dump(mode="json", exclude={"export_formats"})
        return proof.model_copy(update={
            "export_formats": ProofExportFormats(json_data=json_data, text=text),
        })

    def _run(
        self,
        algorithm_type: AlgorithmType,
        balances: Sequence[PlayerBalance],
        runs: dict[AlgorithmType, AlgorithmRun],
        hub_player_id: Optional[str],
    ) -> AlgorithmRun:
        if algorithm_type not in runs:
            runs[algorithm_type] = get_algorithm(
                algorithm_type,
                settings=self._settings,
                hub_player_id=hub_player_id,
            ).run(balances)
        return runs[algorithm_type]

    def _calculation_steps(
        self,
        balances: Sequence[PlayerBalance],
        payments: Sequence[PaymentPlanEntry],
        direct_count: int,
        tolerance: int,
    ) -> list[CalculationStep]:
        recorder = _StepRecorder(tolerance)
        flows = payment_flows(payments)

        # Net positions
        total_buy_ins = sum(b.total_buy_ins for b in balances)
        total_cash_outs = sum(b.total_cash_outs for b in balances)
        position_sum = net_sum(balances)
        recorder.add(
            "net_position_sum",
            "Sum every player's net position; a balanced session sums to zero",
            {
                "player_count": len(balances),
                "total_buy_ins": total_buy_ins,
                "total_cash_outs": total_cash_outs,
            },
            "sum(net_position)",
            position_sum,
            abs(position_sum) <= tolerance,
        )

        # Debits, per payer and per debtor
        total_debits = net_settled_amount(payments)
        debtor_ids = {b.player_id for b in balances if b.net_position < 0}
        paid_by_debtors = sum(
            paid - received
            for player_id, (paid, received) in flows.items()
            if player_id in debtor_ids
        )
        recorder.add(
            "total_debits",
            "Money that changes owner: every player's net outflow",
            {"payment_count": len(payments), "paid_by_debtors": paid_by_debtors},
            "sum(max(paid - received, 0))",
            total_debits,
            abs(total_debits - paid_by_debtors) <= tolerance,
        )

        # Credits, from both sides of the ledger
        total_credits = sum(b.net_position for b in balances if b.net_position > 0)
        total_debts = -sum(b.net_position for b in balances if b.net_position < 0)
        recorder.add(
            "total_credits",
            "Money owed to creditors",
            {
                "creditor_count": sum(1 for b in balances if b.net_position > 0),
                "total_debts": total_debts,
            },
            "sum(net_position > 0)",
            total_credits,
            abs(total_credits - total_debts) <= tolerance,
        )

        net_balance = total_debits - total_credits
        recorder.add(
            "debit_credit_balance",
            "Total debits equal total credits",
            {"total_debits": total_debits, "total_credits": total_credits},
            "total_debits - total_credits",
            net_balance,
            abs(net_balance) <= tolerance,
        )

        gross = sum(p.amount for p in payments)
        recorder.add(
            "gross_payment_volume",
            "Sum of every payment amount, including money passed through a hub",
            {"payment_count": len(payments)},
            "sum(amount)",
            gross,
            gross >= total_debits,
        )

        # One step per player
        for balance in balances:
            paid, received = flows.get(balance.player_id, (0, 0))
            settled = received - paid
            recorder.add(
                "player_balance_verification",
                f"{balance.display_name}'s payments match their net position",
                {
                    "net_position": balance.net_position,
                    "payments_made": paid,
                    "payments_received": received,
                },
                "payments_received - payments_made",
                settled,
                abs(settled - balance.net_position) <= tolerance,
            )

        # Optimization
        count = len(payments)
        if direct_count > 0:
            reduction = round((direct_count - count) / direct_count * 100, 2)
            recomputed = round(100 - count * 100 / direct_count, 2)
        else:
            reduction = recomputed = 0.0
        recorder.add(
            "optimization_efficiency",
            "Reduction in payment count versus every debtor paying every creditor",
            {"original_transactions": direct_count, "optimized_transactions": count},
            "(original - optimized) / original * 100",
            reduction,
            abs(reduction - recomputed) < 0.01,
            tolerance=0,
        )

        # Integer precision
        invalid = sum(
            1 for p in payments
            if not isinstance(p.amount, int) or p.amount <= 0
        )
        recorder.add(
            "integer_precision",
            "Every payment is a positive whole number of minor units",
            {"payment_count": count, "decimal_places": self._engine.decimal_places},
            "count(amount is not a positive integer)",
            invalid,
            invalid == 0,
            tolerance=0,
        )

        return recorder.steps

    def _precision_analysis(
        self,
        rounding_operations: Sequence[RoundingOperation],
        adjustments: Sequence[FractionalCentAdjustment],
        tolerance: int,
    ) -> PrecisionAnalysis:
        losses = [op.precision_loss for op in rounding_operations]
        max_loss = max(losses, default=0.0)
        within = max_loss < 1 and all(abs(a.delta) <= tolerance for a in adjustments)
        return PrecisionAnalysis(
            decimal_places=self._engine.decimal_places,
            rounding_operations=list(rounding_operations),
            fractional_cent_adjustments=list(adjustments),
            total_precision_loss=round(sum(losses), 6),
            max_precision_loss=round(max_loss, 6),
            is_within_tolerance=within,
        )

    def _cross_checks(
        self,
        algorithm: AlgorithmType,
        balances: Sequence[PlayerBalance],
        total_debits: int,
        total_credits: int,
        tolerance: int,
        runs: dict[AlgorithmType, AlgorithmRun],
        hub_player_id: Optional[str],
    ) -> list[AlgorithmCrossCheck]:
        checks = []
        for other in AUTOMATIC_ALGORITHMS:
            if other == algorithm:
                continue
            run = self._run(other, balances, runs, hub_player_id)
            settled = net_settled_amount(run.payments)
            discrepancy = settled - total_credits
            is_balanced = abs(discrepancy) <= tolerance
            checks.append(AlgorithmCrossCheck(
                algorithm=other.value,
                algorithm_name=get_algorithm(other, settings=self._settings).name,
                transaction_count=run.transaction_count,
                total_amount=settled,
                is_balanced=is_balanced,
                balance_discrepancy=discrepancy,
                verification_result=is_balanced and abs(settled - total_debits) <= tolerance,
            ))
        return checks

    # ========================================================================
    # Rendering
    # ========================================================================

    def _summary(
        self,
        algorithm: AlgorithmType,
        payments: Sequence[PaymentPlanEntry],
        verification: BalanceVerification,
        is_valid: bool,
    ) -> str:
        places = self._engine.decimal_places
        status = "verified" if is_valid else "NOT verified"
        return (
            f"{len(payments)} payments settle {format_minor_units(verification.total_debits, places)} "
            f"using {algorithm.value}. Debits {format_minor_units(verification.total_debits, places)} "
            f"and credits {format_minor_units(verification.total_credits, places)} differ by "
            f"{verification.net_balance} minor units (tolerance {verification.tolerance}). "
            f"The settlement is {status}."
        )

    def _text_export(
        self,
        settlement_id: str,
        proof_id: str,
        checksum: str,
        algorithm: AlgorithmType,
        payments: Sequence[PaymentPlanEntry],
        verification: BalanceVerification,
    ) -> str:
        places = self._engine.decimal_places
        mark = "✓" if verification.is_balanced else "✗"
        lines = [
            f"Settlement {settlement_id} ({algorithm.value})",
            f"Total settled: {format_minor_units(verification.total_debits, places)} "
            f"in {len(payments)} payments",
            f"Balance: debits {format_minor_units(verification.total_debits, places)} = "
            f"credits {format_minor_units(verification.total_credits, places)} {mark}",
            "Payments:",
        ]
        for payment in payments[:SUMMARY_PAYMENT_LIMIT]:
            lines.append(
                f"  {payment.priority}. {payment.from_player_name or payment.from_player_id} pays "
                f"{payment.to_player_name or payment.to_player_id} "
                f"{format_minor_units(payment.amount, places)}"
            )
        if len(payments) > SUMMARY_PAYMENT_LIMIT:
            lines.append(f"  ... and {len(payments) - SUMMARY_PAYMENT_LIMIT} more")
        lines.append(f"Proof {proof_id} (sha256 {checksum[:12]})")
        return "\n".join(lines)

    # ========================================================================
    # Integrity
    # ========================================================================

    def verify_proof_integrity(self, proof: MathematicalProof) -> ProofIntegrityReport:
        """
        Re-check a proof after the fact.

        Recomputes the checksum and the debit total from the proof's own
        payments, and reports every problem found.
        """
        issues = []

        checksum_valid = (
            compute_checksum(proof.settlement_id, proof.payments, proof.calculation_steps)
            == proof.checksum
        )
        if not checksum_valid:
            issues.append("Checksum verification failed - proof may have been tampered with")

        mathematically_sound = all(s.verification for s in proof.calculation_steps)
        if not mathematically_sound:
            issues.append("Some calculation steps failed verification")

        verification = proof.balance_verification
        balance_valid = (
            verification.is_balanced
            and verification.net_balance == verification.total_debits - verification.total_credits
            and abs(verification.net_balance) <= verification.tolerance
            and net_settled_amount(proof.payments) == verification.total_debits
        )
        if not balance_valid:
            issues.append("Mathematical balance is invalid")

        algorithm_consensus = all(c.verification_result for c in proof.alternative_algorithm_results)
        if not algorithm_consensus:
            issues.append("Algorithm verification shows discrepancies")

        return ProofIntegrityReport(
            checksum_valid=checksum_valid,
            mathematically_sound=mathematically_sound,
            balance_valid=balance_valid,
            algorithm_consensus=algorithm_consensus,
            issues=issues,
        )
