"""
Settlement Comparator

Runs every algorithm over the same snapshot, scores each plan and picks
a recommendation.

DESIGN DECISION: Scores are computed from the plan alone (payment
count, payment sizes, participant count). Elapsed time is reported but
never scored, so the same snapshot always yields the same
recommendation.

Only plans that pass validation are eligible. Ties on the overall score
are broken by AlgorithmType declaration order.
"""

from typing import Optional, Sequence

from settlement_engine.aggregation import normalize_positions
from settlement_engine.algorithms import AUTOMATIC_ALGORITHMS, get_algorithm
from settlement_engine.algorithms.manual import ManualPayment
from settlement_engine.config import EngineSettings, ScoringWeights, Settings, get_settings
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import (
    AlgorithmRun,
    AlgorithmScores,
    AlgorithmType,
    AlternativeSettlement,
    ComparisonMetric,
    ComparisonSummary,
    ComplexityLevel,
    RiskLevel,
    SettlementComparison,
    SettlementRecommendation,
)
from settlement_engine.validation import SettlementValidator


# ============================================================================
# Scoring
# ============================================================================


def _clamp(value: float, low: float = 0.0, high: float = 10.0) -> float:
    return max(low, min(high, value))


def lower_bound(balances: Sequence[PlayerBalance]) -> int:
    """No plan can use fewer payments than max(#creditors, #debtors)."""
    creditors = sum(1 for b in balances if b.net_position > 0)
    debtors = sum(1 for b in balances if b.net_position < 0)
    return max(creditors, debtors)


def optimization_percentage(count: int, baseline_count: int) -> float:
    """Reduction in payment count versus the direct plan, in percent."""
    if baseline_count <= 0:
        return 0.0
    return round((baseline_count - count) / baseline_count * 100, 2)


def simplicity_score(count: int, participants: int) -> float:
    possible = participants * (participants - 1)
    if possible <= 0:
        return 10.0
    return _clamp(10 - 9 * count / possible)


def fairness_score(amounts: Sequence[int]) -> float:
    """Even payment sizes score high; 10 minus twice the squared coefficient of variation."""
    if not amounts:
        return 10.0
    mean = sum(amounts) / len(amounts)
    if mean == 0:
        return 10.0
    variance = sum((a - mean) ** 2 for a in amounts) / len(amounts)
    return _clamp(10 - 2 * variance / (mean * mean))


def efficiency_score(count: int, baseline_count: int, bound: int) -> float:
    if baseline_count <= bound:
        return 10.0 if count <= bound else 0.0
    return _clamp(10 * (baseline_count - count) / (baseline_count - bound))


def score_payments(
    payments: Sequence[PaymentPlanEntry],
    balances: Sequence[PlayerBalance],
    baseline_count: int,
    weights: Optional[ScoringWeights] = None,
    engine: Optional[EngineSettings] = None,
) -> AlgorithmScores:
    """
    Score one plan on the four axes and combine them.

    Args:
        payments: The plan to score
        balances: Snapshot the plan settles
        baseline_count: Payment count of the direct plan
        weights: Axis weights for the overall score
        engine: Payment size thresholds

    Returns:
        AlgorithmScores, every axis rounded to two decimals
    """
    if weights is None or engine is None:
        settings = get_settings()
        weights = weights or settings.weights
        engine = engine or settings.engine

    amounts = [p.amount for p in payments]
    participants = sum(1 for b in balances if b.net_position != 0)

    simplicity = simplicity_score(len(payments), participants)
    fairness = fairness_score(amounts)
    efficiency = efficiency_score(len(payments), baseline_count, lower_bound(balances))

    user_friendliness = (simplicity + fairness) / 2
    if any(a < engine.small_payment_threshold_minor_units for a in amounts):
        user_friendliness -= 1
    if any(a > engine.large_payment_threshold_minor_units for a in amounts):
        user_friendliness -= 0.5
    user_friendliness = _clamp(user_friendliness)

    overall = (
        simplicity * weights.simplicity
        + fairness * weights.fairness
        + efficiency * weights.efficiency
        + user_friendliness * weights.user_friendliness
    ) / weights.total

    return AlgorithmScores(
        simplicity=round(simplicity, 2),
        fairness=round(fairness, 2),
        efficiency=round(efficiency, 2),
        user_friendliness=round(user_friendliness, 2),
        overall=round(_clamp(overall), 2),
    )


# ============================================================================
# Comparator
# ============================================================================


class SettlementComparator:
    """
    Produces a SettlementComparison for a balance snapshot.

    Usage:
        comparator = SettlementComparator()
        comparison = comparator.compare(balances)
        best = comparison.recommended
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        validator: Optional[SettlementValidator] = None,
    ):
        self._settings = settings or get_settings()
        self._validator = validator or SettlementValidator(self._settings)

    def run_all(
        self,
        balances: Sequence[PlayerBalance],
        hub_player_id: Optional[str] = None,
        manual_payments: Optional[Sequence[ManualPayment]] = None,
    ) -> dict[AlgorithmType, AlgorithmRun]:
        """Run every automatic algorithm, plus manual when a manual plan is given."""
        types = list(AUTOMATIC_ALGORITHMS)
        if manual_payments is not None:
            types.append(AlgorithmType.MANUAL_SETTLEMENT)

        runs = {}
        for algorithm_type in types:
            algorithm = get_algorithm(
                algorithm_type,
                settings=self._settings,
                hub_player_id=hub_player_id,
                manual_payments=manual_payments,
            )
            runs[algorithm_type] = algorithm.run(balances)
        return runs

    def compare(
        self,
        balances: Sequence[PlayerBalance],
        hub_player_id: Optional[str] = None,
        manual_payments: Optional[Sequence[ManualPayment]] = None,
        input_balances: Optional[Sequence[PlayerBalance]] = None,
        runs: Optional[dict[AlgorithmType, AlgorithmRun]] = None,
    ) -> SettlementComparison:
        """
        Compare all settlement strategies for one snapshot.

        Args:
            balances: Snapshot to settle; a within-tolerance remainder is
                absorbed first
            hub_player_id: Hub for the hub-based plan (default: largest creditor)
            manual_payments: Organizer plan to include as a candidate
            input_balances: Snapshot as originally received, when balances
                were already normalized by the caller
            runs: Precomputed algorithm runs, keyed by type

        Raises:
            UnbalancedInputError: if the snapshot is not balanced
        """
        tolerance = self._settings.engine.tolerance_for(len(balances))
        normalized, _ = normalize_positions(balances, tolerance)
        input_balances = input_balances if input_balances is not None else balances

        if runs is None:
            runs = self.run_all(normalized, hub_player_id, manual_payments)

        baseline = runs[AlgorithmType.DIRECT_SETTLEMENT]
        alternatives = [
            self._build_alternative(
                run, normalized, input_balances, runs, baseline.transaction_count,
                hub_player_id, manual_payments,
            )
            for run in runs.values()
        ]

        recommended, recommendation = self.recommend(alternatives, normalized)

        return SettlementComparison(
            alternatives=alternatives,
            recommended=recommended,
            recommendation=recommendation,
            comparison_matrix=self.comparison_matrix(alternatives),
            summary=self._summary(alternatives),
        )

    def _build_alternative(
        self,
        run: AlgorithmRun,
        balances: Sequence[PlayerBalance],
        input_balances: Sequence[PlayerBalance],
        runs: dict[AlgorithmType, AlgorithmRun],
        baseline_count: int,
        hub_player_id: Optional[str],
        manual_payments: Optional[Sequence[ManualPayment]],
    ) -> AlternativeSettlement:
        algorithm = get_algorithm(
            run.algorithm,
            settings=self._settings,
            hub_player_id=hub_player_id,
            manual_payments=manual_payments,
        )
        cross_check = (
            runs[AlgorithmType.DIRECT_SETTLEMENT]
            if run.algorithm == AlgorithmType.GREEDY_DEBT_REDUCTION
            else runs[AlgorithmType.GREEDY_DEBT_REDUCTION]
        )
        validation = self._validator.validate(
            balances,
            run.payments,
            run.algorithm,
            input_balances=input_balances,
            alternative=cross_check,
            baseline_count=baseline_count,
            fell_back=run.fell_back,
        )

        optimization = optimization_percentage(run.transaction_count, baseline_count)
        pros, cons = algorithm.pros_and_cons(run.payments, optimization)

        return AlternativeSettlement(
            algorithm=run.algorithm,
            name=algorithm.name,
            description=algorithm.description,
            payments=run.payments,
            transaction_count=run.transaction_count,
            total_amount=run.total_amount,
            optimization_percentage=optimization,
            scores=score_payments(
                run.payments,
                balances,
                baseline_count,
                weights=self._settings.weights,
                engine=self._settings.engine,
            ),
            pros=pros,
            cons=cons,
            validation=validation,
            rounding_operations=run.rounding_operations,
            fell_back=run.fell_back,
            elapsed_ms=run.elapsed_ms,
        )

    def recommend(
        self,
        alternatives: Sequence[AlternativeSettlement],
        balances: Sequence[PlayerBalance],
    ) -> tuple[Optional[AlternativeSettlement], Optional[SettlementRecommendation]]:
        """
        Pick the best eligible alternative and explain the choice.

        Returns (None, None) when no alternative passed validation.
        """
        ranked = sorted(
            (a for a in alternatives if a.is_eligible),
            key=lambda a: (-a.scores.overall, a.algorithm.rank),
        )
        if not ranked:
            return None, None
        best = ranked[0]

        player_count = len(balances)
        if player_count <= 4:
            complexity = ComplexityLevel.LOW
        elif player_count <= 8:
            complexity = ComplexityLevel.MEDIUM
        else:
            complexity = ComplexityLevel.HIGH

        engine = self._settings.engine
        all_payments = [p for a in alternatives for p in a.payments]
        has_large = any(p.amount > engine.large_payment_threshold_minor_units for p in all_payments)
        has_odd = any(p.amount % engine.minor_units_per_major != 0 for p in all_payments)
        if has_large and has_odd:
            dispute_risk = RiskLevel.HIGH
        elif has_large or has_odd:
            dispute_risk = RiskLevel.MEDIUM
        else:
            dispute_risk = RiskLevel.LOW

        reasoning = [
            f"Highest overall score: {best.scores.overall}/10",
            f"{best.transaction_count} transactions ({best.optimization_percentage}% optimization)",
            f"{best.name} provides good balance of simplicity and efficiency",
        ]
        if best.algorithm in (AlgorithmType.GREEDY_DEBT_REDUCTION, AlgorithmType.MINIMAL_TRANSACTIONS):
            reasoning.append("Optimized algorithm recommended for efficiency")
        elif best.algorithm == AlgorithmType.MANUAL_SETTLEMENT:
            reasoning.append("Manual settlement recommended for maximum transparency")

        considerations = []
        if len(ranked) > 1 and best.scores.overall - ranked[1].scores.overall < 1.0:
            runner_up = ranked[1]
            considerations.append(
                f"{runner_up.name} is a close alternative (score: {runner_up.scores.overall})"
            )
        if complexity == ComplexityLevel.HIGH:
            considerations.append("Consider manual settlement for large groups")
        if dispute_risk == RiskLevel.HIGH:
            considerations.append("Manual settlement may reduce dispute risk")

        recommendation = SettlementRecommendation(
            algorithm=best.algorithm,
            reasoning=reasoning,
            alternative_considerations=considerations,
            complexity=complexity,
            dispute_risk=dispute_risk,
            confidence=round(_clamp(best.scores.overall / 10, 0.6, 0.95), 2),
        )
        return best, recommendation

    def comparison_matrix(
        self,
        alternatives: Sequence[AlternativeSettlement],
    ) -> list[ComparisonMetric]:
        """
        One row per metric, values keyed by algorithm type.

        Scored axes carry their share of the configured weights; the
        informational rows and the overall score carry weight 0.
        """
        weights = self._settings.weights
        total = weights.total
        rows = [
            ("transaction_count", 0.0, False, lambda a: float(a.transaction_count)),
            ("optimization_percentage", 0.0, True, lambda a: a.optimization_percentage),
            ("simplicity", round(weights.simplicity / total, 4), True, lambda a: a.scores.simplicity),
            ("fairness", round(weights.fairness / total, 4), True, lambda a: a.scores.fairness),
            ("efficiency", round(weights.efficiency / total, 4), True, lambda a: a.scores.efficiency),
            ("user_friendliness", round(weights.user_friendliness / total, 4), True,
             lambda a: a.scores.user_friendliness),
            ("overall", 0.0, True, lambda a: a.scores.overall),
        ]
        return [
            ComparisonMetric(
                metric=metric,
                values={a.algorithm.value: value(a) for a in alternatives},
                weight=weight,
                higher_is_better=higher_is_better,
            )
            for metric, weight, higher_is_better, value in rows
        ]

    @staticmethod
    def _summary(alternatives: Sequence[AlternativeSettlement]) -> ComparisonSummary:
        counts = [a.transaction_count for a in alternatives]
        optimizations = [a.optimization_percentage for a in alternatives]
        scores = [a.scores.overall for a in alternatives]
        return ComparisonSummary(
            min_transactions=min(counts),
            max_transactions=max(counts),
            min_optimization=min(optimizations),
            max_optimization=max(optimizations),
            average_score=round(sum(scores) / len(scores), 2),
        )
