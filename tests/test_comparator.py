"""Tests for scoring and the settlement comparator."""

import pytest

from settlement_engine.config import EngineSettings, ScoringWeights, Settings
from settlement_engine.models import (
    AlgorithmType,
    ComplexityLevel,
    PaymentPlanEntry,
    RiskLevel,
)
from settlement_engine.scoring import (
    SettlementComparator,
    efficiency_score,
    fairness_score,
    lower_bound,
    optimization_percentage,
    score_payments,
    simplicity_score,
)


def pay(from_id, to_id, amount):
    return PaymentPlanEntry(from_player_id=from_id, to_player_id=to_id, amount=amount)


@pytest.fixture
def comparator():
    return SettlementComparator()


class TestScoringFunctions:
    """Tests for the individual scoring axes."""

    def test_lower_bound(self, four_players, five_players):
        """Test max(#creditors, #debtors)."""
        assert lower_bound(four_players) == 2
        assert lower_bound(five_players) == 3

    def test_optimization_percentage(self):
        """Test reduction versus the direct plan."""
        assert optimization_percentage(3, 4) == 25.0
        assert optimization_percentage(1, 3) == 66.67
        assert optimization_percentage(2, 0) == 0.0

    def test_simplicity_score(self):
        """Test fewer payments score higher."""
        assert simplicity_score(3, 4) == pytest.approx(7.75)
        assert simplicity_score(0, 1) == 10.0

    def test_fairness_score(self):
        """Test even payment sizes score highest."""
        assert fairness_score([20, 20, 20]) == 10.0
        assert fairness_score([]) == 10.0
        assert fairness_score([30, 40, 20]) > fairness_score([40, 20, 10])

    def test_efficiency_score(self):
        """Test efficiency relative to the lower bound."""
        assert efficiency_score(3, 4, 2) == pytest.approx(5.0)
        assert efficiency_score(2, 4, 2) == pytest.approx(10.0)
        assert efficiency_score(1, 1, 1) == 10.0

    def test_scores_are_bounded(self, four_players):
        """Test all scores lie in [0, 10] with two decimals."""
        payments = [pay("D", "A", 40), pay("C", "B", 20), pay("C", "A", 10)]
        scores = score_payments(payments, four_players, baseline_count=4)
        for value in (scores.simplicity, scores.fairness, scores.efficiency,
                      scores.user_friendliness, scores.overall):
            assert 0.0 <= value <= 10.0
            assert round(value, 2) == value

    def test_small_payments_penalized(self, make_balances):
        """Test the user friendliness penalty for small amounts."""
        small = score_payments([pay("B", "A", 50)], make_balances(A=50, B=-50), 1)
        normal = score_payments([pay("B", "A", 5000)], make_balances(A=5000, B=-5000), 1)
        assert normal.user_friendliness - small.user_friendliness == pytest.approx(1.0)

    def test_weights_change_overall(self, four_players):
        """Test that weights steer the overall score."""
        payments = [pay("D", "A", 40), pay("C", "B", 20), pay("C", "A", 10)]
        efficiency_only = ScoringWeights(
            simplicity=0, fairness=0, efficiency=1, user_friendliness=0
        )
        scores = score_payments(
            payments, four_players, 4, weights=efficiency_only, engine=EngineSettings()
        )
        assert scores.overall == scores.efficiency


class TestSettlementComparator:
    """Tests for comparing all algorithms."""

    def test_compares_every_automatic_algorithm(self, comparator, four_players):
        """Test one alternative per automatic algorithm, in order."""
        comparison = comparator.compare(four_players)
        assert [a.algorithm for a in comparison.alternatives] == [
            AlgorithmType.DIRECT_SETTLEMENT,
            AlgorithmType.GREEDY_DEBT_REDUCTION,
            AlgorithmType.HUB_BASED,
            AlgorithmType.BALANCED_FLOW,
            AlgorithmType.MINIMAL_TRANSACTIONS,
        ]
        assert all(a.is_eligible for a in comparison.alternatives)

    def test_transaction_counts(self, comparator, four_players):
        """Test the payment count of each alternative."""
        comparison = comparator.compare(four_players)
        counts = {a.algorithm: a.transaction_count for a in comparison.alternatives}
        assert counts == {
            AlgorithmType.DIRECT_SETTLEMENT: 4,
            AlgorithmType.GREEDY_DEBT_REDUCTION: 3,
            AlgorithmType.HUB_BASED: 3,
            AlgorithmType.BALANCED_FLOW: 4,
            AlgorithmType.MINIMAL_TRANSACTIONS: 3,
        }
        greedy = comparison.get(AlgorithmType.GREEDY_DEBT_REDUCTION)
        assert greedy.optimization_percentage == 25.0
        assert greedy.name == "Optimized Settlement"
        assert greedy.pros[0] == "Some transaction reduction"

    def test_recommendation(self, comparator, four_players):
        """Test the recommended plan and its explanation."""
        comparison = comparator.compare(four_players)
        recommendation = comparison.recommendation

        assert comparison.recommended.algorithm == AlgorithmType.HUB_BASED
        assert recommendation.algorithm == AlgorithmType.HUB_BASED
        assert recommendation.complexity == ComplexityLevel.LOW
        assert recommendation.dispute_risk == RiskLevel.MEDIUM
        assert 0.6 <= recommendation.confidence <= 0.95
        assert recommendation.reasoning[0].startswith("Highest overall score")
        assert recommendation.alternative_considerations[0].startswith(
            "Optimized Settlement is a close alternative"
        )

    def test_recommended_has_best_score(self, comparator, five_players):
        """Test that nothing eligible outscores the recommendation."""
        comparison = comparator.compare(five_players)
        best = comparison.recommended.scores.overall
        assert all(a.scores.overall <= best for a in comparison.alternatives if a.is_eligible)

    def test_ties_broken_by_algorithm_order(self, comparator, make_balances):
        """Test that identical plans resolve to the first algorithm type."""
        comparison = comparator.compare(make_balances(A=1, B=-1))
        assert len({a.scores.overall for a in comparison.alternatives}) == 1
        assert comparison.recommended.algorithm == AlgorithmType.DIRECT_SETTLEMENT
        assert all(a.validation.warnings == [] for a in comparison.alternatives)

    def test_scores_are_deterministic(self, comparator, five_players):
        """Test that the same snapshot scores identically twice."""
        first = comparator.compare(five_players)
        second = comparator.compare(five_players)
        assert [a.scores for a in first.alternatives] == [a.scores for a in second.alternatives]
        assert first.recommended.algorithm == second.recommended.algorithm

    def test_invalid_manual_plan_not_recommended(self, comparator, four_players):
        """Test that a failing manual plan is included but ineligible."""
        comparison = comparator.compare(
            four_players,
            manual_payments=[{"from_player_id": "C", "to_player_id": "A", "amount": 70}],
        )
        manual = comparison.get(AlgorithmType.MANUAL_SETTLEMENT)
        assert manual is not None
        assert manual.is_eligible is False
        assert comparison.recommended.algorithm != AlgorithmType.MANUAL_SETTLEMENT

    def test_manual_plan_is_optional(self, comparator, four_players):
        """Test that manual is only compared when a plan is given."""
        comparison = comparator.compare(four_players)
        assert comparison.get(AlgorithmType.MANUAL_SETTLEMENT) is None

    def test_comparison_matrix(self, comparator, four_players):
        """Test matrix rows and values."""
        comparison = comparator.compare(four_players)
        rows = {row.metric: row for row in comparison.comparison_matrix}

        assert list(rows) == [
            "transaction_count",
            "optimization_percentage",
            "simplicity",
            "fairness",
            "efficiency",
            "user_friendliness",
            "overall",
        ]
        assert rows["transaction_count"].higher_is_better is False
        assert rows["transaction_count"].values["direct_settlement"] == 4.0
        assert rows["simplicity"].weight == 0.25
        assert rows["overall"].weight == 0.0
        assert sum(row.weight for row in rows.values()) == pytest.approx(1.0)

    def test_matrix_follows_configured_weights(self, four_players, monkeypatch):
        """Test that matrix weights match the weights used for scoring."""
        monkeypatch.setenv("SETTLEMENT_WEIGHT_EFFICIENCY", "2.0")
        monkeypatch.setenv("SETTLEMENT_WEIGHT_USER_FRIENDLINESS", "0")
        settings = Settings()

        comparison = SettlementComparator(settings).compare(four_players)
        rows = {row.metric: row for row in comparison.comparison_matrix}

        assert rows["efficiency"].weight == pytest.approx(0.8)
        assert rows["simplicity"].weight == pytest.approx(0.1)
        assert rows["user_friendliness"].weight == 0.0
        greedy = comparison.get(AlgorithmType.GREEDY_DEBT_REDUCTION).scores
        expected = round(
            sum(rows[axis].weight * getattr(greedy, axis)
                for axis in ("simplicity", "fairness", "efficiency", "user_friendliness")),
            2,
        )
        assert greedy.overall == pytest.approx(expected, abs=0.02)

    def test_summary(self, comparator, four_players):
        """Test the comparison summary."""
        summary = comparator.compare(four_players).summary
        assert summary.min_transactions == 3
        assert summary.max_transactions == 4
        assert summary.min_optimization == 0.0
        assert summary.max_optimization == 25.0

    def test_remainder_absorbed_before_comparing(self, comparator, make_balances):
        """Test that a within-tolerance remainder does not block comparison."""
        comparison = comparator.compare(make_balances(A=3001, B=-3000))
        assert comparison.recommended is not None
        assert comparison.recommended.payments[0].amount == 3000


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
