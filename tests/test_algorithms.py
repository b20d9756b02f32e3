"""Tests for the settlement algorithms."""

import random

import pytest

from settlement_engine.algorithms import (
    AUTOMATIC_ALGORITHMS,
    BalancedFlowSettlement,
    DirectSettlement,
    GreedyDebtReduction,
    HubBasedSettlement,
    ManualSettlement,
    MinimalTransactionsSearch,
    average_stake,
    get_algorithm,
    parse_algorithm_type,
    parse_manual_payments,
    run_algorithm,
)
from settlement_engine.config import SearchSettings, Settings
from settlement_engine.errors import InvalidPaymentPlanError, UnknownAlgorithmError
from settlement_engine.models import AlgorithmType, PaymentPlanEntry


def as_tuples(payments):
    return [(p.from_player_id, p.to_player_id, p.amount) for p in payments]


def net_effect(payments):
    effect = {}
    for p in payments:
        effect[p.from_player_id] = effect.get(p.from_player_id, 0) + p.amount
        effect[p.to_player_id] = effect.get(p.to_player_id, 0) - p.amount
    return {k: v for k, v in effect.items() if v != 0}


def owed(balances):
    return {b.player_id: -b.net_position for b in balances if b.net_position != 0}


class TestDirectSettlement:
    """Tests for the proportional baseline."""

    def test_proportional_split(self, four_players):
        """Test each debtor pays each creditor in proportion to credit."""
        payments = DirectSettlement().settle(four_players)
        assert as_tuples(payments) == [
            ("C", "A", 21),
            ("C", "B", 9),
            ("D", "A", 29),
            ("D", "B", 11),
        ]

    def test_cents_use_largest_remainder(self, make_balances):
        """Test the split in minor units with rounding traces."""
        balances = make_balances(A=5000, B=2000, C=-3000, D=-4000)
        run = DirectSettlement().run(balances)

        assert as_tuples(run.payments) == [
            ("C", "A", 2143),
            ("C", "B", 857),
            ("D", "A", 2857),
            ("D", "B", 1143),
        ]
        assert len(run.rounding_operations) == 4
        assert all(op.precision_loss < 1 for op in run.rounding_operations)

    def test_columns_sum_to_credit(self, make_balances):
        """Test every creditor receives exactly their position."""
        balances = make_balances(A=1, B=1, C=1, D=-1, E=-1, F=-1)
        payments = DirectSettlement().settle(balances)
        assert net_effect(payments) == owed(balances)

    def test_priorities_sequential(self, four_players):
        """Test priorities are numbered 1..n."""
        payments = DirectSettlement().settle(four_players)
        assert [p.priority for p in payments] == [1, 2, 3, 4]


class TestGreedyDebtReduction:
    """Tests for largest-debtor/largest-creditor matching."""

    def test_worked_example(self, four_players):
        """Test that the current creditor is paid off before the next one."""
        payments = GreedyDebtReduction().settle(four_players)
        assert as_tuples(payments) == [
            ("D", "A", 40),
            ("C", "A", 10),
            ("C", "B", 20),
        ]
        assert [p.priority for p in payments] == [1, 2, 3]

    def test_equal_debtors_pay_in_player_id_order(self, make_balances):
        """Test that tied debtors are served by ascending player id."""
        balances = make_balances(D=-10, C=-10, A=30, B=-10)
        expected = [("B", "A", 10), ("C", "A", 10), ("D", "A", 10)]

        for _ in range(3):
            assert as_tuples(GreedyDebtReduction().settle(balances)) == expected
        assert as_tuples(GreedyDebtReduction().settle(list(reversed(balances)))) == expected

    def test_equal_creditors_paid_in_player_id_order(self, make_balances):
        """Test that tied creditors are served by ascending player id."""
        payments = GreedyDebtReduction().settle(make_balances(Z=15, Y=15, X=-30))
        assert as_tuples(payments) == [("X", "Y", 15), ("X", "Z", 15)]

    def test_at_most_n_minus_one_payments(self, five_players):
        """Test the n - 1 upper bound."""
        payments = GreedyDebtReduction().settle(five_players)
        assert len(payments) == 4
        assert net_effect(payments) == owed(five_players)

    def test_zero_positions_skipped(self, make_balances):
        """Test that settled players never appear in the plan."""
        payments = GreedyDebtReduction().settle(make_balances(A=10, Z=0, B=-10))
        assert as_tuples(payments) == [("B", "A", 10)]

    def test_empty_when_everyone_even(self, make_balances):
        """Test that an all-zero snapshot needs no payments."""
        assert GreedyDebtReduction().settle(make_balances(A=0, B=0)) == []

    def test_names_carried(self, four_players):
        """Test display names on emitted payments."""
        payment = GreedyDebtReduction().settle(four_players)[0]
        assert payment.from_player_name == "Player D"
        assert payment.description == "Player D pays Player A"


class TestHubBasedSettlement:
    """Tests for routing through a hub player."""

    def test_largest_creditor_is_default_hub(self, four_players):
        """Test hub selection and routing."""
        payments = HubBasedSettlement().settle(four_players)
        assert as_tuples(payments) == [
            ("C", "A", 30),
            ("D", "A", 40),
            ("A", "B", 20),
        ]

    def test_requested_hub(self, four_players):
        """Test that a debtor can act as hub."""
        payments = HubBasedSettlement(hub_player_id="C").settle(four_players)
        assert as_tuples(payments) == [
            ("D", "C", 40),
            ("C", "A", 50),
            ("C", "B", 20),
        ]
        assert net_effect(payments) == owed(four_players)

    def test_unknown_hub_rejected(self, four_players):
        """Test that the hub must be a session player."""
        with pytest.raises(InvalidPaymentPlanError, match="not part of this session"):
            HubBasedSettlement(hub_player_id="ghost").settle(four_players)


class TestBalancedFlowSettlement:
    """Tests for installment splitting."""

    def test_average_stake(self, four_players, make_balances):
        """Test the ceiling mean of non-zero magnitudes."""
        assert average_stake(four_players) == 35
        assert average_stake(make_balances(A=5, Z=0, B=-4, C=-1)) == 4
        assert average_stake(make_balances(A=0)) == 0

    def test_large_payment_split_into_installments(self, four_players):
        """Test that D->A 40 becomes two installments of 20."""
        run = BalancedFlowSettlement().run(four_players)

        assert as_tuples(run.payments) == [
            ("D", "A", 20),
            ("D", "A", 20),
            ("C", "A", 10),
            ("C", "B", 20),
        ]
        first, second = run.payments[:2]
        assert (first.installment, first.installments) == (1, 2)
        assert (second.installment, second.installments) == (2, 2)
        assert [p.priority for p in run.payments] == [1, 2, 3, 4]
        assert net_effect(run.payments) == owed(four_players)

    def test_uneven_installments_recorded(self, make_balances):
        """Test that uneven splits leave a rounding trace."""
        run = BalancedFlowSettlement().run(make_balances(A=7, B=1, C=-8))
        amounts = [p.amount for p in run.payments]
        assert sum(amounts) == 8
        assert max(amounts) - min(amounts) <= 6
        assert all(p.amount <= 4 for p in run.payments)
        assert run.rounding_operations


class TestMinimalTransactionsSearch:
    """Tests for the branch-and-bound search."""

    def test_beats_greedy(self, five_players):
        """Test that the search finds a three-payment plan."""
        run = MinimalTransactionsSearch().run(five_players)
        assert run.transaction_count == 3
        assert run.fell_back is False
        assert run.nodes_explored > 0
        assert net_effect(run.payments) == owed(five_players)

    def test_never_worse_than_greedy(self, four_players):
        """Test that greedy is kept when it is already optimal."""
        run = MinimalTransactionsSearch().run(four_players)
        assert run.transaction_count == 3
        assert net_effect(run.payments) == owed(four_players)

    def test_node_budget_falls_back(self, four_players):
        """Test that an exhausted budget returns the greedy plan."""
        search = MinimalTransactionsSearch(search_settings=SearchSettings(node_budget=1))
        run = search.run(four_players)
        assert run.fell_back is True
        assert as_tuples(run.payments) == as_tuples(GreedyDebtReduction().settle(four_players))

    def test_participant_cap_falls_back(self, five_players):
        """Test that large sessions skip the search."""
        search = MinimalTransactionsSearch(search_settings=SearchSettings(max_participants=4))
        run = search.run(five_players)
        assert run.fell_back is True
        assert run.nodes_explored == 0
        assert run.transaction_count == 4


class TestManualSettlement:
    """Tests for organizer-supplied plans."""

    def test_passes_payments_through(self, four_players):
        """Test that manual payments are kept and renumbered."""
        manual = [
            {"from_player_id": "C", "to_player_id": "A", "amount": 30, "priority": 5},
            PaymentPlanEntry(from_player_id="D", to_player_id="A", amount=20),
        ]
        payments = ManualSettlement(payments=manual).settle(four_players)
        assert as_tuples(payments) == [("C", "A", 30), ("D", "A", 20)]
        assert [p.priority for p in payments] == [1, 2]
        assert payments[0].from_player_name == "Player C"

    def test_malformed_payment_rejected(self):
        """Test that unreadable entries raise InvalidPaymentPlanError."""
        with pytest.raises(InvalidPaymentPlanError, match="#2"):
            parse_manual_payments([
                {"from_player_id": "C", "to_player_id": "A", "amount": 1},
                {"from_player_id": "C"},
            ])

    def test_bad_amounts_left_for_validator(self):
        """Test that self-payments and zero amounts parse."""
        parsed = parse_manual_payments([{"from_player_id": "A", "to_player_id": "A", "amount": 0}])
        assert parsed[0].amount == 0


class TestRegistry:
    """Tests for the algorithm registry."""

    def test_automatic_algorithms_exclude_manual(self):
        """Test the automatic list and its order."""
        assert AlgorithmType.MANUAL_SETTLEMENT not in AUTOMATIC_ALGORITHMS
        assert AUTOMATIC_ALGORITHMS[0] == AlgorithmType.DIRECT_SETTLEMENT
        assert len(AUTOMATIC_ALGORITHMS) == 5

    def test_parse_algorithm_type_from_string(self):
        """Test string values are accepted."""
        assert parse_algorithm_type("hub_based") == AlgorithmType.HUB_BASED

    def test_unknown_algorithm(self):
        """Test that unknown names raise UnknownAlgorithmError."""
        with pytest.raises(UnknownAlgorithmError):
            get_algorithm("fastest_possible")

    def test_run_algorithm_passes_hub(self, four_players):
        """Test that hub_player_id reaches the hub algorithm."""
        run = run_algorithm(AlgorithmType.HUB_BASED, four_players, hub_player_id="B")
        assert {p.to_player_id for p in run.payments if p.from_player_id != "B"} == {"B"}

    @pytest.mark.parametrize("algorithm_type", AUTOMATIC_ALGORITHMS)
    def test_every_algorithm_settles_exactly(self, algorithm_type, five_players):
        """Test that every automatic plan settles every position."""
        run = run_algorithm(algorithm_type, five_players)
        assert run.algorithm == algorithm_type
        assert net_effect(run.payments) == owed(five_players)
        assert all(p.amount > 0 for p in run.payments)
        assert all(p.from_player_id != p.to_player_id for p in run.payments)

    @pytest.mark.parametrize("algorithm_type", AUTOMATIC_ALGORITHMS)
    def test_two_players_one_payment(self, algorithm_type, make_balances):
        """Test the smallest possible settlement."""
        run = run_algorithm(algorithm_type, make_balances(A=1, B=-1))
        assert as_tuples(run.payments) == [("B", "A", 1)]


def random_snapshot(rng, make_balances):
    """Zero-sum snapshot of 2-9 players with magnitudes of 50.00-200.00."""
    while True:
        count = rng.randint(2, 9)
        nets = [rng.choice((-1, 1)) * rng.randint(5_000, 20_000) for _ in range(count - 1)]
        last = -sum(nets)
        if abs(last) >= 5_000:
            nets.append(last)
            return make_balances(**{f"P{i}": net for i, net in enumerate(nets)})


class TestSettlementProperties:
    """Randomized checks of conservation and payment-count bounds."""

    def test_random_snapshots(self, make_balances, monkeypatch):
        """Test every automatic algorithm on seeded random sessions."""
        monkeypatch.setenv("SETTLEMENT_SEARCH_NODE_BUDGET", "20000")
        settings = Settings()
        rng = random.Random(20260101)

        for _ in range(150):
            balances = random_snapshot(rng, make_balances)
            participants = sum(1 for b in balances if b.net_position != 0)
            runs = {
                algorithm_type: run_algorithm(algorithm_type, balances, settings=settings)
                for algorithm_type in AUTOMATIC_ALGORITHMS
            }

            for algorithm_type, run in runs.items():
                assert net_effect(run.payments) == owed(balances), algorithm_type
                assert all(p.amount > 0 for p in run.payments), algorithm_type

            greedy = runs[AlgorithmType.GREEDY_DEBT_REDUCTION].transaction_count
            assert greedy <= participants - 1
            assert greedy <= runs[AlgorithmType.DIRECT_SETTLEMENT].transaction_count
            assert runs[AlgorithmType.MINIMAL_TRANSACTIONS].transaction_count <= greedy

    def test_random_snapshots_deterministic(self, make_balances):
        """Test that greedy gives the same plan for the same snapshot."""
        rng = random.Random(7)
        for _ in range(25):
            balances = random_snapshot(rng, make_balances)
            first = GreedyDebtReduction().settle(balances)
            assert GreedyDebtReduction().settle(balances) == first


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
