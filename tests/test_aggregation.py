"""Tests for ledger aggregation and balance normalization."""

import pytest

from settlement_engine.aggregation import (
    aggregate_balances,
    calculate_early_cash_out,
    check_balance,
    compute_bank_balance,
    find_absorber,
    net_settled_amount,
    normalize_positions,
    payment_flows,
)
from settlement_engine.config import EngineSettings
from settlement_engine.errors import UnbalancedInputError
from settlement_engine.models import (
    EarlyCashOutType,
    ErrorCode,
    ErrorKind,
    LedgerEntry,
    LedgerEntryType,
    PaymentPlanEntry,
)


def buy_in(player_id: str, amount: int, **kwargs) -> LedgerEntry:
    return LedgerEntry(player_id=player_id, entry_type=LedgerEntryType.BUY_IN, amount=amount, **kwargs)


def cash_out(player_id: str, amount: int, **kwargs) -> LedgerEntry:
    return LedgerEntry(player_id=player_id, entry_type=LedgerEntryType.CASH_OUT, amount=amount, **kwargs)


class TestAggregateBalances:
    """Tests for turning ledger entries into balances."""

    def test_aggregates_in_first_seen_order(self):
        """Test totals and ordering of aggregated balances."""
        entries = [
            buy_in("bob", 10000, player_name="Bob"),
            buy_in("amy", 10000, player_name="Amy"),
            buy_in("bob", 5000),
            cash_out("amy", 17000),
            cash_out("bob", 8000),
        ]
        balances = aggregate_balances(entries)

        assert [b.player_id for b in balances] == ["bob", "amy"]
        bob, amy = balances
        assert bob.name == "Bob"
        assert bob.total_buy_ins == 15000
        assert bob.net_position == -7000
        assert amy.net_position == 7000

    def test_voided_entries_ignored(self):
        """Test that voided entries do not count."""
        entries = [
            buy_in("a", 10000),
            buy_in("a", 99999, is_voided=True),
            cash_out("a", 10000),
        ]
        balances = aggregate_balances(entries)
        assert balances[0].net_position == 0

    def test_chip_counts_count_as_cash_out(self):
        """Test that chips still on the table are counted."""
        entries = [buy_in("a", 5000), buy_in("b", 5000)]
        balances = aggregate_balances(entries, chip_counts={"a": 8000, "b": 2000})
        assert {b.player_id: b.net_position for b in balances} == {"a": 3000, "b": -3000}

    def test_negative_chip_count_rejected(self):
        """Test that negative chip counts are rejected."""
        with pytest.raises(ValueError, match="cannot be negative"):
            aggregate_balances([buy_in("a", 100)], chip_counts={"a": -1})

    def test_unbalanced_ledger_raises(self):
        """Test that a ledger off by more than tolerance is rejected."""
        entries = [buy_in("a", 10000), cash_out("b", 10500)]
        with pytest.raises(UnbalancedInputError) as exc_info:
            aggregate_balances(entries)
        assert exc_info.value.net_sum == 500
        assert exc_info.value.tolerance == 2

    def test_explicit_tolerance_setting(self):
        """Test that a configured tolerance overrides the player count."""
        entries = [buy_in("a", 10000), cash_out("b", 10500)]
        balances = aggregate_balances(
            entries, settings=EngineSettings(balance_tolerance_minor_units=500)
        )
        assert len(balances) == 2


class TestNormalization:
    """Tests for absorbing within-tolerance remainders."""

    def test_check_balance_returns_sum(self, make_balances):
        """Test that check_balance returns the observed sum."""
        assert check_balance(make_balances(A=5001, B=-5000), tolerance=2) == 1

    def test_balanced_snapshot_unchanged(self, make_balances):
        """Test that a zero-sum snapshot needs no adjustment."""
        balances = make_balances(A=50, B=-50)
        normalized, adjustments = normalize_positions(balances, tolerance=2)
        assert normalized == balances
        assert adjustments == []

    def test_positive_remainder_absorbed_by_largest_creditor(self, make_balances):
        """Test that the largest creditor absorbs a positive remainder."""
        balances = make_balances(A=3001, B=2000, C=-5000)
        normalized, adjustments = normalize_positions(balances, tolerance=3)

        assert sum(b.net_position for b in normalized) == 0
        assert normalized[0].net_position == 3000
        assert adjustments[0].player_id == "A"
        assert adjustments[0].delta == -1

    def test_negative_remainder_absorbed_by_largest_debtor(self, make_balances):
        """Test that the largest debtor absorbs a negative remainder."""
        balances = make_balances(A=5000, B=-2000, C=-3002)
        normalized, adjustments = normalize_positions(balances, tolerance=3)

        assert normalized[2].net_position == -3000
        assert adjustments[0].player_id == "C"
        assert adjustments[0].delta == 2
        assert balances[2].net_position == -3002

    def test_absorber_tie_goes_to_smallest_id(self, make_balances):
        """Test deterministic tie-breaking between equal creditors."""
        balances = make_balances(B=100, A=100, C=-199)
        assert find_absorber(balances, 1).player_id == "A"

    def test_remainder_beyond_tolerance_raises(self, make_balances):
        """Test that normalization never hides a real imbalance."""
        with pytest.raises(UnbalancedInputError):
            normalize_positions(make_balances(A=100, B=-50), tolerance=2)


class TestBankBalance:
    """Tests for the bank view of the ledger."""

    def test_bank_balance(self):
        """Test bank discrepancy calculation."""
        entries = [buy_in("a", 10000), buy_in("b", 10000), cash_out("a", 12000)]
        bank = compute_bank_balance(entries, chip_counts={"b": 8000})
        assert bank.total_chips_in_play == 8000
        assert bank.available_for_cash_out == 8000
        assert bank.discrepancy == 0
        assert bank.is_balanced is True

    def test_bank_discrepancy(self):
        """Test that missing chips show up as a discrepancy."""
        bank = compute_bank_balance([buy_in("a", 10000)], chip_counts={"a": 9000})
        assert bank.discrepancy == -1000
        assert bank.is_balanced is False


class TestEarlyCashOut:
    """Tests for settling a player who leaves mid-game."""

    @pytest.fixture
    def ledger(self):
        return [
            buy_in("amy", 10000, player_name="Amy"),
            buy_in("bob", 10000),
            buy_in("cara", 10000),
            buy_in("amy", 5000, is_voided=True),
            cash_out("bob", 5000),
        ]

    def test_winner_paid_from_bank(self, ledger):
        """Test that a winning player receives their net from the bank."""
        outcome = calculate_early_cash_out(ledger, "amy", 16000)

        assert outcome.is_ok is True
        result = outcome.value
        assert result.player_name == "Amy"
        assert result.total_buy_ins == 10000
        assert result.net_position == 6000
        assert result.settlement_type == EarlyCashOutType.PAYMENT_TO_PLAYER
        assert result.settlement_amount == 6000
        assert result.bank_balance_before == 25000
        assert result.bank_balance_after == 19000

    def test_loser_pays_into_bank(self, ledger):
        """Test that a losing player pays their shortfall."""
        result = calculate_early_cash_out(ledger, "cara", 4000).value
        assert result.settlement_type == EarlyCashOutType.PAYMENT_FROM_PLAYER
        assert result.settlement_amount == 6000
        assert result.bank_balance_after == 31000

    def test_even_player(self, ledger):
        """Test that a break-even player settles nothing."""
        result = calculate_early_cash_out(ledger, "cara", 10000).value
        assert result.settlement_type == EarlyCashOutType.EVEN
        assert result.settlement_amount == 0
        assert result.bank_balance_after == result.bank_balance_before

    def test_insufficient_bank_balance(self, ledger):
        """Test that a payout larger than the bank's cash is refused."""
        outcome = calculate_early_cash_out(ledger, "amy", 40000)

        assert outcome.is_ok is False
        assert outcome.kind == ErrorKind.INSUFFICIENT_BANK_BALANCE
        assert [e.code for e in outcome.errors] == [ErrorCode.INSUFFICIENT_BANK_BALANCE]
        assert outcome.errors[0].affected_players == ["amy"]
        assert outcome.message == "Insufficient bank balance: requested 30000, available 25000"

    def test_negative_chip_count(self, ledger):
        """Test that negative chip counts are an invalid request."""
        outcome = calculate_early_cash_out(ledger, "amy", -1)
        assert outcome.kind == ErrorKind.INVALID_REQUEST

    def test_unknown_player(self, ledger):
        """Test that a player without entries is an invalid request."""
        outcome = calculate_early_cash_out(ledger, "dan", 1000)
        assert outcome.kind == ErrorKind.INVALID_REQUEST
        assert "dan" in outcome.message


class TestPaymentFlows:
    """Tests for plan flow helpers."""

    def test_net_settled_amount_ignores_pass_through(self):
        """Test that money routed through a hub is counted once."""
        payments = [
            PaymentPlanEntry(from_player_id="C", to_player_id="A", amount=30),
            PaymentPlanEntry(from_player_id="D", to_player_id="A", amount=40),
            PaymentPlanEntry(from_player_id="A", to_player_id="B", amount=20),
        ]
        assert payment_flows(payments)["A"] == (20, 70)
        assert net_settled_amount(payments) == 70

    def test_net_settled_amount_plain_plan(self):
        """Test that a plan without pass-through settles its full sum."""
        payments = [
            PaymentPlanEntry(from_player_id="D", to_player_id="A", amount=40),
            PaymentPlanEntry(from_player_id="C", to_player_id="B", amount=20),
        ]
        assert net_settled_amount(payments) == 60


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
