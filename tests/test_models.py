"""
Tests for the Settlement Engine models

Test strategy:
1. Unit tests for individual components (models, algorithms, validators)
2. Integration tests for the settlement flow
3. Deterministic inputs only (fixed clock, fixed player order)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from settlement_engine.models import (
    AlgorithmType,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Err,
    ErrorCode,
    ErrorKind,
    FractionalCentAdjustment,
    LedgerEntry,
    LedgerEntryType,
    ManualAdjustmentRecord,
    ManualAdjustmentType,
    PaymentPlanEntry,
    PlayerBalance,
    SettlementError,
    SettlementValidation,
    SettlementWarning,
    Severity,
    WarningCode,
)


class TestBalanceModels:
    """Tests for ledger and balance Pydantic models."""

    def test_ledger_entry_creation(self):
        """Test LedgerEntry model creation."""
        entry = LedgerEntry(
            player_id="p1",
            player_name="  Alice  ",
            entry_type=LedgerEntryType.BUY_IN,
            amount=10000,
        )
        assert entry.player_name == "Alice"
        assert entry.is_voided is False

    def test_ledger_entry_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            LedgerEntry(player_id="p1", entry_type=LedgerEntryType.CASH_OUT, amount=-1)

    def test_from_major_units_rounds_half_up(self):
        """Test decimal conversion uses ROUND_HALF_UP by default."""
        entry = LedgerEntry.from_major_units("p1", LedgerEntryType.BUY_IN, "12.345")
        assert entry.amount == 1235

    def test_from_major_units_float_is_exact(self):
        """Test that 0.1 converts to exactly 10 cents."""
        entry = LedgerEntry.from_major_units("p1", LedgerEntryType.BUY_IN, 0.1)
        assert entry.amount == 10

    def test_from_major_units_respects_rounding_mode(self):
        """Test a non-default rounding mode."""
        entry = LedgerEntry.from_major_units(
            "p1", LedgerEntryType.BUY_IN, Decimal("12.345"), rounding_mode="ROUND_HALF_EVEN"
        )
        assert entry.amount == 1234

    def test_player_balance_derives_net_position(self):
        """Test net position = cash-outs - buy-ins when omitted."""
        balance = PlayerBalance(player_id="a", total_buy_ins=10000, total_cash_outs=15000)
        assert balance.net_position == 5000
        assert balance.is_creditor is True
        assert balance.is_debtor is False

    def test_player_balance_rejects_contradicting_net(self):
        """Test that an explicit net position must match the totals."""
        with pytest.raises(ValueError, match="does not match cash-outs minus buy-ins"):
            PlayerBalance(player_id="x", total_buy_ins=100, total_cash_outs=0, net_position=500)

    def test_player_balance_accepts_matching_net(self):
        """Test that a consistent explicit net position is kept."""
        balance = PlayerBalance(player_id="x", total_buy_ins=100, total_cash_outs=40, net_position=-60)
        assert balance.net_position == -60

    def test_player_balance_net_only(self):
        """Test that a net position without totals is accepted."""
        balance = PlayerBalance(player_id="x", net_position=500)
        assert balance.net_position == 500
        assert balance.is_creditor is True

    def test_player_balance_from_net(self):
        """Test building a balance from a bare net position."""
        balance = PlayerBalance.from_net("a", -300)
        assert balance.total_buy_ins == 300
        assert balance.total_cash_outs == 0
        assert balance.display_name == "a"

    def test_with_net_position_keeps_totals_consistent(self):
        """Test that a shifted position never produces negative totals."""
        balance = PlayerBalance.from_net("a", 100).with_net_position(-50)
        assert balance.net_position == -50
        assert balance.total_cash_outs == 0
        assert balance.total_buy_ins == 50

    def test_player_balance_is_frozen(self):
        """Test that balances cannot be edited in place."""
        balance = PlayerBalance.from_net("a", 100)
        with pytest.raises(ValueError):
            balance.net_position = 5

    def test_payment_installment_fields(self):
        """Test installment detection and pair helper."""
        payment = PaymentPlanEntry(
            from_player_id="c", to_player_id="a", amount=20, installment=1, installments=2
        )
        assert payment.pair == ("c", "a")
        assert payment.is_installment is True
        assert PaymentPlanEntry(from_player_id="c", to_player_id="a", amount=20).is_installment is False

    def test_fractional_cent_adjustment_delta(self):
        """Test the recorded change of an absorbed remainder."""
        adjustment = FractionalCentAdjustment(
            player_id="a",
            original_amount=5001,
            adjusted_amount=5000,
            adjustment_reason="test",
        )
        assert adjustment.delta == -1


class TestValidationModels:
    """Tests for validation findings."""

    def test_error_rejects_minor_severity(self):
        """Test that blocking errors cannot be minor."""
        with pytest.raises(ValueError, match="critical or major"):
            SettlementError(
                code=ErrorCode.SELF_PAYMENT,
                message="test",
                severity=Severity.MINOR,
            )

    def test_critical_warning_blocks_proceeding(self):
        """Test can_proceed is False when a warning forbids it."""
        validation = SettlementValidation(
            is_valid=True,
            warnings=[
                SettlementWarning(
                    code=WarningCode.BALANCE_DISCREPANCY,
                    message="drift",
                    severity=Severity.CRITICAL,
                    can_proceed=False,
                ),
            ],
        )
        assert validation.is_valid is True
        assert validation.can_proceed is False

    def test_invalid_validation_cannot_proceed(self):
        """Test that errors always block."""
        validation = SettlementValidation(
            is_valid=False,
            errors=[SettlementError(code=ErrorCode.UNKNOWN_PLAYER, message="x")],
        )
        assert validation.can_proceed is False
        assert validation.auto_corrections == []


class TestSettlementModels:
    """Tests for settlement enums and result types."""

    def test_algorithm_order(self):
        """Test the tie-break order of algorithm types."""
        assert [t.value for t in AlgorithmType] == [
            "direct_settlement",
            "greedy_debt_reduction",
            "hub_based",
            "balanced_flow",
            "minimal_transactions",
            "manual_settlement",
        ]
        assert AlgorithmType.DIRECT_SETTLEMENT.rank == 0
        assert AlgorithmType.MANUAL_SETTLEMENT.rank == 5

    def test_err_is_not_ok(self):
        """Test Err result type."""
        err = Err(kind=ErrorKind.UNBALANCED_INPUT, message="off by 500")
        assert err.is_ok is False
        assert err.errors == []

    def test_manual_adjustment_balance_impact(self):
        """Test the signed impact of a manual adjustment."""
        record = ManualAdjustmentRecord(
            adjustment_id="adj_0001",
            timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
            player_id="a",
            adjustment_type=ManualAdjustmentType.CHIP_COUNT,
            field_changed="chips",
            previous_value=12000,
            new_value=9000,
        )
        assert record.balance_impact == -3000


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_REQUESTED,
            description="Settlement requested",
        )
        assert event.event_type == AuditEventType.SETTLEMENT_REQUESTED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.PROOF_GENERATED,
            description="Proof generated",
            details={"settlement_id": "stl_1"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "proof_generated"
        assert log_dict["details"]["settlement_id"] == "stl_1"
        assert log_dict["correlation_id"] is None

    def test_audit_event_builder_settlement_requested(self):
        """Test AuditEventBuilder.settlement_requested."""
        correlation_id = uuid4()
        event = AuditEventBuilder.settlement_requested(
            player_count=4,
            algorithm=None,
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.SETTLEMENT_REQUESTED
        assert event.correlation_id == correlation_id
        assert event.details["algorithm"] == "all"
        assert event.is_user_action is True

    def test_audit_event_builder_proof_severity(self):
        """Test that an invalid proof is logged as an error."""
        event = AuditEventBuilder.proof_generated(
            settlement_id="stl_1",
            proof_id="proof_1",
            is_valid=False,
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == "proof_1"

    def test_audit_event_builder_monitoring_warning(self):
        """Test that critical monitoring warnings map to error severity."""
        event = AuditEventBuilder.monitoring_warning(
            settlement_id="stl_1",
            code="BALANCE_DISCREPANCY",
            severity="critical",
            message="drift",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.details["code"] == "BALANCE_DISCREPANCY"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
