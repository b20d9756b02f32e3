"""Ledger aggregation package."""

from settlement_engine.aggregation.aggregator import (
    aggregate_balances,
    calculate_early_cash_out,
    check_balance,
    compute_bank_balance,
    find_absorber,
    net_settled_amount,
    net_sum,
    normalize_positions,
    payment_flows,
    resolve_tolerance,
)

__all__ = [
    "aggregate_balances",
    "calculate_early_cash_out",
    "check_balance",
    "compute_bank_balance",
    "find_absorber",
    "net_settled_amount",
    "net_sum",
    "normalize_positions",
    "payment_flows",
    "resolve_tolerance",
]
