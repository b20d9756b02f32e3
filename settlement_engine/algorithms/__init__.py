"""Settlement algorithm library."""

from settlement_engine.algorithms.balanced_flow import BalancedFlowSettlement, average_stake
from settlement_engine.algorithms.base import SettlementAlgorithm
from settlement_engine.algorithms.direct import DirectSettlement
from settlement_engine.algorithms.greedy import GreedyDebtReduction, greedy_plan
from settlement_engine.algorithms.hub import HubBasedSettlement
from settlement_engine.algorithms.manual import ManualSettlement, parse_manual_payments
from settlement_engine.algorithms.minimal_search import MinimalTransactionsSearch
from settlement_engine.algorithms.registry import (
    ALGORITHMS,
    AUTOMATIC_ALGORITHMS,
    get_algorithm,
    parse_algorithm_type,
    run_algorithm,
)

__all__ = [
    "ALGORITHMS",
    "AUTOMATIC_ALGORITHMS",
    "BalancedFlowSettlement",
    "DirectSettlement",
    "GreedyDebtReduction",
    "HubBasedSettlement",
    "ManualSettlement",
    "MinimalTransactionsSearch",
    "SettlementAlgorithm",
    "average_stake",
    "get_algorithm",
    "greedy_plan",
    "parse_algorithm_type",
    "parse_manual_payments",
    "run_algorithm",
]
