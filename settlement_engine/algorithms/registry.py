"""
Algorithm registry.

Maps each AlgorithmType to its implementation and builds configured
instances on demand.
"""

from typing import Optional, Sequence

from settlement_engine.algorithms.balanced_flow import BalancedFlowSettlement
from settlement_engine.algorithms.base import SettlementAlgorithm
from settlement_engine.algorithms.direct import DirectSettlement
from settlement_engine.algorithms.greedy import GreedyDebtReduction
from settlement_engine.algorithms.hub import HubBasedSettlement
from settlement_engine.algorithms.manual import ManualPayment, ManualSettlement
from settlement_engine.algorithms.minimal_search import MinimalTransactionsSearch
from settlement_engine.config import Settings
from settlement_engine.errors import UnknownAlgorithmError
from settlement_engine.models.balance import PlayerBalance
from settlement_engine.models.settlement import AlgorithmRun, AlgorithmType


ALGORITHMS: dict[AlgorithmType, type[SettlementAlgorithm]] = {
    AlgorithmType.DIRECT_SETTLEMENT: DirectSettlement,
    AlgorithmType.GREEDY_DEBT_REDUCTION: GreedyDebtReduction,
    AlgorithmType.HUB_BASED: HubBasedSettlement,
    AlgorithmType.BALANCED_FLOW: BalancedFlowSettlement,
    AlgorithmType.MINIMAL_TRANSACTIONS: MinimalTransactionsSearch,
    AlgorithmType.MANUAL_SETTLEMENT: ManualSettlement,
}

# Every type the engine can compute on its own, in tie-break order
AUTOMATIC_ALGORITHMS = [t for t in AlgorithmType if t != AlgorithmType.MANUAL_SETTLEMENT]


def parse_algorithm_type(value) -> AlgorithmType:
    """Accept an AlgorithmType or its string value."""
    if isinstance(value, AlgorithmType):
        return value
    try:
        return AlgorithmType(value)
    except ValueError:
        raise UnknownAlgorithmError(f"Unknown algorithm type: {value!r}") from None


def get_algorithm(
    algorithm_type,
    settings: Optional[Settings] = None,
    hub_player_id: Optional[str] = None,
    manual_payments: Optional[Sequence[ManualPayment]] = None,
) -> SettlementAlgorithm:
    """Build a configured algorithm instance."""
    algorithm_type = parse_algorithm_type(algorithm_type)
    if algorithm_type == AlgorithmType.HUB_BASED:
        return HubBasedSettlement(settings, hub_player_id=hub_player_id)
    if algorithm_type == AlgorithmType.MANUAL_SETTLEMENT:
        return ManualSettlement(settings, payments=manual_payments)
    return ALGORITHMS[algorithm_type](settings)


def run_algorithm(
    algorithm_type,
    balances: Sequence[PlayerBalance],
    settings: Optional[Settings] = None,
    hub_player_id: Optional[str] = None,
    manual_payments: Optional[Sequence[ManualPayment]] = None,
) -> AlgorithmRun:
    """Run one algorithm over a balanced snapshot."""
    algorithm = get_algorithm(
        algorithm_type,
        settings=settings,
        hub_player_id=hub_player_id,
        manual_payments=manual_payments,
    )
    return algorithm.run(balances)
