"""Settlement comparison and scoring package."""

from settlement_engine.scoring.comparator import (
    SettlementComparator,
    efficiency_score,
    fairness_score,
    lower_bound,
    optimization_percentage,
    score_payments,
    simplicity_score,
)

__all__ = [
    "SettlementComparator",
    "efficiency_score",
    "fairness_score",
    "lower_bound",
    "optimization_percentage",
    "score_payments",
    "simplicity_score",
]
