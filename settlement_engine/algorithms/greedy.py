"""
Greedy Minimal-Transactions

Matches the largest remaining debtor with the largest remaining creditor
and transfers min(debt, credit). At least one of the two is fully
settled by every payment, so n participants need at most n - 1
payments.

Debtors and creditors are ranked once, by (-magnitude, player_id), and
walked with two cursors: the current creditor keeps receiving until it
is fully paid, then the next one in rank takes over. Equal magnitudes
are served in ascending player id order.
"""

from typing import Sequence

from settlement_engine.algorithms.base import (
    SettlementAlgorithm,
    make_payment,
    name_lookup,
)
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmType
from settlement_engine.precision import PrecisionTracker


def rank_by_magnitude(balances: Sequence[PlayerBalance]) -> list[list]:
    """Return [player_id, magnitude] pairs, largest magnitude first."""
    ranked = sorted(balances, key=lambda b: (-abs(b.net_position), b.player_id))
    return [[b.player_id, abs(b.net_position)] for b in ranked]


def greedy_plan(balances: Sequence[PlayerBalance]) -> list[PaymentPlanEntry]:
    """Greedy largest-debtor / largest-creditor matching."""
    debtors = rank_by_magnitude([b for b in balances if b.net_position < 0])
    creditors = rank_by_magnitude([b for b in balances if b.net_position > 0])

    names = name_lookup(balances)
    payments = []
    d = c = 0

    while d < len(debtors) and c < len(creditors):
        debtor = debtors[d]
        creditor = creditors[c]

        amount = min(debtor[1], creditor[1])
        payments.append(make_payment(
            debtor[0],
            creditor[0],
            amount,
            priority=len(payments) + 1,
            names=names,
        ))
        debtor[1] -= amount
        creditor[1] -= amount

        if debtor[1] == 0:
            d += 1
        if creditor[1] == 0:
            c += 1

    return payments


class GreedyDebtReduction(SettlementAlgorithm):
    algorithm_type = AlgorithmType.GREEDY_DEBT_REDUCTION
    name = "Optimized Settlement"
    description = "Minimizes total transactions using greedy debt reduction algorithm"

    def _build(
        self,
        balances: Sequence[PlayerBalance],
        tracker: PrecisionTracker,
    ) -> list[PaymentPlanEntry]:
        return greedy_plan(balances)

    def pros_and_cons(self, payments, optimization_percentage):
        pros = [
            "Reduces transaction count significantly"
            if optimization_percentage > 50
            else "Some transaction reduction",
            "Mathematically optimized",
            "Fast calculation",
        ]
        if optimization_percentage > 75:
            pros.append("Excellent optimization efficiency")
        cons = [
            "May create complex payment amounts",
            "Less intuitive than direct settlement",
        ]
        if optimization_percentage < 25:
            cons.append("Limited optimization benefit")
        return pros, cons
