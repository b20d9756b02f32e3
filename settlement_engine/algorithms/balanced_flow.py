"""
Balanced Flow

Greedy matching, then every payment larger than the average stake is
split into the fewest near-equal installments that do not exceed it.
Trades a higher payment count for no single "shock" transfer.

average stake = ceil(mean |net position| of non-zero players)
"""

from typing import Sequence

from settlement_engine.algorithms.base import (
    SettlementAlgorithm,
    make_payment,
    name_lookup,
)
from settlement_engine.algorithms.greedy import greedy_plan
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmType
from settlement_engine.precision import PrecisionTracker, split_evenly


def average_stake(balances: Sequence[PlayerBalance]) -> int:
    magnitudes = [abs(b.net_position) for b in balances if b.net_position != 0]
    if not magnitudes:
        return 0
    return -(-sum(magnitudes) // len(magnitudes))


class BalancedFlowSettlement(SettlementAlgorithm):
    algorithm_type = AlgorithmType.BALANCED_FLOW
    name = "Balanced Flow"
    description = "Balances payment amounts to create fair transaction distribution"

    def _build(
        self,
        balances: Sequence[PlayerBalance],
        tracker: PrecisionTracker,
    ) -> list[PaymentPlanEntry]:
        stake = average_stake(balances)
        names = name_lookup(balances)
        payments = []

        for payment in greedy_plan(balances):
            if stake <= 0 or payment.amount <= stake:
                payments.append(payment.model_copy(update={"priority": len(payments) + 1}))
                continue

            count = -(-payment.amount // stake)
            parts = split_evenly(payment.amount, count)
            for index, part in enumerate(parts, start=1):
                tracker.record(
                    operation=f"installment:{payment.from_player_id}->{payment.to_player_id}:{index}",
                    numerator=payment.amount,
                    denominator=count,
                    rounded_value=part,
                    rounding_mode="floor_with_remainder_first",
                )
                payments.append(make_payment(
                    payment.from_player_id,
                    payment.to_player_id,
                    part,
                    priority=len(payments) + 1,
                    names=names,
                    description=(
                        f"{payment.from_player_name} pays {payment.to_player_name} "
                        f"(installment {index} of {count})"
                    ),
                    installment=index,
                    installments=count,
                ))
            tracker.check_drift(
                f"installments:{payment.from_player_id}->{payment.to_player_id}",
                payment.amount,
                sum(parts),
            )

        return payments

    def pros_and_cons(self, payments, optimization_percentage):
        return (
            [
                "Balances payment amounts fairly",
                "Good optimization",
                "Mathematically sound",
                "Considers player comfort levels",
            ],
            [
                "More complex than direct settlement",
                "May still require multiple transactions",
                "Longer calculation time",
            ],
        )
