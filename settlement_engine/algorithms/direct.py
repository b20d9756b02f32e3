"""
Direct Settlement

The unconsolidated baseline: every debtor pays every creditor, the
debt being split in proportion to each creditor's share of the total
credit. With d debtors and c creditors this produces up to d * c
payments and is the "before" figure every other plan is compared to.

Each debtor's row is split with the largest-remainder method, so rows
are exact. Rounding can still leave a creditor's column a few cents
off; those cents are moved between columns within a row, visiting
creditors in ascending player id order, until every column is exact.
"""

from typing import Sequence

from settlement_engine.algorithms.base import (
    SettlementAlgorithm,
    creditors_of,
    debtors_of,
    make_payment,
    name_lookup,
)
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmType
from settlement_engine.precision import PrecisionTracker, allocate_proportionally


class DirectSettlement(SettlementAlgorithm):
    algorithm_type = AlgorithmType.DIRECT_SETTLEMENT
    name = "Direct Settlement"
    description = "Each debtor pays every creditor in proportion to what they are owed"

    def _build(
        self,
        balances: Sequence[PlayerBalance],
        tracker: PrecisionTracker,
    ) -> list[PaymentPlanEntry]:
        creditors = creditors_of(balances)
        debtors = debtors_of(balances)
        if not creditors or not debtors:
            return []

        credit_ids = [c.player_id for c in creditors]
        credits = [c.net_position for c in creditors]

        # matrix[i][j]: debtor i pays creditor j
        matrix = [
            allocate_proportionally(
                total=-debtor.net_position,
                weights=credits,
                keys=credit_ids,
                tracker=tracker,
                operation=f"direct_share:{debtor.player_id}",
            )
            for debtor in debtors
        ]

        self._repair_columns(matrix, credits, tracker)

        names = name_lookup(balances)
        payments = []
        for i, debtor in enumerate(debtors):
            for j, creditor in enumerate(creditors):
                amount = matrix[i][j]
                if amount > 0:
                    payments.append(make_payment(
                        debtor.player_id,
                        creditor.player_id,
                        amount,
                        priority=len(payments) + 1,
                        names=names,
                    ))
        return payments

    @staticmethod
    def _repair_columns(
        matrix: list[list[int]],
        credits: list[int],
        tracker: PrecisionTracker,
    ) -> None:
        """Move single units within rows until every column sums to its credit."""
        received = [sum(row[j] for row in matrix) for j in range(len(credits))]
        drift = [received[j] - credits[j] for j in range(len(credits))]

        for over in range(len(credits)):
            for under in range(len(credits)):
                while drift[over] > 0 and drift[under] < 0:
                    for row in matrix:
                        if drift[over] <= 0 or drift[under] >= 0:
                            break
                        if row[over] > 0:
                            row[over] -= 1
                            row[under] += 1
                            drift[over] -= 1
                            drift[under] += 1

        tracker.check_drift("direct_column_repair", 0, sum(abs(d) for d in drift))

    def pros_and_cons(self, payments, optimization_percentage):
        return (
            [
                "Easy to understand",
                "Each player knows exactly what they owe/receive",
                "No complex calculations",
                "Transparent and intuitive",
            ],
            [
                "Maximum number of transactions",
                "No optimization benefits",
                "Can be tedious with many players",
            ],
        )
