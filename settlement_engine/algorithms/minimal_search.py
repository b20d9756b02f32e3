"""
Minimal-Transactions Search

Depth-first branch-and-bound over the non-zero balances. Each branch
settles the first unsettled player against one opposite-sign player,
transferring min(|a|, |b|), so at least one of the two is zeroed and
nobody ever pays more than they owe.

Pruning:
- lower bound: max(#creditors, #debtors) payments are still needed
- incumbent: seeded with the greedy payment count; only strictly better
  plans replace it, so the result is never worse than greedy
- equal residual balances are tried once per level

Budget: a node count and a wall-clock limit. When either runs out, or
there are more participants than the configured cap, the greedy plan is
returned and the run is flagged fell_back.
"""

import time
from typing import Optional, Sequence

from settlement_engine.algorithms.base import (
    SettlementAlgorithm,
    make_payment,
    name_lookup,
)
from settlement_engine.algorithms.greedy import greedy_plan
from settlement_engine.config import SearchSettings, Settings
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmRun, AlgorithmType
from settlement_engine.precision import PrecisionTracker


class SearchBudgetExceeded(Exception):
    """Raised inside the search to unwind once the budget is spent."""
    pass


class _Search:
    """State of one search. Not reusable."""

    def __init__(self, ids: list[str], amounts: list[int], incumbent: int, budget: SearchSettings):
        self.ids = ids
        self.amounts = amounts
        self.best_count = incumbent
        self.best_path: Optional[list[tuple[int, int, int]]] = None
        self.nodes = 0
        self._node_budget = budget.node_budget
        self._deadline = time.perf_counter() + budget.time_budget_ms / 1000

    def _tick(self) -> None:
        self.nodes += 1
        if self.nodes > self._node_budget:
            raise SearchBudgetExceeded()
        if self.nodes % 1024 == 0 and time.perf_counter() > self._deadline:
            raise SearchBudgetExceeded()

    def _lower_bound(self, start: int) -> int:
        positive = negative = 0
        for amount in self.amounts[start:]:
            if amount > 0:
                positive += 1
            elif amount < 0:
                negative += 1
        return max(positive, negative)

    def run(self) -> None:
        self._dfs(0, [])

    def _dfs(self, start: int, path: list[tuple[int, int, int]]) -> None:
        self._tick()
        amounts = self.amounts
        while start < len(amounts) and amounts[start] == 0:
            start += 1

        if start == len(amounts):
            if len(path) < self.best_count:
                self.best_count = len(path)
                self.best_path = list(path)
            return

        if len(path) + self._lower_bound(start) >= self.best_count:
            return

        current = amounts[start]
        tried = set()
        for partner in range(start + 1, len(amounts)):
            other = amounts[partner]
            if other == 0 or (other > 0) == (current > 0) or other in tried:
                continue
            tried.add(other)

            transfer = min(abs(current), abs(other))
            sign = 1 if current > 0 else -1
            amounts[start] -= sign * transfer
            amounts[partner] += sign * transfer

            # (payer index, payee index, amount)
            if current > 0:
                path.append((partner, start, transfer))
            else:
                path.append((start, partner, transfer))

            self._dfs(start, path)

            path.pop()
            amounts[start] += sign * transfer
            amounts[partner] -= sign * transfer


class MinimalTransactionsSearch(SettlementAlgorithm):
    algorithm_type = AlgorithmType.MINIMAL_TRANSACTIONS
    name = "Minimal Transactions"
    description = "Absolute minimum transactions using mathematical optimization"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        search_settings: Optional[SearchSettings] = None,
    ):
        super().__init__(settings)
        self._search = search_settings or self._settings.search

    def run(self, balances: Sequence[PlayerBalance]) -> AlgorithmRun:
        started = time.perf_counter()
        payments, fell_back, nodes = self.search(balances)
        return AlgorithmRun(
            algorithm=self.algorithm_type,
            payments=payments,
            elapsed_ms=(time.perf_counter() - started) * 1000,
            fell_back=fell_back,
            nodes_explored=nodes,
        )

    def _build(
        self,
        balances: Sequence[PlayerBalance],
        tracker: PrecisionTracker,
    ) -> list[PaymentPlanEntry]:
        return self.search(balances)[0]

    def search(
        self,
        balances: Sequence[PlayerBalance],
    ) -> tuple[list[PaymentPlanEntry], bool, int]:
        """
        Search for a plan with fewer payments than greedy.

        Returns (payments, fell_back, nodes_explored).
        """
        greedy = greedy_plan(balances)

        active = sorted(
            (b for b in balances if b.net_position != 0),
            key=lambda b: (-abs(b.net_position), b.player_id),
        )
        if len(active) > self._search.max_participants:
            return greedy, True, 0

        search = _Search(
            ids=[b.player_id for b in active],
            amounts=[b.net_position for b in active],
            incumbent=len(greedy),
            budget=self._search,
        )
        try:
            search.run()
        except SearchBudgetExceeded:
            return greedy, True, search.nodes

        if search.best_path is None:
            return greedy, False, search.nodes

        names = name_lookup(balances)
        payments = [
            make_payment(
                search.ids[payer],
                search.ids[payee],
                amount,
                priority=index,
                names=names,
            )
            for index, (payer, payee, amount) in enumerate(search.best_path, start=1)
        ]
        return payments, False, search.nodes

    def pros_and_cons(self, payments, optimization_percentage):
        return (
            [
                "Absolute minimum number of transactions",
                "Maximum optimization",
                "Most efficient mathematically",
                "Very few transactions needed" if len(payments) <= 3 else "Significant transaction reduction",
            ],
            [
                "May create unusual payment amounts",
                "Complex to understand",
                "Requires trust in algorithm",
                "Longer calculation time",
            ],
        )
