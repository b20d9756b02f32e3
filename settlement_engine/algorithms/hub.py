"""
Hub-Based Settlement

Routes every payment through one hub player: every debtor pays the hub,
then the hub pays every other creditor. More payments than greedy, but
each player deals with a single counterparty.

The hub is the requested player (usually the session organizer) or,
when none is given, the largest creditor.
"""

from typing import Optional, Sequence

from settlement_engine.algorithms.base import (
    SettlementAlgorithm,
    creditors_of,
    debtors_of,
    make_payment,
    name_lookup,
)
from settlement_engine.config import Settings
from settlement_engine.errors import InvalidPaymentPlanError
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmType
from settlement_engine.precision import PrecisionTracker


class HubBasedSettlement(SettlementAlgorithm):
    algorithm_type = AlgorithmType.HUB_BASED
    name = "Hub-Based Settlement"
    description = "Uses central player as hub to minimize transaction complexity"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        hub_player_id: Optional[str] = None,
    ):
        super().__init__(settings)
        self._hub_player_id = hub_player_id

    def select_hub(self, balances: Sequence[PlayerBalance]) -> Optional[str]:
        """Requested hub, else the largest creditor (ties: smallest id)."""
        if self._hub_player_id is not None:
            if not any(b.player_id == self._hub_player_id for b in balances):
                raise InvalidPaymentPlanError(
                    f"Hub player '{self._hub_player_id}' is not part of this session"
                )
            return self._hub_player_id

        creditors = [b for b in balances if b.net_position > 0]
        if not creditors:
            return None
        return min(creditors, key=lambda b: (-b.net_position, b.player_id)).player_id

    def _build(
        self,
        balances: Sequence[PlayerBalance],
        tracker: PrecisionTracker,
    ) -> list[PaymentPlanEntry]:
        hub = self.select_hub(balances)
        if hub is None:
            return []

        names = name_lookup(balances)
        payments = []

        for debtor in debtors_of(balances):
            if debtor.player_id == hub:
                continue
            payments.append(make_payment(
                debtor.player_id,
                hub,
                -debtor.net_position,
                priority=len(payments) + 1,
                names=names,
                description=f"{names[debtor.player_id]} pays hub {names[hub]}",
            ))

        for creditor in creditors_of(balances):
            if creditor.player_id == hub:
                continue
            payments.append(make_payment(
                hub,
                creditor.player_id,
                creditor.net_position,
                priority=len(payments) + 1,
                names=names,
                description=f"Hub {names[hub]} pays {names[creditor.player_id]}",
            ))

        return payments

    def pros_and_cons(self, payments, optimization_percentage):
        return (
            [
                "Centralizes transactions through one player",
                "Reduces complexity for most players",
                "Very few total transactions" if len(payments) <= 3 else "Reduces transaction count",
                "Good for trusted central player",
            ],
            [
                "Requires one player to handle multiple transactions",
                "Central player needs sufficient funds",
                "May not be optimal mathematically",
            ],
        )
