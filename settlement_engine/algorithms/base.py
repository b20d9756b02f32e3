"""
Settlement Algorithm Interface

DESIGN DECISION: Every algorithm is a stateless object exposing
settle(balances) -> payments. Instances hold only configuration, so one
instance can serve any number of requests.

Shared rules for every algorithm:
- Players with a zero net position are skipped.
- Ties between equal magnitudes are broken by ascending player id.
- Payments are numbered with priority 1..n in emission order.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from settlement_engine.config import Settings, get_settings
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmRun, AlgorithmType
from settlement_engine.precision import PrecisionTracker


class SettlementAlgorithm(ABC):
    """
    Abstract base for settlement strategies.

    Subclasses implement _build(); callers use settle() or run().
    """

    algorithm_type: AlgorithmType
    name: str = ""
    description: str = ""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    @abstractmethod
    def _build(
        self,
        balances: Sequence[PlayerBalance],
        tracker: PrecisionTracker,
    ) -> list[PaymentPlanEntry]:
        """
        Produce the payment plan.

        Args:
            balances: Snapshot whose net positions sum to zero
            tracker: Collects rounding operations for this run

        Returns:
            Payments in emission order
        """
        pass

    def settle(self, balances: Sequence[PlayerBalance]) -> list[PaymentPlanEntry]:
        """Pure entry point: balances in, payments out."""
        return self.run(balances).payments

    def run(self, balances: Sequence[PlayerBalance]) -> AlgorithmRun:
        """Run the algorithm and keep its rounding trace and timing."""
        tracker = PrecisionTracker(
            tolerance=self._settings.engine.tolerance_for(len(balances))
        )
        started = time.perf_counter()
        payments = self._build(balances, tracker)
        elapsed_ms = (time.perf_counter() - started) * 1000
        return AlgorithmRun(
            algorithm=self.algorithm_type,
            payments=payments,
            rounding_operations=tracker.operations,
            elapsed_ms=elapsed_ms,
        )

    def pros_and_cons(
        self,
        payments: Sequence[PaymentPlanEntry],
        optimization_percentage: float,
    ) -> tuple[list[str], list[str]]:
        """Trade-offs shown next to this algorithm's plan."""
        return (["Alternative settlement approach"], ["Unknown optimization characteristics"])


# ============================================================================
# Shared helpers
# ============================================================================


def name_lookup(balances: Sequence[PlayerBalance]) -> dict[str, str]:
    return {b.player_id: b.display_name for b in balances}


def creditors_of(balances: Sequence[PlayerBalance]) -> list[PlayerBalance]:
    """Creditors ordered by ascending player id."""
    return sorted((b for b in balances if b.net_position > 0), key=lambda b: b.player_id)


def debtors_of(balances: Sequence[PlayerBalance]) -> list[PlayerBalance]:
    """Debtors ordered by ascending player id."""
    return sorted((b for b in balances if b.net_position < 0), key=lambda b: b.player_id)


def make_payment(
    from_player_id: str,
    to_player_id: str,
    amount: int,
    priority: int,
    names: dict[str, str],
    description: Optional[str] = None,
    installment: Optional[int] = None,
    installments: Optional[int] = None,
) -> PaymentPlanEntry:
    from_name = names.get(from_player_id, from_player_id)
    to_name = names.get(to_player_id, to_player_id)
    return PaymentPlanEntry(
        from_player_id=from_player_id,
        to_player_id=to_player_id,
        amount=amount,
        priority=priority,
        from_player_name=from_name,
        to_player_name=to_name,
        description=description or f"{from_name} pays {to_name}",
        installment=installment,
        installments=installments,
    )


def renumber(payments: Sequence[PaymentPlanEntry]) -> list[PaymentPlanEntry]:
    """Assign priorities 1..n in list order."""
    return [
        p if p.priority == index else p.model_copy(update={"priority": index})
        for index, p in enumerate(payments, start=1)
    ]
