"""
Manual Settlement

Passes the organizer's own payments through unchanged, except that
priorities are renumbered in the order given. Nothing is optimized, but
the plan still goes through the validator like any other.
"""

from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError

from settlement_engine.algorithms.base import SettlementAlgorithm, name_lookup
from settlement_engine.config import Settings
from settlement_engine.errors import InvalidPaymentPlanError
from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.settlement import AlgorithmType
from settlement_engine.precision import PrecisionTracker


ManualPayment = Union[PaymentPlanEntry, dict[str, Any]]


def parse_manual_payments(payments: Sequence[ManualPayment]) -> list[PaymentPlanEntry]:
    """
    Turn organizer input into PaymentPlanEntry objects.

    Raises InvalidPaymentPlanError if an entry cannot be read.
    Non-positive amounts and self-payments are accepted here; the
    validator reports them.
    """
    parsed = []
    for index, payment in enumerate(payments, start=1):
        if isinstance(payment, PaymentPlanEntry):
            parsed.append(payment)
            continue
        try:
            parsed.append(PaymentPlanEntry.model_validate(payment))
        except ValidationError as e:
            raise InvalidPaymentPlanError(
                f"Manual payment #{index} is malformed: {e.error_count()} field errors"
            ) from e
    return parsed


class ManualSettlement(SettlementAlgorithm):
    algorithm_type = AlgorithmType.MANUAL_SETTLEMENT
    name = "Manual Settlement"
    description = "Simple step-by-step manual settlement process for maximum transparency"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        payments: Optional[Sequence[ManualPayment]] = None,
    ):
        super().__init__(settings)
        self._payments = parse_manual_payments(payments or [])

    def _build(
        self,
        balances: Sequence[PlayerBalance],
        tracker: PrecisionTracker,
    ) -> list[PaymentPlanEntry]:
        names = name_lookup(balances)
        result = []
        for index, payment in enumerate(self._payments, start=1):
            update: dict[str, Any] = {"priority": index}
            if not payment.from_player_name:
                update["from_player_name"] = names.get(payment.from_player_id, payment.from_player_id)
            if not payment.to_player_name:
                update["to_player_name"] = names.get(payment.to_player_id, payment.to_player_id)
            result.append(payment.model_copy(update=update))
        return result

    def pros_and_cons(self, payments, optimization_percentage):
        return (
            [
                "Easy to understand and verify",
                "Maximum transparency",
                "No complex algorithms",
                "Players can follow each step",
            ],
            [
                "More transactions than optimized solutions",
                "Takes longer to execute",
                "Not mathematically optimal",
            ],
        )
