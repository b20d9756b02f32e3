"""Exceptions raised by the settlement engine."""

from typing import Optional


class SettlementEngineError(Exception):
    """Base exception for settlement engine errors."""
    pass


class UnbalancedInputError(SettlementEngineError):
    """The ledger's net positions do not sum to zero within tolerance."""

    def __init__(self, net_sum: int, tolerance: int, message: Optional[str] = None):
        self.net_sum = net_sum
        self.tolerance = tolerance
        super().__init__(
            message
            or f"Net positions sum to {net_sum} minor units, tolerance is {tolerance}"
        )


class AlgorithmDivergenceError(SettlementEngineError):
    """Two algorithms disagree on the settled total beyond tolerance."""

    def __init__(
        self,
        primary: str,
        alternative: str,
        primary_total: int,
        alternative_total: int,
    ):
        self.primary = primary
        self.alternative = alternative
        self.primary_total = primary_total
        self.alternative_total = alternative_total
        super().__init__(
            f"{primary} settles {primary_total} but {alternative} settles "
            f"{alternative_total} minor units"
        )


class PrecisionToleranceExceededError(SettlementEngineError):
    """Rounding drift exceeded the declared tolerance band."""

    def __init__(self, drift: int, tolerance: int, operation: str):
        self.drift = drift
        self.tolerance = tolerance
        self.operation = operation
        super().__init__(
            f"Rounding drift of {drift} minor units in '{operation}' exceeds tolerance {tolerance}"
        )


class InvalidPaymentPlanError(SettlementEngineError):
    """A manually supplied payment plan could not be interpreted."""
    pass


class UnknownAlgorithmError(SettlementEngineError):
    """Requested algorithm type is not registered."""
    pass
