"""
Integer minor-unit arithmetic helpers.

DESIGN DECISION: Money never becomes a float. Proportional splits are
computed with integer division and the largest-remainder method, so the
parts of a split always add back up to the whole. Every non-exact share
is recorded as a RoundingOperation for the proof.
"""

from typing import Optional, Sequence

from settlement_engine.errors import PrecisionToleranceExceededError
from settlement_engine.models.proof import RoundingOperation


LARGEST_REMAINDER = "largest_remainder"


class PrecisionTracker:
    """
    Collects rounding operations for one algorithm run.

    A tracker is created per run and discarded afterwards; it is never
    shared between requests.
    """

    def __init__(self, tolerance: int = 0):
        self._tolerance = tolerance
        self._operations: list[RoundingOperation] = []

    @property
    def operations(self) -> list[RoundingOperation]:
        return list(self._operations)

    @property
    def tolerance(self) -> int:
        return self._tolerance

    def record(
        self,
        operation: str,
        numerator: int,
        denominator: int,
        rounded_value: int,
        rounding_mode: str = LARGEST_REMAINDER,
    ) -> None:
        """Record that numerator/denominator was rounded to rounded_value."""
        if numerator % denominator == 0 and numerator // denominator == rounded_value:
            return
        original = numerator / denominator
        self._operations.append(RoundingOperation(
            operation=operation,
            original_value=round(original, 6),
            rounded_value=rounded_value,
            rounding_mode=rounding_mode,
            precision_loss=round(abs(rounded_value - original), 6),
            step=len(self._operations) + 1,
        ))

    def check_drift(self, operation: str, expected_total: int, actual_total: int) -> int:
        """
        Compare a rounded total with its exact counterpart.

        Raises PrecisionToleranceExceededError if the drift is beyond
        tolerance. Returns the drift.
        """
        drift = actual_total - expected_total
        if abs(drift) > self._tolerance:
            raise PrecisionToleranceExceededError(
                drift=drift,
                tolerance=self._tolerance,
                operation=operation,
            )
        return drift

    @property
    def total_precision_loss(self) -> float:
        return round(sum(op.precision_loss for op in self._operations), 6)


def allocate_proportionally(
    total: int,
    weights: Sequence[int],
    keys: Optional[Sequence[str]] = None,
    tracker: Optional[PrecisionTracker] = None,
    operation: str = "proportional_split",
) -> list[int]:
    """
    Split total into integer parts proportional to weights.

    Uses the largest-remainder method: every part is first floored, then
    the leftover units go to the largest remainders. Ties go to the
    smaller key (ascending), so the result is reproducible.

    The parts always sum to total exactly.
    """
    if total < 0:
        raise ValueError("total must be non-negative")
    if any(w < 0 for w in weights):
        raise ValueError("weights must be non-negative")

    weight_sum = sum(weights)
    if weight_sum == 0 or total == 0:
        return [0 for _ in weights]

    keys = list(keys) if keys is not None else [f"{i:08d}" for i in range(len(weights))]

    parts = []
    remainders = []
    for index, weight in enumerate(weights):
        quotient, remainder = divmod(total * weight, weight_sum)
        parts.append(quotient)
        remainders.append((-remainder, keys[index], index))

    leftover = total - sum(parts)
    for _, _, index in sorted(remainders)[:leftover]:
        parts[index] += 1

    if tracker is not None:
        for index, weight in enumerate(weights):
            tracker.record(
                operation=f"{operation}:{keys[index]}",
                numerator=total * weight,
                denominator=weight_sum,
                rounded_value=parts[index],
            )
        tracker.check_drift(operation, total, sum(parts))

    return parts


def split_evenly(total: int, count: int) -> list[int]:
    """
    Split total into count near-equal integer parts.

    The first total % count parts are one unit larger.
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    base, extra = divmod(total, count)
    return [base + 1 if i < extra else base for i in range(count)]


def format_minor_units(amount: int, decimal_places: int = 2) -> str:
    """Render minor units as a plain major-unit string, e.g. 1234 -> '12.34'."""
    if decimal_places == 0:
        return str(amount)
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(amount), 10 ** decimal_places)
    return f"{sign}{major}.{minor:0{decimal_places}d}"
