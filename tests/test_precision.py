"""Tests for integer minor-unit arithmetic."""

import pytest

from settlement_engine.errors import PrecisionToleranceExceededError
from settlement_engine.precision import (
    PrecisionTracker,
    allocate_proportionally,
    format_minor_units,
    split_evenly,
)


class TestAllocateProportionally:
    """Tests for the largest-remainder split."""

    def test_parts_sum_to_total(self):
        """Test that rounding never loses or creates a unit."""
        parts = allocate_proportionally(100, [1, 1, 1])
        assert parts == [34, 33, 33]
        assert sum(parts) == 100

    def test_largest_remainder_wins(self):
        """Test that the leftover unit goes to the largest remainder."""
        assert allocate_proportionally(3000, [5000, 2000], keys=["A", "B"]) == [2143, 857]
        assert allocate_proportionally(4000, [5000, 2000], keys=["A", "B"]) == [2857, 1143]

    def test_ties_go_to_smaller_key(self):
        """Test deterministic tie-breaking by key."""
        assert allocate_proportionally(1, [1, 1], keys=["B", "A"]) == [0, 1]

    def test_zero_total(self):
        """Test that nothing is allocated from zero."""
        assert allocate_proportionally(0, [3, 4]) == [0, 0]

    def test_negative_input_rejected(self):
        """Test input validation."""
        with pytest.raises(ValueError):
            allocate_proportionally(-1, [1])
        with pytest.raises(ValueError):
            allocate_proportionally(1, [-1, 2])

    def test_tracker_records_inexact_shares(self):
        """Test that only inexact shares are recorded."""
        tracker = PrecisionTracker(tolerance=2)
        allocate_proportionally(10, [1, 1, 2], keys=["A", "B", "C"], tracker=tracker)
        operations = tracker.operations

        assert [op.operation for op in operations] == [
            "proportional_split:A",
            "proportional_split:B",
        ]
        assert all(op.precision_loss == 0.5 for op in operations)
        assert tracker.total_precision_loss == 1.0

    def test_exact_split_records_nothing(self):
        """Test that exact shares leave no trace."""
        tracker = PrecisionTracker()
        allocate_proportionally(10, [1, 1], tracker=tracker)
        assert tracker.operations == []


class TestPrecisionTracker:
    """Tests for drift checks."""

    def test_drift_within_tolerance(self):
        """Test that small drift is returned."""
        assert PrecisionTracker(tolerance=1).check_drift("op", 100, 101) == 1

    def test_drift_beyond_tolerance(self):
        """Test that large drift raises."""
        with pytest.raises(PrecisionToleranceExceededError) as exc_info:
            PrecisionTracker(tolerance=1).check_drift("installments", 100, 103)
        assert exc_info.value.drift == 3
        assert exc_info.value.operation == "installments"


class TestHelpers:
    """Tests for split and format helpers."""

    def test_split_evenly(self):
        """Test near-equal installments."""
        assert split_evenly(40, 2) == [20, 20]
        assert split_evenly(7, 2) == [4, 3]
        assert split_evenly(10, 3) == [4, 3, 3]

    def test_split_evenly_rejects_zero_count(self):
        """Test that at least one part is required."""
        with pytest.raises(ValueError):
            split_evenly(10, 0)

    def test_format_minor_units(self):
        """Test major-unit rendering."""
        assert format_minor_units(1234) == "12.34"
        assert format_minor_units(-5) == "-0.05"
        assert format_minor_units(7, decimal_places=0) == "7"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
