"""
Configuration Management for the Settlement Engine

Uses pydantic-settings for type-safe configuration from environment variables.

All tunable numbers live here: tolerances, search budgets, scoring weights
and warning thresholds. Every amount is expressed in integer minor units
(cents).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ROUNDING_MODES = ("ROUND_HALF_UP", "ROUND_HALF_EVEN", "ROUND_FLOOR", "ROUND_CEILING", "ROUND_DOWN")


class EngineSettings(BaseSettings):
    """Core arithmetic and validation thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_",
        extra="ignore"
    )

    # Precision
    balance_tolerance_minor_units: Optional[int] = Field(
        default=None,
        ge=0,
        description="Allowed |sum of net positions| in minor units (default: player count)"
    )
    decimal_places: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Decimal places of the major currency unit"
    )
    rounding_mode: str = Field(
        default="ROUND_HALF_UP",
        description="decimal rounding mode used when converting major units"
    )

    # Performance
    processing_time_budget_ms: int = Field(
        default=2000,
        ge=1,
        description="Per-request processing time budget"
    )

    # Payment size heuristics
    small_payment_threshold_minor_units: int = Field(
        default=100,
        ge=0,
        description="Payments below this are awkward to hand over"
    )
    large_payment_threshold_minor_units: int = Field(
        default=50_000,
        ge=1,
        description="Single payments above this raise a warning"
    )

    # Position sanity thresholds
    large_negative_position_minor_units: int = Field(
        default=100_000,
        ge=1,
        description="Debts larger than this raise a major warning"
    )
    large_positive_position_minor_units: int = Field(
        default=200_000,
        ge=1,
        description="Winnings larger than this raise a minor warning"
    )

    # Optimization expectations
    insufficient_optimization_percentage: float = Field(
        default=25.0,
        ge=0.0,
        le=100.0,
        description="Reduction below this percentage raises a minor warning"
    )

    @field_validator("rounding_mode")
    @classmethod
    def validate_rounding_mode(cls, v: str) -> str:
        """Only allow decimal module rounding constants."""
        mode = v.strip().upper()
        if mode not in ROUNDING_MODES:
            raise ValueError(f"Unsupported rounding mode: {v}. Allowed: {ROUNDING_MODES}")
        return mode

    @property
    def minor_units_per_major(self) -> int:
        """Number of minor units in one major unit (100 for cents)."""
        return 10 ** self.decimal_places

    def tolerance_for(self, player_count: int) -> int:
        """Balance tolerance for a snapshot with the given number of players."""
        if self.balance_tolerance_minor_units is not None:
            return self.balance_tolerance_minor_units
        return max(player_count, 0)


class SearchSettings(BaseSettings):
    """Budget for the minimal-transactions branch-and-bound search."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_SEARCH_",
        extra="ignore"
    )

    node_budget: int = Field(
        default=250_000,
        ge=1,
        description="Maximum search nodes before falling back to greedy"
    )
    time_budget_ms: int = Field(
        default=500,
        ge=1,
        description="Wall-clock budget before falling back to greedy"
    )
    max_participants: int = Field(
        default=16,
        ge=2,
        description="Above this many non-zero players the search is skipped"
    )


class ScoringWeights(BaseSettings):
    """
    Weights used to combine the four comparator axes into an overall score.

    Defaults are equal weights; deployments tune them through the
    environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_WEIGHT_",
        extra="ignore"
    )

    simplicity: float = Field(default=0.25, ge=0.0)
    fairness: float = Field(default=0.25, ge=0.0)
    efficiency: float = Field(default=0.25, ge=0.0)
    user_friendliness: float = Field(default=0.25, ge=0.0)

    @model_validator(mode="after")
    def validate_total(self) -> "ScoringWeights":
        """At least one axis must carry weight."""
        if self.total <= 0:
            raise ValueError("At least one scoring weight must be positive")
        return self

    @property
    def total(self) -> float:
        return self.simplicity + self.fairness + self.efficiency + self.user_friendliness


class WarningSettings(BaseSettings):
    """Thresholds for the warning system and post-settlement monitoring."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_WARNING_",
        extra="ignore"
    )

    # Discrepancy classification
    critical_discrepancy_minor_units: int = Field(default=500, ge=0)
    major_discrepancy_minor_units: int = Field(default=100, ge=0)
    minor_discrepancy_minor_units: int = Field(default=10, ge=0)

    # Auto-correction
    enable_auto_correction: bool = Field(default=True)
    auto_correct_threshold_minor_units: int = Field(
        default=100,
        ge=0,
        description="Max discrepancy that gets a machine-applicable correction"
    )
    require_approval_threshold_minor_units: int = Field(
        default=1_000,
        ge=0,
        description="Discrepancies above this require explicit approval"
    )

    # Manual adjustments
    large_adjustment_minor_units: int = Field(default=10_000, ge=1)
    critical_adjustment_minor_units: int = Field(default=50_000, ge=1)
    frequent_adjustment_count: int = Field(default=5, ge=1)
    frequent_adjustment_window_minutes: int = Field(default=30, ge=1)

    @model_validator(mode="after")
    def validate_ordering(self) -> "WarningSettings":
        """Severity thresholds must be ordered minor <= major <= critical."""
        if not (
            self.minor_discrepancy_minor_units
            <= self.major_discrepancy_minor_units
            <= self.critical_discrepancy_minor_units
        ):
            raise ValueError("Discrepancy thresholds must satisfy minor <= major <= critical")
        return self


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def search(self) -> SearchSettings:
        return SearchSettings()

    @property
    def weights(self) -> ScoringWeights:
        return ScoringWeights()

    @property
    def warnings(self) -> WarningSettings:
        return WarningSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get engine settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the ones that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("engine", "search", "weights", "warnings"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
