"""
Proof Models

A MathematicalProof restates the arithmetic behind a settlement so that
anyone can check it by hand: the debit/credit balance, each calculation
step with its formula, every rounding operation, and how other
algorithms settled the same snapshot.
"""

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from settlement_engine.models.balance import PaymentPlanEntry


Number = Union[int, float]


class BalanceVerification(BaseModel):
    """Total debits versus total credits."""

    model_config = ConfigDict(frozen=True)

    total_debits: int = Field(..., description="Sum of all payments")
    total_credits: int = Field(..., description="Sum of positive net positions")
    net_balance: int = Field(..., description="total_debits - total_credits")
    is_balanced: bool
    tolerance: int = Field(default=0, ge=0)


class CalculationStep(BaseModel):
    """
    One step of the proof.

    verification is True when the result matches an independent
    recomputation within tolerance.
    """

    model_config = ConfigDict(frozen=True)

    step_number: int = Field(..., ge=1)
    operation: str
    description: str = ""
    inputs: dict[str, Number] = Field(default_factory=dict)
    formula: str
    result: Number
    tolerance: int = Field(default=0, ge=0)
    verification: bool


class RoundingOperation(BaseModel):
    """A conversion that turned an exact value into integer minor units."""

    model_config = ConfigDict(frozen=True)

    operation: str
    original_value: float
    rounded_value: int
    rounding_mode: str
    precision_loss: float = Field(..., ge=0.0)
    step: int = Field(default=0, ge=0)


class FractionalCentAdjustment(BaseModel):
    """Records which player absorbed a leftover remainder, and why."""

    model_config = ConfigDict(frozen=True)

    player_id: str
    player_name: str = ""
    original_amount: int
    adjusted_amount: int
    adjustment_reason: str

    @property
    def delta(self) -> int:
        return self.adjusted_amount - self.original_amount


class PrecisionAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    decimal_places: int = 2
    rounding_operations: list[RoundingOperation] = Field(default_factory=list)
    fractional_cent_adjustments: list[FractionalCentAdjustment] = Field(default_factory=list)
    total_precision_loss: float = Field(default=0.0, ge=0.0)
    max_precision_loss: float = Field(default=0.0, ge=0.0)
    is_within_tolerance: bool = True


class AlgorithmCrossCheck(BaseModel):
    """How another algorithm settled the same snapshot."""

    model_config = ConfigDict(frozen=True)

    algorithm: str
    algorithm_name: str
    transaction_count: int = Field(..., ge=0)
    total_amount: int
    is_balanced: bool
    balance_discrepancy: int
    verification_result: bool


class ProofExportFormats(BaseModel):
    """Pre-rendered exports for the formatting and sharing layer."""

    model_config = ConfigDict(frozen=True)

    json_data: dict[str, Any] = Field(default_factory=dict)
    text: str = ""


class MathematicalProof(BaseModel):
    model_config = ConfigDict(frozen=True)

    proof_id: str
    settlement_id: str
    algorithm: str
    payments: list[PaymentPlanEntry] = Field(default_factory=list)
    balance_verification: BalanceVerification
    calculation_steps: list[CalculationStep] = Field(default_factory=list)
    precision_analysis: PrecisionAnalysis
    alternative_algorithm_results: list[AlgorithmCrossCheck] = Field(default_factory=list)
    human_readable_summary: str = ""
    export_formats: ProofExportFormats = Field(default_factory=ProofExportFormats)
    checksum: str
    is_valid: bool


class ProofIntegrityReport(BaseModel):
    """Result of re-checking a proof after the fact."""

    model_config = ConfigDict(frozen=True)

    checksum_valid: bool
    mathematically_sound: bool
    balance_valid: bool
    algorithm_consensus: bool
    issues: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return (
            self.checksum_valid
            and self.mathematically_sound
            and self.balance_valid
            and self.algorithm_consensus
        )
