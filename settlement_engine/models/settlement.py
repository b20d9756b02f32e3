"""
Settlement Models

The objects a settlement request produces:
- AlgorithmRun: raw output of one algorithm (payments plus rounding trace)
- AlternativeSettlement: one scored candidate per algorithm type
- SettlementComparison: all candidates plus the recommendation
- OptimizedSettlement: the chosen plan with its proof and validation

DESIGN DECISION: Every model is frozen. A new request produces new
objects; an issued settlement is never edited afterwards.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from settlement_engine.models.balance import PaymentPlanEntry, PlayerBalance
from settlement_engine.models.proof import MathematicalProof, RoundingOperation
from settlement_engine.models.validation import (
    SettlementError,
    SettlementValidation,
    SettlementWarning,
)


class AlgorithmType(str, Enum):
    """
    Settlement strategies.

    Declaration order is significant: the comparator breaks score ties
    in this order.
    """
    DIRECT_SETTLEMENT = "direct_settlement"
    GREEDY_DEBT_REDUCTION = "greedy_debt_reduction"
    HUB_BASED = "hub_based"
    BALANCED_FLOW = "balanced_flow"
    MINIMAL_TRANSACTIONS = "minimal_transactions"
    MANUAL_SETTLEMENT = "manual_settlement"

    @property
    def rank(self) -> int:
        return list(AlgorithmType).index(self)


class ComplexityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlgorithmRun(BaseModel):
    """Output of running one algorithm over a balance snapshot."""

    model_config = ConfigDict(frozen=True)

    algorithm: AlgorithmType
    payments: list[PaymentPlanEntry] = Field(default_factory=list)
    rounding_operations: list[RoundingOperation] = Field(default_factory=list)
    elapsed_ms: float = Field(default=0.0, ge=0.0)
    fell_back: bool = Field(
        default=False,
        description="True when the search budget ran out and greedy was used"
    )
    nodes_explored: int = Field(default=0, ge=0)

    @property
    def transaction_count(self) -> int:
        return len(self.payments)

    @property
    def total_amount(self) -> int:
        return sum(p.amount for p in self.payments)


class AlgorithmScores(BaseModel):
    """Comparator scores, each in [0, 10]."""

    model_config = ConfigDict(frozen=True)

    simplicity: float = Field(..., ge=0.0, le=10.0)
    fairness: float = Field(..., ge=0.0, le=10.0)
    efficiency: float = Field(..., ge=0.0, le=10.0)
    user_friendliness: float = Field(..., ge=0.0, le=10.0)
    overall: float = Field(..., ge=0.0, le=10.0)


class AlternativeSettlement(BaseModel):
    """One scored candidate settlement."""

    model_config = ConfigDict(frozen=True)

    algorithm: AlgorithmType
    name: str
    description: str
    payments: list[PaymentPlanEntry]
    transaction_count: int = Field(..., ge=0)
    total_amount: int = Field(..., ge=0)
    optimization_percentage: float = Field(
        ...,
        description="Reduction in payment count versus the direct plan"
    )
    scores: AlgorithmScores
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    validation: SettlementValidation
    rounding_operations: list[RoundingOperation] = Field(default_factory=list)
    fell_back: bool = False
    elapsed_ms: float = 0.0

    @property
    def is_eligible(self) -> bool:
        """Only candidates that passed validation can be recommended."""
        return self.validation.is_valid


class SettlementRecommendation(BaseModel):
    """Why the comparator picked what it picked."""

    model_config = ConfigDict(frozen=True)

    algorithm: AlgorithmType
    reasoning: list[str] = Field(default_factory=list)
    alternative_considerations: list[str] = Field(default_factory=list)
    complexity: ComplexityLevel
    dispute_risk: RiskLevel
    confidence: float = Field(..., ge=0.6, le=0.95)


class ComparisonMetric(BaseModel):
    """One row of the comparison matrix."""

    model_config = ConfigDict(frozen=True)

    metric: str
    values: dict[str, float]
    weight: float = Field(..., ge=0.0)
    higher_is_better: bool = True


class ComparisonSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_transactions: int
    max_transactions: int
    min_optimization: float
    max_optimization: float
    average_score: float


class SettlementComparison(BaseModel):
    """All candidate settlements for one snapshot plus the recommendation."""

    model_config = ConfigDict(frozen=True)

    alternatives: list[AlternativeSettlement]
    recommended: Optional[AlternativeSettlement] = Field(
        default=None,
        description="None when no candidate passed validation"
    )
    recommendation: Optional[SettlementRecommendation] = None
    comparison_matrix: list[ComparisonMetric] = Field(default_factory=list)
    summary: ComparisonSummary

    def get(self, algorithm: AlgorithmType) -> Optional[AlternativeSettlement]:
        for alternative in self.alternatives:
            if alternative.algorithm == algorithm:
                return alternative
        return None


class OptimizationMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_payment_count: int = Field(..., ge=0)
    optimized_payment_count: int = Field(..., ge=0)
    reduction_percentage: float
    total_amount_settled: int = Field(..., ge=0)
    processing_time_ms: float = Field(default=0.0, ge=0.0)


class OptimizedSettlement(BaseModel):
    """
    The settlement handed back to the caller.

    balances are the normalized positions the plan settles; any
    fractional-cent absorption is recorded in the proof's precision
    analysis.
    """

    model_config = ConfigDict(frozen=True)

    settlement_id: str
    algorithm: AlgorithmType
    balances: list[PlayerBalance]
    payments: list[PaymentPlanEntry]
    direct_payments: list[PaymentPlanEntry] = Field(default_factory=list)
    optimization_metrics: OptimizationMetrics
    mathematical_proof: MathematicalProof
    validation: SettlementValidation
    validation_errors: list[SettlementError] = Field(default_factory=list)
    validation_warnings: list[SettlementWarning] = Field(default_factory=list)
    is_valid: bool
    recommendation: Optional[SettlementRecommendation] = None

    @property
    def can_proceed(self) -> bool:
        return self.is_valid and self.validation.can_proceed
