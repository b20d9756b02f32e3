"""
Validation Models

DESIGN DECISION: Findings are data, not exceptions.
- SettlementError blocks the settlement.
- SettlementWarning is attached to an otherwise valid settlement; the
  caller decides whether to ask for acknowledgment.

Every check the validator runs leaves one AuditTrailEntry, in the order
executed.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    """Finding severity."""
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class ErrorCode(str, Enum):
    """Blocking findings."""
    # Input
    UNBALANCED_INPUT = "UNBALANCED_INPUT"
    DUPLICATE_PLAYER = "DUPLICATE_PLAYER"

    # Structural
    NON_POSITIVE_AMOUNT = "NON_POSITIVE_AMOUNT"
    SELF_PAYMENT = "SELF_PAYMENT"
    DUPLICATE_PAYMENT_PAIR = "DUPLICATE_PAYMENT_PAIR"
    UNKNOWN_PLAYER = "UNKNOWN_PLAYER"

    # Business
    DEBTOR_PAYMENT_MISMATCH = "DEBTOR_PAYMENT_MISMATCH"
    CREDITOR_RECEIPT_MISMATCH = "CREDITOR_RECEIPT_MISMATCH"
    CONSERVATION_VIOLATION = "CONSERVATION_VIOLATION"

    # Engine
    ALGORITHM_DIVERGENCE = "ALGORITHM_DIVERGENCE"

    # Early cash-out
    INSUFFICIENT_BANK_BALANCE = "INSUFFICIENT_BANK_BALANCE"


class WarningCode(str, Enum):
    """Non-blocking findings."""
    PRECISION_NEAR_MISS = "PRECISION_NEAR_MISS"
    LARGE_SINGLE_PAYMENT = "LARGE_SINGLE_PAYMENT"
    SINGLE_PLAYER = "SINGLE_PLAYER"
    LARGE_NEGATIVE_POSITION = "LARGE_NEGATIVE_POSITION"
    LARGE_POSITIVE_POSITION = "LARGE_POSITIVE_POSITION"
    PROCESSING_TIME_EXCEEDED = "PROCESSING_TIME_EXCEEDED"
    SEARCH_BUDGET_EXHAUSTED = "SEARCH_BUDGET_EXHAUSTED"
    INSUFFICIENT_OPTIMIZATION = "INSUFFICIENT_OPTIMIZATION"

    # Post-settlement monitoring
    BALANCE_DISCREPANCY = "BALANCE_DISCREPANCY"
    LARGE_ADJUSTMENT = "LARGE_ADJUSTMENT"
    FREQUENT_ADJUSTMENTS = "FREQUENT_ADJUSTMENTS"


class CorrectionType(str, Enum):
    AUTOMATIC = "automatic"
    SUGGESTED = "suggested"
    MANUAL = "manual"


class AuditTrailEntry(BaseModel):
    """One executed check."""

    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=1)
    operation: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] = Field(default_factory=dict)
    validation_check: bool
    timestamp: datetime


class PlayerCorrection(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    player_name: str = ""
    field: str = Field(default="net_position")
    original_value: int
    suggested_value: int
    reason: str


class SettlementCorrection(BaseModel):
    """A machine-applicable fix the caller may accept or reject."""

    model_config = ConfigDict(frozen=True)

    correction_id: str
    type: CorrectionType = CorrectionType.SUGGESTED
    description: str
    affected_players: list[str] = Field(default_factory=list)
    corrections: list[PlayerCorrection] = Field(default_factory=list)
    estimated_impact: int = Field(
        default=0,
        description="Total absolute change in minor units"
    )
    is_reversible: bool = True


class SettlementError(BaseModel):
    """A blocking validation finding."""

    model_config = ConfigDict(frozen=True)

    code: ErrorCode
    message: str
    severity: Severity = Severity.CRITICAL
    affected_players: list[str] = Field(default_factory=list)
    suggested_fix: Optional[str] = None

    @field_validator("severity")
    @classmethod
    def validate_severity(cls, v: Severity) -> Severity:
        """Blocking errors are either critical or major."""
        if v == Severity.MINOR:
            raise ValueError("Errors must be critical or major")
        return v


class SettlementWarning(BaseModel):
    """A non-blocking validation finding."""

    model_config = ConfigDict(frozen=True)

    code: WarningCode
    message: str
    severity: Severity
    affected_players: list[str] = Field(default_factory=list)
    can_proceed: bool = True
    requires_approval: bool = False
    balance_discrepancy: int = 0
    suggested_actions: list[str] = Field(default_factory=list)
    auto_correction: Optional[SettlementCorrection] = None


class SettlementValidation(BaseModel):
    """Validator output for one payment plan."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: list[SettlementError] = Field(default_factory=list)
    warnings: list[SettlementWarning] = Field(default_factory=list)
    audit_trail: list[AuditTrailEntry] = Field(default_factory=list)

    @property
    def can_proceed(self) -> bool:
        """No blocking errors and no warning that forbids proceeding."""
        return self.is_valid and all(w.can_proceed for w in self.warnings)

    @property
    def auto_corrections(self) -> list[SettlementCorrection]:
        return [w.auto_correction for w in self.warnings if w.auto_correction is not None]
