"""
Result Types

Entry points return Ok(value) or Err(kind) instead of raising, so that a
caller can never mistake a partial settlement for a final one.
Warnings travel inside the Ok value.
"""

from enum import Enum
from typing import Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from settlement_engine.models.balance import EarlyCashOutResult
from settlement_engine.models.settlement import OptimizedSettlement
from settlement_engine.models.validation import AuditTrailEntry, SettlementError


T = TypeVar("T")


class ErrorKind(str, Enum):
    UNBALANCED_INPUT = "unbalanced_input"
    VALIDATION_FAILED = "validation_failed"
    ALGORITHM_DIVERGENCE = "algorithm_divergence"
    PRECISION_TOLERANCE_EXCEEDED = "precision_tolerance_exceeded"
    INVALID_REQUEST = "invalid_request"
    INSUFFICIENT_BANK_BALANCE = "insufficient_bank_balance"


class Ok(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True)

    value: T
    is_ok: Literal[True] = True


class Err(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    errors: list[SettlementError] = Field(default_factory=list)
    audit_trail: list[AuditTrailEntry] = Field(default_factory=list)
    is_ok: Literal[False] = False


SettlementOutcome = Union[Ok[OptimizedSettlement], Err]
EarlyCashOutOutcome = Union[Ok[EarlyCashOutResult], Err]
