"""
Data Models Package

This package contains all Pydantic models used by the settlement engine.
All data flowing through the engine must conform to these schemas.
"""

from settlement_engine.models.balance import (
    BankBalance,
    EarlyCashOutResult,
    EarlyCashOutType,
    LedgerEntry,
    LedgerEntryType,
    PaymentPlanEntry,
    PlayerBalance,
)
from settlement_engine.models.proof import (
    AlgorithmCrossCheck,
    BalanceVerification,
    CalculationStep,
    FractionalCentAdjustment,
    MathematicalProof,
    PrecisionAnalysis,
    ProofExportFormats,
    ProofIntegrityReport,
    RoundingOperation,
)
from settlement_engine.models.validation import (
    AuditTrailEntry,
    CorrectionType,
    ErrorCode,
    PlayerCorrection,
    SettlementCorrection,
    SettlementError,
    SettlementValidation,
    SettlementWarning,
    Severity,
    WarningCode,
)
from settlement_engine.models.settlement import (
    AlgorithmRun,
    AlgorithmScores,
    AlgorithmType,
    AlternativeSettlement,
    ComparisonMetric,
    ComparisonSummary,
    ComplexityLevel,
    OptimizationMetrics,
    OptimizedSettlement,
    RiskLevel,
    SettlementComparison,
    SettlementRecommendation,
)
from settlement_engine.models.result import (
    EarlyCashOutOutcome,
    Err,
    ErrorKind,
    Ok,
    SettlementOutcome,
)
from settlement_engine.models.monitoring import (
    ManualAdjustmentRecord,
    ManualAdjustmentType,
)
from settlement_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Balance models
    "BankBalance",
    "EarlyCashOutResult",
    "EarlyCashOutType",
    "LedgerEntry",
    "LedgerEntryType",
    "PaymentPlanEntry",
    "PlayerBalance",
    # Proof models
    "AlgorithmCrossCheck",
    "BalanceVerification",
    "CalculationStep",
    "FractionalCentAdjustment",
    "MathematicalProof",
    "PrecisionAnalysis",
    "ProofExportFormats",
    "ProofIntegrityReport",
    "RoundingOperation",
    # Validation models
    "AuditTrailEntry",
    "CorrectionType",
    "ErrorCode",
    "PlayerCorrection",
    "SettlementCorrection",
    "SettlementError",
    "SettlementValidation",
    "SettlementWarning",
    "Severity",
    "WarningCode",
    # Settlement models
    "AlgorithmRun",
    "AlgorithmScores",
    "AlgorithmType",
    "AlternativeSettlement",
    "ComparisonMetric",
    "ComparisonSummary",
    "ComplexityLevel",
    "OptimizationMetrics",
    "OptimizedSettlement",
    "RiskLevel",
    "SettlementComparison",
    "SettlementRecommendation",
    # Result types
    "EarlyCashOutOutcome",
    "Err",
    "ErrorKind",
    "Ok",
    "SettlementOutcome",
    # Monitoring models
    "ManualAdjustmentRecord",
    "ManualAdjustmentType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
