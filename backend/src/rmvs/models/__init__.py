"""Data models for RMVS."""

from .costs import AIUsageRecord, ModelPricing, OperationType
from .suggestion import COMPARABLE_FIELDS, Suggestion, SuggestionStatus
from .verification import (
    CheckName,
    CheckResult,
    ConflictCheck,
    ContentMatchCheck,
    Coordinates,
    CrossReferenceCheck,
    CrossReferenceSourceRef,
    Decision,
    DecisionOutcome,
    EventType,
    FieldChange,
    FieldConflict,
    GeocodeCheck,
    PhoneCheck,
    ProgressStatus,
    UrlCheck,
    VerificationChecks,
    VerificationEvent,
    VerificationLog,
    VerificationResult,
    VerificationType,
)

__all__ = [
    # Costs
    "AIUsageRecord",
    "ModelPricing",
    "OperationType",
    # Suggestions
    "COMPARABLE_FIELDS",
    "Suggestion",
    "SuggestionStatus",
    # Verification
    "CheckName",
    "CheckResult",
    "ConflictCheck",
    "ContentMatchCheck",
    "Coordinates",
    "CrossReferenceCheck",
    "CrossReferenceSourceRef",
    "Decision",
    "DecisionOutcome",
    "EventType",
    "FieldChange",
    "FieldConflict",
    "GeocodeCheck",
    "PhoneCheck",
    "ProgressStatus",
    "UrlCheck",
    "VerificationChecks",
    "VerificationEvent",
    "VerificationLog",
    "VerificationResult",
    "VerificationType",
]
