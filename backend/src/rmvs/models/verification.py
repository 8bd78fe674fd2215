"""Pydantic models for verification passes.

Check results, field conflicts, decisions, trace events and the
persisted verification log.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enumerations
# =============================================================================


class CheckName(str, Enum):
    """Independently failing verification checks."""

    URL_REACHABLE = "url_reachable"
    PHONE_VALID = "phone_valid"
    ADDRESS_GEOCODABLE = "address_geocodable"
    WEBSITE_CONTENT_MATCHES = "website_content_matches"
    CROSS_REFERENCED = "cross_referenced"
    CONFLICT_DETECTION = "conflict_detection"


class Decision(str, Enum):
    """Terminal classification of a suggestion."""

    AUTO_APPROVE = "auto_approve"
    FLAG_FOR_HUMAN = "flag_for_human"
    AUTO_REJECT = "auto_reject"


class VerificationType(str, Enum):
    """Why a verification pass was started."""

    INITIAL = "initial"
    PERIODIC = "periodic"
    REPORTED = "reported"


class EventType(str, Enum):
    """Trace event types."""

    STARTED = "started"
    PROGRESS = "progress"
    COST = "cost"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EventType.COMPLETED, EventType.FAILED)


class ProgressStatus(str, Enum):
    """Status carried by progress events."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Check Results
# =============================================================================


class CheckResult(BaseModel):
    """Base class for a single check outcome.

    `passed` serializes as `pass` so persisted check summaries keep the
    field name consumers expect.
    """

    passed: bool = Field(alias="pass")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def score_confidence(self) -> float:
        """Confidence applied to the check weight when it passes."""
        return 1.0


class UrlCheck(CheckResult):
    checked_at: datetime = Field(default_factory=_utcnow)
    latency_ms: int = 0
    status_code: int | None = None
    error: str | None = None


class PhoneCheck(CheckResult):
    format: str
    normalized: str | None = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class GeocodeCheck(CheckResult):
    coords: Coordinates | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    formatted_address: str | None = None
    location_type: str | None = None
    place_id: str | None = None

    @property
    def score_confidence(self) -> float:
        return self.confidence if self.confidence is not None else 1.0


class ContentMatchCheck(CheckResult):
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: str = ""

    @property
    def score_confidence(self) -> float:
        return self.confidence


class CrossReferenceSourceRef(BaseModel):
    """An external source that matched the suggestion."""

    name: str
    url: str | None = None
    match_score: float = Field(ge=0.0, le=1.0)


class CrossReferenceCheck(CheckResult):
    sources: list[CrossReferenceSourceRef] = Field(default_factory=list)

    @property
    def score_confidence(self) -> float:
        if not self.sources:
            return 1.0
        return sum(s.match_score for s in self.sources) / len(self.sources)


class FieldConflict(BaseModel):
    """A field whose submitted and externally found values diverge."""

    field: str
    submitted_value: Any
    found_value: Any
    confidence: float = Field(ge=0.0, le=1.0, description="1 - similarity")
    source: str


class ConflictCheck(CheckResult):
    conflicts: list[FieldConflict] = Field(default_factory=list)


class VerificationChecks(BaseModel):
    """Per-check results of one verification pass.

    Checks that did not run (or whose provider was unavailable) stay None
    and are excluded from scoring.
    """

    url_reachable: UrlCheck | None = None
    phone_valid: PhoneCheck | None = None
    address_geocodable: GeocodeCheck | None = None
    website_content_matches: ContentMatchCheck | None = None
    cross_referenced: CrossReferenceCheck | None = None
    conflict_detection: ConflictCheck | None = None

    def present(self) -> dict[CheckName, CheckResult]:
        """Checks that actually produced a result."""
        results = {}
        for name in CheckName:
            result = getattr(self, name.value)
            if result is not None:
                results[name] = result
        return results

    def summary(self) -> dict[str, Any]:
        """JSON-ready summary for the verification log."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Decisions and Results
# =============================================================================


class DecisionOutcome(BaseModel):
    """A decision with the reason and score that produced it."""

    decision: Decision
    reason: str
    score: float = Field(ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class FieldChange(BaseModel):
    """A field value the pass found to differ from the stored record."""

    field: str
    old_value: Any = None
    new_value: Any = None


class VerificationResult(BaseModel):
    """Outcome of one verification pass."""

    suggestion_id: UUID
    overall_score: float = Field(ge=0.0, le=1.0)
    checks: VerificationChecks = Field(default_factory=VerificationChecks)
    conflicts: list[FieldConflict] = Field(default_factory=list)
    changes_detected: list[FieldChange] = Field(default_factory=list)
    decision: Decision
    decision_reason: str
    verified_website: str | None = Field(
        default=None, description="Website after a successful auto-fix"
    )
    estimated_cost_usd: float = 0.0
    api_calls_made: int = 0
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime = Field(default_factory=_utcnow)
    duration_ms: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def changed_fields(self) -> list[str]:
        return [change.field for change in self.changes_detected]


# =============================================================================
# Trace Events
# =============================================================================


class VerificationEvent(BaseModel):
    """An append-only trace entry for a verification pass."""

    id: UUID = Field(default_factory=uuid4)
    suggestion_id: UUID
    event_type: EventType
    event_data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    sequence: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Persisted Log
# =============================================================================


class VerificationLog(BaseModel):
    """Persisted record of one verification pass.

    Immutable once created; the only later change is the human-override
    annotation, applied through `with_human_review`.
    """

    id: UUID = Field(default_factory=uuid4)
    suggestion_id: UUID | None = None
    resource_id: UUID | None = None
    verification_type: VerificationType
    agent_version: str

    overall_score: float = Field(ge=0.0, le=1.0)
    checks_performed: dict[str, Any] = Field(default_factory=dict)
    conflicts_found: list[dict[str, Any]] = Field(default_factory=list)
    changes_detected: list[dict[str, Any]] = Field(default_factory=list)

    decision: Decision
    decision_reason: str
    auto_approved: bool = False

    human_reviewed: bool = False
    human_reviewer_id: UUID | None = None
    human_decision: Decision | None = None
    human_notes: str | None = None

    started_at: datetime
    completed_at: datetime
    duration_ms: int = 0
    api_calls_made: int = 0
    estimated_cost_usd: float = 0.0
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_result(
        cls,
        result: VerificationResult,
        verification_type: VerificationType,
        agent_version: str,
        resource_id: UUID | None = None,
    ) -> "VerificationLog":
        return cls(
            suggestion_id=result.suggestion_id,
            resource_id=resource_id,
            verification_type=verification_type,
            agent_version=agent_version,
            overall_score=result.overall_score,
            checks_performed=result.checks.summary(),
            conflicts_found=[c.model_dump(mode="json") for c in result.conflicts],
            changes_detected=[c.model_dump(mode="json") for c in result.changes_detected],
            decision=result.decision,
            decision_reason=result.decision_reason,
            auto_approved=result.decision == Decision.AUTO_APPROVE,
            started_at=result.started_at,
            completed_at=result.completed_at,
            duration_ms=result.duration_ms,
            api_calls_made=result.api_calls_made,
            estimated_cost_usd=result.estimated_cost_usd,
        )

    def with_human_review(
        self, reviewer_id: UUID | None, decision: Decision, notes: str | None = None
    ) -> "VerificationLog":
        """Return a copy annotated with a human override."""
        return self.model_copy(
            update={
                "human_reviewed": True,
                "human_reviewer_id": reviewer_id,
                "human_decision": decision,
                "human_notes": notes,
            }
        )
