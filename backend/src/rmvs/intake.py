"""Batch submission intake.

Validates a submitted batch against an explicit schema, deduplicates
each entry against published resources and pending suggestions, stores
it, runs verification and applies the decision.
"""

import logging
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .config import get_settings
from .errors import IntakeValidationError
from .models import Decision, Suggestion, SuggestionStatus, VerificationResult
from .verification.pipeline import VerificationPipeline
from .verification.scheduler import calculate_next_verification_date

logger = logging.getLogger(__name__)

VERIFICATION_DISABLED_REASON = (
    "AI verification is currently disabled. All submissions require manual admin review."
)


# =========================
# Input schema
# =========================


class SuggestionInput(BaseModel):
    """One submitted resource.

    Accepts the field aliases submitting agents commonly use
    (`zip_code`, `category`, `services`, `eligibility_criteria`,
    `accessibility`).
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=500)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2)
    zip: str | None = Field(default=None, validation_alias=AliasChoices("zip", "zip_code"))

    phone: str | None = None
    website: str | None = None
    email: str | None = None
    description: str | None = None

    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    primary_category: str = Field(
        default="general_support",
        validation_alias=AliasChoices("primary_category", "category"),
    )
    categories: list[str] | None = None
    tags: list[str] | None = None
    hours: dict[str, Any] | None = None
    services_offered: list[str] | None = Field(
        default=None, validation_alias=AliasChoices("services_offered", "services")
    )
    eligibility_requirements: str | None = Field(
        default=None,
        validation_alias=AliasChoices("eligibility_requirements", "eligibility_criteria"),
    )
    required_documents: list[str] | None = None
    fees: str | None = None
    languages: list[str] | None = None
    accessibility_features: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("accessibility_features", "accessibility"),
    )

    discovered_via: str | None = None
    discovery_notes: str | None = None

    def to_suggestion(self, submitter: str, notes: str | None) -> Suggestion:
        reason = f"Submitted by {submitter}" + (f": {notes}" if notes else "")
        return Suggestion(
            **self.model_dump(),
            submitted_by=submitter,
            reason=reason,
        )


class SuggestionBatch(BaseModel):
    """A batch of 1..100 submissions."""

    resources: list[SuggestionInput] = Field(min_length=1, max_length=100)
    submitter: str = "ai_agent"
    notes: str | None = None


class IntakeError(BaseModel):
    """One schema violation, located by batch index and field."""

    index: int | None = None
    field: str | None = None
    message: str


def parse_batch(payload: Any, max_size: int | None = None) -> SuggestionBatch:
    """Validate a raw payload into a SuggestionBatch.

    Raises:
        IntakeValidationError: with one IntakeError per violation
    """
    try:
        batch = SuggestionBatch.model_validate(payload)
    except ValidationError as e:
        errors = []
        for err in e.errors():
            loc = list(err["loc"])
            index = None
            if len(loc) >= 2 and loc[0] == "resources" and isinstance(loc[1], int):
                index = loc[1]
                loc = loc[2:]
            errors.append(
                IntakeError(
                    index=index,
                    field=".".join(str(part) for part in loc) or None,
                    message=err["msg"],
                ).model_dump()
            )
        raise IntakeValidationError(f"Invalid batch: {len(errors)} error(s)", errors) from e

    max_size = max_size or get_settings().batch_max_size
    if len(batch.resources) > max_size:
        raise IntakeValidationError(
            f"Maximum {max_size} resources per batch",
            [IntakeError(field="resources", message=f"at most {max_size} items").model_dump()],
        )
    return batch


# =========================
# Results
# =========================


class ResourceStatus(str, Enum):
    SUBMITTED = "submitted"
    AUTO_APPROVED = "auto_approved"
    FLAGGED = "flagged"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"
    ERROR = "error"


class ResourceOutcome(BaseModel):
    name: str
    status: ResourceStatus
    suggestion_id: UUID | None = None
    resource_id: UUID | None = None
    verification_score: float | None = None
    decision_reason: str | None = None
    error: str | None = None


class BatchStats(BaseModel):
    total_received: int = 0
    submitted: int = 0
    auto_approved: int = 0
    flagged_for_human: int = 0
    auto_rejected: int = 0
    skipped_duplicates: int = 0
    errors: int = 0


class BatchResult(BaseModel):
    success: bool = True
    message: str = ""
    verification_enabled: bool
    stats: BatchStats
    verification_results: list[ResourceOutcome] = Field(default_factory=list)
    error_details: list[str] = Field(default_factory=list)


# =========================
# Processing
# =========================


class SuggestionStore(Protocol):
    async def find_duplicate(self, name: str, address: str | None) -> str | None: ...

    async def create_suggestion(self, suggestion: Suggestion) -> Suggestion: ...

    async def update_suggestion_status(
        self, suggestion_id: UUID, status: SuggestionStatus, admin_notes: str | None
    ) -> None: ...

    async def create_resource_from_suggestion(self, suggestion, result, next_verification_at) -> UUID: ...


class BatchProcessor:
    """Processes submission batches one entry at a time."""

    def __init__(
        self,
        store: SuggestionStore,
        pipeline: VerificationPipeline | None,
        verification_enabled: bool | None = None,
    ):
        self.store = store
        self.pipeline = pipeline
        if verification_enabled is None:
            verification_enabled = get_settings().verification_enabled
        self.verification_enabled = verification_enabled and pipeline is not None

    async def process(self, batch: SuggestionBatch) -> BatchResult:
        """Store, verify and decide every entry of a batch.

        Every entry yields exactly one ResourceOutcome.
        """
        stats = BatchStats(total_received=len(batch.resources))
        result = BatchResult(verification_enabled=self.verification_enabled, stats=stats)

        for entry in batch.resources:
            outcome = await self._process_entry(entry, batch.submitter, batch.notes)
            result.verification_results.append(outcome)

            if outcome.status == ResourceStatus.DUPLICATE:
                stats.skipped_duplicates += 1
                continue
            if outcome.status == ResourceStatus.ERROR:
                stats.errors += 1
                result.error_details.append(f"{outcome.name}: {outcome.error}")
                continue

            stats.submitted += 1
            if outcome.status == ResourceStatus.AUTO_APPROVED:
                stats.auto_approved += 1
            elif outcome.status == ResourceStatus.REJECTED:
                stats.auto_rejected += 1
            elif outcome.status == ResourceStatus.FLAGGED:
                stats.flagged_for_human += 1

        if self.verification_enabled:
            result.message = (
                f"Processed {stats.submitted} resources: {stats.auto_approved} auto-approved, "
                f"{stats.flagged_for_human} flagged for review, {stats.auto_rejected} rejected"
            )
        else:
            result.message = (
                f"Processed {stats.submitted} resources: AI verification disabled, "
                f"all flagged for manual review"
            )

        logger.info(result.message)
        return result

    async def _process_entry(
        self, entry: SuggestionInput, submitter: str, notes: str | None
    ) -> ResourceOutcome:
        try:
            duplicate = await self.store.find_duplicate(entry.name, entry.address)
        except Exception as e:
            logger.error(f"Duplicate check failed for '{entry.name}': {e}")
            return ResourceOutcome(name=entry.name, status=ResourceStatus.ERROR, error=str(e))

        if duplicate == "resource":
            return ResourceOutcome(
                name=entry.name,
                status=ResourceStatus.DUPLICATE,
                decision_reason="Already exists in published resources",
            )
        if duplicate == "suggestion":
            return ResourceOutcome(
                name=entry.name,
                status=ResourceStatus.DUPLICATE,
                decision_reason="Already exists in pending suggestions",
            )

        try:
            suggestion = await self.store.create_suggestion(entry.to_suggestion(submitter, notes))
        except Exception as e:
            logger.error(f"Error creating suggestion '{entry.name}': {e}")
            return ResourceOutcome(name=entry.name, status=ResourceStatus.ERROR, error=str(e))

        if not self.verification_enabled:
            return ResourceOutcome(
                name=entry.name,
                status=ResourceStatus.FLAGGED,
                suggestion_id=suggestion.id,
                decision_reason=VERIFICATION_DISABLED_REASON,
            )

        verification = await self.pipeline.run(suggestion)
        return await self._apply_decision(suggestion, verification)

    async def _apply_decision(
        self, suggestion: Suggestion, verification: VerificationResult
    ) -> ResourceOutcome:
        outcome = ResourceOutcome(
            name=suggestion.name,
            status=ResourceStatus.FLAGGED,
            suggestion_id=suggestion.id,
            verification_score=verification.overall_score,
            decision_reason=verification.decision_reason,
        )

        try:
            if verification.decision == Decision.AUTO_APPROVE:
                outcome.resource_id = await self.store.create_resource_from_suggestion(
                    suggestion,
                    verification,
                    calculate_next_verification_date(verification.changed_fields),
                )
                outcome.status = ResourceStatus.AUTO_APPROVED

            elif verification.decision == Decision.AUTO_REJECT:
                await self.store.update_suggestion_status(
                    suggestion.id,
                    SuggestionStatus.REJECTED,
                    f"Auto-rejected: {verification.decision_reason}",
                )
                outcome.status = ResourceStatus.REJECTED

            else:
                await self.store.update_suggestion_status(
                    suggestion.id,
                    SuggestionStatus.PENDING,
                    f"Flagged for review: {verification.decision_reason}",
                )

        except Exception as e:
            logger.error(f"Failed to apply decision for {suggestion.id}: {e}")
            outcome.status = ResourceStatus.FLAGGED
            outcome.resource_id = None
            outcome.decision_reason = f"Verification error: {e}"

        return outcome
