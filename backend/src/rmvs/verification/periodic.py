"""Periodic re-verification of published resources."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from ..models import Decision, Suggestion, VerificationResult, VerificationType
from .pipeline import VerificationPipeline
from .scheduler import calculate_next_verification_date

logger = logging.getLogger(__name__)

RESOURCE_STATUS_BY_DECISION = {
    Decision.AUTO_APPROVE: "verified",
    Decision.FLAG_FOR_HUMAN: "flagged",
    Decision.AUTO_REJECT: "rejected",
}


class ResourceStore(Protocol):
    async def get_resources_due_for_verification(self, limit: int) -> list[Suggestion]: ...

    async def update_resource_verification(
        self,
        resource_id: UUID,
        *,
        verification_status: str,
        verification_confidence: float,
        human_review_required: bool,
        last_verified_at: datetime,
        next_verification_at: datetime,
        website: str | None = None,
    ) -> None: ...


@dataclass
class PeriodicRunSummary:
    """Counts of one periodic run."""

    due: int = 0
    verified: int = 0
    flagged: int = 0
    rejected: int = 0
    errors: int = 0
    dry_run: bool = False
    results: list[VerificationResult] = field(default_factory=list)

    def add(self, result: VerificationResult) -> None:
        self.results.append(result)
        if result.decision == Decision.AUTO_APPROVE:
            self.verified += 1
        elif result.decision == Decision.AUTO_REJECT:
            self.rejected += 1
        else:
            self.flagged += 1


class PeriodicVerifier:
    """Re-verifies resources whose next_verification_at has passed.

    Resources are loaded oldest-due first (never-verified first). The
    next date comes from the fields the pass found changed: an auto-fixed
    website or conflicting values reported by external sources.
    """

    def __init__(self, pipeline: VerificationPipeline, store: ResourceStore):
        self.pipeline = pipeline
        self.store = store

    async def run(self, limit: int = 50, dry_run: bool = False) -> PeriodicRunSummary:
        """Verify up to `limit` due resources.

        Args:
            limit: Maximum number of resources to verify
            dry_run: Verify but do not update resource records

        Returns:
            PeriodicRunSummary
        """
        resources = await self.store.get_resources_due_for_verification(limit)
        summary = PeriodicRunSummary(due=len(resources), dry_run=dry_run)
        logger.info(f"Found {len(resources)} resources due for verification")

        for resource in resources:
            try:
                await self._verify_resource(resource, summary, dry_run)
            except Exception as e:
                summary.errors += 1
                logger.error(
                    f"Periodic verification of '{resource.name}' ({resource.resource_id}) failed: {e}"
                )

        logger.info(
            f"Periodic verification done: {summary.verified} verified, "
            f"{summary.flagged} flagged, {summary.rejected} rejected, {summary.errors} errors"
        )
        return summary

    async def _verify_resource(
        self, resource: Suggestion, summary: PeriodicRunSummary, dry_run: bool
    ) -> None:
        result = await self.pipeline.run(resource, VerificationType.PERIODIC)
        summary.add(result)

        if dry_run or resource.resource_id is None:
            return

        # An auto-fixed website replaces the stored one
        website = None
        if result.verified_website and result.verified_website != resource.website:
            website = result.verified_website

        now = datetime.now(timezone.utc)
        await self.store.update_resource_verification(
            resource.resource_id,
            verification_status=RESOURCE_STATUS_BY_DECISION[result.decision],
            verification_confidence=result.overall_score,
            human_review_required=result.decision != Decision.AUTO_APPROVE,
            last_verified_at=now,
            next_verification_at=calculate_next_verification_date(result.changed_fields, now),
            website=website,
        )
