"""Decision engine: score plus hard-fail signals to a terminal decision.

Rules, in order:
1. score below the reject threshold: auto_reject
2. any blocking signal: flag_for_human
3. score at or above the approve threshold with no conflicts: auto_approve
4. otherwise: flag_for_human

With the evidence held fixed, a higher score can only move a decision
from auto_reject toward auto_approve.
"""

import logging
from dataclasses import dataclass

from ..config import Settings, get_settings
from ..models import Decision, DecisionOutcome, FieldConflict, VerificationChecks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionThresholds:
    """Configurable cutoffs for the decision engine."""

    auto_approve: float = 0.85
    auto_reject: float = 0.50
    high_confidence_conflict: float = 0.7
    min_cross_references: int = 1

    def __post_init__(self):
        if not 0.0 <= self.auto_reject < self.auto_approve <= 1.0:
            raise ValueError(
                f"Invalid thresholds: reject={self.auto_reject}, approve={self.auto_approve}"
            )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DecisionThresholds":
        settings = settings or get_settings()
        return cls(
            auto_approve=settings.auto_approve_threshold,
            auto_reject=settings.auto_reject_threshold,
            high_confidence_conflict=settings.high_confidence_conflict,
            min_cross_references=settings.min_cross_references,
        )


def _pct(score: float) -> str:
    return f"{score * 100:.0f}%"


class DecisionEngine:
    """Maps a verification score and check results to a Decision."""

    def __init__(self, thresholds: DecisionThresholds | None = None):
        self.thresholds = thresholds or DecisionThresholds.from_settings()

    def blocking_reasons(
        self,
        checks: VerificationChecks,
        conflicts: list[FieldConflict],
    ) -> list[str]:
        """Signals that prevent auto-approval regardless of score."""
        reasons = []

        # Hard fails
        if checks.url_reachable is not None and not checks.url_reachable.passed:
            reasons.append("Website URL is not reachable and could not be auto-fixed")
        if checks.phone_valid is not None and not checks.phone_valid.passed:
            reasons.append("Phone number is invalid")

        high_confidence = [
            c for c in conflicts if c.confidence > self.thresholds.high_confidence_conflict
        ]
        if high_confidence:
            fields = ", ".join(c.field for c in high_confidence)
            reasons.append(
                f"{len(high_confidence)} high-confidence conflict(s) detected: {fields}"
            )

        if checks.phone_valid is None or checks.address_geocodable is None:
            reasons.append("Critical fields missing or unverified (phone or address)")

        cross_ref_count = len(checks.cross_referenced.sources) if checks.cross_referenced else 0
        if cross_ref_count < self.thresholds.min_cross_references:
            reasons.append(
                f"Insufficient cross-reference sources "
                f"({cross_ref_count}, need at least {self.thresholds.min_cross_references})"
            )

        return reasons

    def decide(
        self,
        score: float,
        checks: VerificationChecks,
        conflicts: list[FieldConflict] | None = None,
    ) -> DecisionOutcome:
        """Render a decision.

        Args:
            score: Overall verification score (0-1)
            checks: Check results of the pass
            conflicts: Field conflicts found by cross-referencing

        Returns:
            DecisionOutcome with reason and score
        """
        conflicts = conflicts or []
        score = min(max(score, 0.0), 1.0)

        if score < self.thresholds.auto_reject:
            return DecisionOutcome(
                decision=Decision.AUTO_REJECT,
                reason=f"Overall verification score too low: {_pct(score)}",
                score=score,
            )

        blockers = self.blocking_reasons(checks, conflicts)
        if blockers:
            return DecisionOutcome(
                decision=Decision.FLAG_FOR_HUMAN,
                reason="; ".join(blockers),
                score=score,
            )

        if score >= self.thresholds.auto_approve and not conflicts:
            sources = len(checks.cross_referenced.sources) if checks.cross_referenced else 0
            return DecisionOutcome(
                decision=Decision.AUTO_APPROVE,
                reason=(
                    f"High confidence ({_pct(score)}) with {sources} "
                    f"cross-reference(s) and no conflicts"
                ),
                score=score,
            )

        if conflicts:
            reason = f"{len(conflicts)} low-confidence conflict(s) need review"
        else:
            reason = f"Verification score below auto-approve threshold: {_pct(score)}"

        return DecisionOutcome(decision=Decision.FLAG_FOR_HUMAN, reason=reason, score=score)
