"""Unit tests for the decision engine."""

import pytest

from rmvs.models import (
    CrossReferenceCheck,
    CrossReferenceSourceRef,
    Decision,
    FieldConflict,
    GeocodeCheck,
    PhoneCheck,
    UrlCheck,
    VerificationChecks,
)
from rmvs.verification import DecisionEngine, DecisionThresholds


def complete_checks(**overrides) -> VerificationChecks:
    values = {
        "url_reachable": UrlCheck(passed=True, status_code=200),
        "phone_valid": PhoneCheck(passed=True, format="US"),
        "address_geocodable": GeocodeCheck(passed=True, confidence=0.95),
        "cross_referenced": CrossReferenceCheck(
            passed=True, sources=[CrossReferenceSourceRef(name="211 Database", match_score=0.95)]
        ),
    }
    values.update(overrides)
    return VerificationChecks(**values)


def conflict(confidence: float) -> FieldConflict:
    return FieldConflict(
        field="phone",
        submitted_value="(510) 555-1234",
        found_value="(415) 867-5309",
        confidence=confidence,
        source="Google Maps",
    )


@pytest.fixture
def engine() -> DecisionEngine:
    return DecisionEngine(DecisionThresholds())


class TestDecisionThresholds:
    def test_rejects_inverted_thresholds(self):
        with pytest.raises(ValueError):
            DecisionThresholds(auto_approve=0.5, auto_reject=0.6)

    def test_from_settings(self, settings):
        thresholds = DecisionThresholds.from_settings(settings)

        assert thresholds.auto_approve == 0.85
        assert thresholds.auto_reject == 0.50
        assert thresholds.min_cross_references == 1


class TestDecide:
    def test_high_score_clean_evidence_approves(self, engine):
        outcome = engine.decide(0.95, complete_checks())

        assert outcome.decision == Decision.AUTO_APPROVE
        assert "95%" in outcome.reason

    def test_low_score_rejects(self, engine):
        outcome = engine.decide(0.3, complete_checks())

        assert outcome.decision == Decision.AUTO_REJECT
        assert outcome.reason == "Overall verification score too low: 30%"

    def test_reject_takes_precedence_over_blockers(self, engine):
        outcome = engine.decide(0.2, VerificationChecks())

        assert outcome.decision == Decision.AUTO_REJECT

    def test_unreachable_url_flags(self, engine):
        outcome = engine.decide(0.9, complete_checks(url_reachable=UrlCheck(passed=False)))

        assert outcome.decision == Decision.FLAG_FOR_HUMAN
        assert "not reachable" in outcome.reason

    def test_invalid_phone_flags(self, engine):
        outcome = engine.decide(
            0.9, complete_checks(phone_valid=PhoneCheck(passed=False, format="invalid"))
        )

        assert outcome.decision == Decision.FLAG_FOR_HUMAN
        assert "Phone number is invalid" in outcome.reason

    def test_missing_critical_check_flags(self, engine):
        outcome = engine.decide(0.95, complete_checks(address_geocodable=None))

        assert outcome.decision == Decision.FLAG_FOR_HUMAN
        assert "Critical fields missing" in outcome.reason

    def test_insufficient_cross_references_flag(self, engine):
        outcome = engine.decide(0.95, complete_checks(cross_referenced=None))

        assert outcome.decision == Decision.FLAG_FOR_HUMAN
        assert "Insufficient cross-reference sources (0, need at least 1)" in outcome.reason

    def test_high_confidence_conflict_flags(self, engine):
        outcome = engine.decide(0.95, complete_checks(), [conflict(0.9)])

        assert outcome.decision == Decision.FLAG_FOR_HUMAN
        assert "1 high-confidence conflict(s) detected: phone" in outcome.reason

    def test_low_confidence_conflict_still_blocks_approval(self, engine):
        outcome = engine.decide(0.95, complete_checks(), [conflict(0.4)])

        assert outcome.decision == Decision.FLAG_FOR_HUMAN
        assert "low-confidence conflict" in outcome.reason

    def test_middle_score_flags(self, engine):
        outcome = engine.decide(0.7, complete_checks())

        assert outcome.decision == Decision.FLAG_FOR_HUMAN
        assert "below auto-approve threshold" in outcome.reason

    def test_approve_threshold_is_inclusive(self, engine):
        assert engine.decide(0.85, complete_checks()).decision == Decision.AUTO_APPROVE

    def test_reject_threshold_is_exclusive(self, engine):
        assert engine.decide(0.50, complete_checks()).decision != Decision.AUTO_REJECT

    @pytest.mark.parametrize(
        "checks",
        [
            complete_checks(),
            complete_checks(url_reachable=UrlCheck(passed=False)),
            complete_checks(cross_referenced=None),
        ],
    )
    def test_decision_is_monotonic_in_score(self, engine, checks):
        """Test that raising the score never moves a decision toward reject."""
        rank = {Decision.AUTO_REJECT: 0, Decision.FLAG_FOR_HUMAN: 1, Decision.AUTO_APPROVE: 2}
        scores = [i / 20 for i in range(21)]

        ranks = [rank[engine.decide(s, checks).decision] for s in scores]

        assert ranks == sorted(ranks)
