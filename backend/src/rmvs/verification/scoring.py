"""Weighted confidence score over the checks that ran."""

from collections.abc import Mapping

from ..models import CheckName, CheckResult, VerificationChecks

CHECK_WEIGHTS: dict[CheckName, float] = {
    CheckName.URL_REACHABLE: 0.15,
    CheckName.PHONE_VALID: 0.15,
    CheckName.ADDRESS_GEOCODABLE: 0.20,
    CheckName.WEBSITE_CONTENT_MATCHES: 0.20,
    CheckName.CROSS_REFERENCED: 0.20,
    CheckName.CONFLICT_DETECTION: 0.10,
}


def calculate_verification_score(
    checks: VerificationChecks | Mapping[CheckName | str, CheckResult | None],
) -> float:
    """Combine check results into a 0-1 score.

    Each present check contributes its weight times its confidence when
    it passed, and nothing when it failed. Absent checks are left out of
    both the total and the denominator. Returns 0.0 when no check ran.
    """
    if isinstance(checks, VerificationChecks):
        present: Mapping = checks.present()
    else:
        present = {CheckName(name): result for name, result in checks.items() if result is not None}

    total = 0.0
    weight_sum = 0.0

    # Fixed table order keeps the float sum independent of insertion order
    for name, weight in CHECK_WEIGHTS.items():
        result = present.get(name)
        if result is None:
            continue
        weight_sum += weight
        if result.passed:
            total += weight * result.score_confidence

    if weight_sum == 0:
        return 0.0

    return min(max(total / weight_sum, 0.0), 1.0)
