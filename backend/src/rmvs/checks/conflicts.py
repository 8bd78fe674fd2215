"""Field conflict detection between submitted and externally found data.

Similarity is the fraction of position-aligned matching characters over
the longer string. Strings that differ by an insertion or deletion score
low because the shifted suffix matches nothing.
"""

from collections.abc import Mapping
from typing import Any

from ..models import COMPARABLE_FIELDS, FieldConflict

DEFAULT_SIMILARITY_THRESHOLD = 0.7


def _normalize(value: Any) -> str:
    return str(value).lower().strip()


def aligned_similarity(a: str, b: str) -> float:
    """Position-aligned character similarity in [0, 1]."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    matches = sum(1 for x, y in zip(a, b) if x == y)
    return matches / longer


def detect_conflicts(
    submitted: Mapping[str, Any],
    found: Mapping[str, Any],
    source: str,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[FieldConflict]:
    """Compare submitted fields against values found by an external source.

    Args:
        submitted: Field map of the suggestion
        found: Field map reported by the source
        source: Label of the source, recorded on each conflict
        threshold: Similarity below which a field conflicts

    Returns:
        One FieldConflict per diverging field, in checked-field order
    """
    conflicts: list[FieldConflict] = []

    for field in COMPARABLE_FIELDS:
        submitted_value = submitted.get(field)
        found_value = found.get(field)
        if not submitted_value or not found_value:
            continue

        a = _normalize(submitted_value)
        b = _normalize(found_value)
        if a == b:
            continue

        similarity = aligned_similarity(a, b)
        if similarity < threshold:
            conflicts.append(
                FieldConflict(
                    field=field,
                    submitted_value=submitted_value,
                    found_value=found_value,
                    confidence=1.0 - similarity,
                    source=source,
                )
            )

    return conflicts
