"""Per-field re-verification cadence."""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

# Days between checks; volatile fields are checked more often
FIELD_CADENCE_DAYS: dict[str, int] = {
    "phone": 30,
    "hours": 30,
    "website": 60,
    "email": 60,
    "services": 60,
    "services_offered": 60,
    "description": 90,
    "eligibility": 90,
    "eligibility_requirements": 90,
    "address": 180,
    "city": 180,
    "state": 180,
    "zip": 180,
    "name": 365,
    "category": 365,
    "primary_category": 365,
}

DEFAULT_CADENCE_DAYS = 90
NO_CHANGE_CADENCE_DAYS = 30


def get_field_cadence(field_name: str) -> int:
    return FIELD_CADENCE_DAYS.get(field_name, DEFAULT_CADENCE_DAYS)


def calculate_next_verification_date(
    changed_fields: Iterable[str],
    now: datetime | None = None,
) -> datetime:
    """Next verification date: now plus the shortest cadence among changed fields.

    Args:
        changed_fields: Fields that changed since the last pass
        now: Reference time (defaults to current UTC time)

    Returns:
        The next verification datetime; now + 30 days if nothing changed
    """
    now = now or datetime.now(timezone.utc)
    cadences = [get_field_cadence(field) for field in changed_fields]
    days = min(cadences) if cadences else NO_CHANGE_CADENCE_DAYS
    return now + timedelta(days=days)
