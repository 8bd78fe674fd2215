"""Suggestion model: a candidate directory entry awaiting verification."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class SuggestionStatus(str, Enum):
    """Review status of a suggestion."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Fields compared against external sources by the conflict detector
COMPARABLE_FIELDS = ("name", "phone", "website", "address", "email")


class Suggestion(BaseModel):
    """A stored resource suggestion.

    Created by submission intake and read-only to the verification
    pipeline: decisions are recorded separately, so the model is frozen.
    """

    id: UUID = Field(default_factory=uuid4)
    resource_id: UUID | None = Field(
        default=None, description="Published resource, for periodic re-verification"
    )

    # Organization
    name: str
    description: str | None = None
    primary_category: str | None = None
    categories: list[str] | None = None
    tags: list[str] | None = None

    # Location
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    # Contact
    phone: str | None = None
    website: str | None = None
    email: str | None = None

    # Services
    hours: dict[str, Any] | None = None
    services_offered: list[str] | None = None
    eligibility_requirements: str | None = None
    required_documents: list[str] | None = None
    fees: str | None = None
    languages: list[str] | None = None
    accessibility_features: list[str] | None = None

    # Provenance
    discovered_via: str | None = None
    discovery_notes: str | None = None
    submitted_by: str | None = None
    reason: str | None = None

    status: SuggestionStatus = SuggestionStatus.PENDING
    admin_notes: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    @property
    def category(self) -> str | None:
        return self.primary_category

    def field_map(self) -> dict[str, Any]:
        """Comparable fields as a plain mapping."""
        return {name: getattr(self, name) for name in COMPARABLE_FIELDS}
