"""Cost ledger models for AI usage."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field


class OperationType(str, Enum):
    """Features that spend on LLM calls."""

    VERIFICATION = "verification"
    URL_AUTOFIX = "url_autofix"
    CONTENT_VERIFICATION = "content_verification"
    ENRICHMENT = "enrichment"


class ModelPricing(BaseModel):
    """USD price per one million tokens."""

    input_per_million: float
    output_per_million: float

    model_config = ConfigDict(frozen=True)


class AIUsageRecord(BaseModel):
    """One cost ledger entry per LLM invocation."""

    id: UUID = Field(default_factory=uuid4)
    operation_type: OperationType
    provider: str
    model: str
    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    input_cost_usd: float = Field(ge=0.0)
    output_cost_usd: float = Field(ge=0.0)
    duration_ms: int | None = None
    suggestion_id: UUID | None = None
    resource_id: UUID | None = None
    operation_context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def total_cost_usd(self) -> float:
        return self.input_cost_usd + self.output_cost_usd
