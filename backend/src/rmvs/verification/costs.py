"""AI cost tracking.

Converts LLM token usage into USD and writes one ledger entry per call.
"""

import logging
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from ..llm import LLMResponse
from ..logging import log_ai_cost
from ..models import AIUsageRecord, ModelPricing, OperationType

if TYPE_CHECKING:
    from .events import VerificationTrace

logger = logging.getLogger(__name__)

# Matched by model-name prefix; longer prefixes are tried first
MODEL_PRICING: dict[str, ModelPricing] = {
    "claude-haiku-4": ModelPricing(input_per_million=0.8, output_per_million=4.0),
    "claude-3-5-haiku": ModelPricing(input_per_million=0.8, output_per_million=4.0),
    "claude-sonnet-4": ModelPricing(input_per_million=3.0, output_per_million=15.0),
    "claude-opus-4": ModelPricing(input_per_million=15.0, output_per_million=75.0),
    "gpt-4o-mini": ModelPricing(input_per_million=0.15, output_per_million=0.6),
    "gpt-4o": ModelPricing(input_per_million=2.5, output_per_million=10.0),
}

DEFAULT_PRICING = MODEL_PRICING["claude-sonnet-4"]


def get_model_pricing(model: str) -> ModelPricing:
    """Look up pricing for a model, defaulting to Sonnet rates."""
    for prefix in sorted(MODEL_PRICING, key=len, reverse=True):
        if model.startswith(prefix):
            return MODEL_PRICING[prefix]
    logger.debug(f"No pricing for model {model}, using default")
    return DEFAULT_PRICING


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> tuple[float, float]:
    """Return (input_cost_usd, output_cost_usd)."""
    pricing = get_model_pricing(model)
    return (
        input_tokens / 1_000_000 * pricing.input_per_million,
        output_tokens / 1_000_000 * pricing.output_per_million,
    )


class CostLedger(Protocol):
    async def save_ai_usage(self, record: AIUsageRecord) -> None: ...


class CostTracker:
    """Per-pass cost accumulator.

    Records each LLM call to the ledger and, when attached to a trace,
    emits a `cost` event. Ledger failures are logged and do not abort
    the pass.
    """

    def __init__(
        self,
        ledger: CostLedger | None = None,
        trace: "VerificationTrace | None" = None,
        suggestion_id: UUID | None = None,
        resource_id: UUID | None = None,
    ):
        self.ledger = ledger
        self.trace = trace
        self.suggestion_id = suggestion_id
        self.resource_id = resource_id
        self.records: list[AIUsageRecord] = []

    @property
    def total_cost_usd(self) -> float:
        return sum(r.total_cost_usd for r in self.records)

    @property
    def api_calls(self) -> int:
        return len(self.records)

    async def record(
        self,
        operation_type: OperationType,
        response: LLMResponse,
        context: dict[str, Any] | None = None,
    ) -> AIUsageRecord:
        """Price one LLM response and record it.

        Args:
            operation_type: Feature that made the call
            response: The LLM response carrying token usage
            context: Audit context (organization name, current URL, ...)

        Returns:
            The ledger entry
        """
        input_cost, output_cost = calculate_cost(
            response.model, response.input_tokens, response.output_tokens
        )

        record = AIUsageRecord(
            operation_type=operation_type,
            provider=response.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            input_cost_usd=input_cost,
            output_cost_usd=output_cost,
            duration_ms=response.duration_ms,
            suggestion_id=self.suggestion_id,
            resource_id=self.resource_id,
            operation_context={k: v for k, v in (context or {}).items() if v is not None},
        )
        self.records.append(record)

        log_ai_cost(
            operation_type.value,
            record.model,
            record.input_tokens,
            record.output_tokens,
            record.total_cost_usd,
        )

        if self.ledger is not None:
            try:
                await self.ledger.save_ai_usage(record)
            except Exception as e:
                logger.error(f"Failed to record AI usage: {e}")

        if self.trace is not None:
            await self.trace.cost(record)

        return record
