"""Unit tests for AI cost tracking."""

from uuid import uuid4

import pytest

from rmvs.llm import LLMResponse
from rmvs.models import EventType, OperationType
from rmvs.verification import CostTracker, EventEmitter, calculate_cost, get_model_pricing
from rmvs.verification.costs import DEFAULT_PRICING


class TestModelPricing:
    def test_longest_prefix_wins(self):
        assert get_model_pricing("gpt-4o-mini-2024-07-18").input_per_million == 0.15
        assert get_model_pricing("gpt-4o-2024-08-06").input_per_million == 2.5

    def test_dated_claude_models(self):
        assert get_model_pricing("claude-haiku-4-5-20251001").output_per_million == 4.0
        assert get_model_pricing("claude-opus-4-1").input_per_million == 15.0

    def test_unknown_model_uses_default(self):
        assert get_model_pricing("mystery-model") == DEFAULT_PRICING

    def test_calculate_cost(self):
        input_cost, output_cost = calculate_cost("claude-sonnet-4-5", 1_000_000, 100_000)

        assert input_cost == pytest.approx(3.0)
        assert output_cost == pytest.approx(1.5)


class FailingLedger:
    async def save_ai_usage(self, record):
        raise RuntimeError("ledger down")


class ListLedger:
    def __init__(self):
        self.records = []

    async def save_ai_usage(self, record):
        self.records.append(record)


def response(model="claude-haiku-4-5", input_tokens=1000, output_tokens=200) -> LLMResponse:
    return LLMResponse(
        text="ok",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        model=model,
        provider="anthropic",
        duration_ms=12,
    )


class TestCostTracker:
    @pytest.mark.asyncio
    async def test_records_and_totals(self):
        ledger = ListLedger()
        suggestion_id = uuid4()
        tracker = CostTracker(ledger=ledger, suggestion_id=suggestion_id)

        await tracker.record(OperationType.CONTENT_VERIFICATION, response())
        await tracker.record(
            OperationType.URL_AUTOFIX,
            response("claude-sonnet-4-5"),
            context={"organization_name": "Oak PIC", "city": None},
        )

        assert tracker.api_calls == 2
        assert tracker.total_cost_usd == pytest.approx(0.0016 + 0.006)
        assert ledger.records == tracker.records
        assert ledger.records[1].operation_context == {"organization_name": "Oak PIC"}
        assert all(r.suggestion_id == suggestion_id for r in ledger.records)

    @pytest.mark.asyncio
    async def test_ledger_failure_does_not_raise(self):
        tracker = CostTracker(ledger=FailingLedger())

        record = await tracker.record(OperationType.CONTENT_VERIFICATION, response())

        assert record.total_cost_usd == pytest.approx(0.0016)
        assert tracker.api_calls == 1

    @pytest.mark.asyncio
    async def test_emits_cost_event(self):
        trace = EventEmitter().trace(uuid4())
        await trace.emit(EventType.STARTED)
        tracker = CostTracker(trace=trace)

        await tracker.record(OperationType.URL_AUTOFIX, response())

        event = trace.events[-1]
        assert event.event_type == EventType.COST
        assert event.event_data["operation"] == "url_autofix"
        assert event.event_data["tokens"] == 1200
