"""End-to-end verification passes over in-memory fakes."""

from dataclasses import replace

import pytest

from rmvs.checks import CrossReferenceMatch
from rmvs.models import Decision, EventType, GeocodeCheck, OperationType, Suggestion


class TestCleanSuggestion:
    """A complete suggestion whose every check agrees."""

    @pytest.mark.asyncio
    async def test_auto_approves(self, build_pipeline, oak_pic, oak_pic_match):
        pipeline = build_pipeline(matches=[oak_pic_match])

        result = await pipeline.run(oak_pic)

        assert result.decision == Decision.AUTO_APPROVE
        assert result.overall_score == pytest.approx(0.96)
        assert result.decision_reason == (
            "High confidence (96%) with 1 cross-reference(s) and no conflicts"
        )
        assert result.error is None

    @pytest.mark.asyncio
    async def test_identical_external_values_produce_no_conflicts(
        self, build_pipeline, oak_pic, oak_pic_match
    ):
        result = await build_pipeline(matches=[oak_pic_match]).run(oak_pic)

        assert result.conflicts == []
        assert result.changes_detected == []
        assert result.checks.conflict_detection.passed is True

    @pytest.mark.asyncio
    async def test_records_checks_costs_and_log(
        self, build_pipeline, repository, oak_pic, oak_pic_match
    ):
        result = await build_pipeline(matches=[oak_pic_match]).run(oak_pic)

        checks = result.checks
        assert checks.phone_valid.normalized == "(510) 555-1234"
        assert checks.url_reachable.status_code == 200
        assert checks.address_geocodable.coords.lat == pytest.approx(37.8044)
        assert checks.website_content_matches.confidence == pytest.approx(0.9)
        assert checks.cross_referenced.sources[0].name == "211 Database"

        # url, geocode, content fetch, one source, one LLM call
        assert result.api_calls_made == 5
        assert result.estimated_cost_usd == pytest.approx(0.0016)
        assert [r.operation_type for r in repository.ai_usage] == [
            OperationType.CONTENT_VERIFICATION
        ]

        assert len(repository.logs) == 1
        log = repository.logs[0]
        assert log.suggestion_id == oak_pic.id
        assert log.auto_approved is True
        assert log.checks_performed["phone_valid"]["pass"] is True

    @pytest.mark.asyncio
    async def test_event_trace_is_complete(
        self, build_pipeline, event_sink, repository, oak_pic, oak_pic_match
    ):
        await build_pipeline(matches=[oak_pic_match]).run(oak_pic)

        events = event_sink.for_suggestion(oak_pic.id)
        assert events[0].event_type == EventType.STARTED
        assert events[-1].event_type == EventType.COMPLETED
        assert sum(e.event_type.is_terminal for e in events) == 1
        assert [e.sequence for e in events] == list(range(len(events)))
        assert any(e.event_type == EventType.COST for e in events)
        assert events[-1].event_data["decision"] == "auto_approve"
        assert events[-1].event_data["sources_verified"] == 1
        assert repository.events == events


class TestUrlAutoFix:
    @pytest.mark.asyncio
    async def test_broken_url_is_replaced(
        self, build_pipeline, fake_llm_class, oak_pic, oak_pic_match
    ):
        suggestion = oak_pic.model_copy(update={"website": "https://oakpic.com"})
        match = replace(
            oak_pic_match, data={**oak_pic_match.data, "website": "https://oakpic.org/oakland"}
        )
        llm = fake_llm_class(
            reply='{"pass": true, "confidence": 0.9, "evidence": "match"}',
            search_reply="https://oakpic.org/oakland",
        )
        pipeline = build_pipeline(
            llm=llm,
            pages={"https://oakpic.com": 404, "https://oakpic.org/oakland": 200},
            matches=[match],
        )

        result = await pipeline.run(suggestion)

        assert result.checks.url_reachable.passed is True
        assert result.verified_website == "https://oakpic.org/oakland"
        assert result.changed_fields == ["website"]
        assert result.changes_detected[0].old_value == "https://oakpic.com"
        assert result.conflicts == []
        assert result.decision == Decision.AUTO_APPROVE
        assert [c["web_search"] for c in llm.calls] == [True, False]

    @pytest.mark.asyncio
    async def test_unfixable_url_is_flagged(self, build_pipeline, fake_llm_class, oak_pic, oak_pic_match):
        llm = fake_llm_class(search_reply="NOT_FOUND")
        pipeline = build_pipeline(
            llm=llm, pages={"https://oakpic.org": 404}, matches=[oak_pic_match]
        )

        result = await pipeline.run(oak_pic)

        assert result.decision == Decision.FLAG_FOR_HUMAN
        assert "not reachable" in result.decision_reason
        assert result.checks.website_content_matches is None


class TestDegradedPasses:
    @pytest.mark.asyncio
    async def test_without_llm_ai_checks_are_skipped(self, build_pipeline, oak_pic, oak_pic_match):
        result = await build_pipeline(llm=None, matches=[oak_pic_match]).run(oak_pic)

        assert result.checks.website_content_matches is None
        assert result.estimated_cost_usd == 0.0
        # (0.15 + 0.15 + 0.19 + 0.19 + 0.10) / 0.80
        assert result.overall_score == pytest.approx(0.975)
        assert result.decision == Decision.AUTO_APPROVE

    @pytest.mark.asyncio
    async def test_unavailable_providers_are_excluded_and_flagged(
        self, build_pipeline, stubs, oak_pic
    ):
        unavailable = CrossReferenceMatch(source="211 Database", available=False)
        pipeline = build_pipeline(
            llm=None, geocoder=stubs.geocoder(None), matches=[unavailable]
        )

        result = await pipeline.run(oak_pic)

        assert result.checks.address_geocodable is None
        assert result.checks.cross_referenced is None
        assert result.overall_score == pytest.approx(1.0)
        assert result.decision == Decision.FLAG_FOR_HUMAN
        assert "Critical fields missing" in result.decision_reason

    @pytest.mark.asyncio
    async def test_everything_failing_is_rejected(self, build_pipeline, stubs):
        suggestion = Suggestion(
            name="Nowhere Services",
            address="0 Nowhere",
            phone="555",
            website="https://nowhere.example.org",
        )
        pipeline = build_pipeline(
            llm=None,
            pages={"https://nowhere.example.org": 500},
            geocoder=stubs.geocoder(GeocodeCheck(passed=False)),
        )

        result = await pipeline.run(suggestion)

        assert result.overall_score == 0.0
        assert result.decision == Decision.AUTO_REJECT

    @pytest.mark.asyncio
    async def test_conflicting_phone_is_flagged(self, build_pipeline, oak_pic, oak_pic_match):
        match = replace(oak_pic_match, data={**oak_pic_match.data, "phone": "(415) 867-5309"})

        result = await build_pipeline(matches=[match]).run(oak_pic)

        assert [c.field for c in result.conflicts] == ["phone"]
        assert result.checks.conflict_detection.passed is False
        assert result.changed_fields == ["phone"]
        assert result.decision == Decision.FLAG_FOR_HUMAN


class TestFailedPass:
    @pytest.mark.asyncio
    async def test_exception_becomes_flag_with_failed_event(
        self, build_pipeline, stubs, event_sink, repository, oak_pic
    ):
        pipeline = build_pipeline(geocoder=stubs.geocoder(error=RuntimeError("geocoder exploded")))

        result = await pipeline.run(oak_pic)

        assert result.decision == Decision.FLAG_FOR_HUMAN
        assert result.decision_reason == "Verification error: geocoder exploded"
        assert result.error == "geocoder exploded"
        assert result.checks.phone_valid.passed is True

        events = event_sink.for_suggestion(oak_pic.id)
        assert events[-1].event_type == EventType.FAILED
        assert events[-1].event_data["error"] == "geocoder exploded"
        assert len(repository.logs) == 1
