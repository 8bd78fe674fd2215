"""Unit tests for AI-assisted URL repair."""

import pytest

from rmvs.checks import ReachabilityChecker, UrlAutoFixer
from rmvs.checks.autofix import FIX_CONFIDENCE, NOT_FOUND, is_aggregator, parse_candidate_url
from rmvs.models import OperationType
from rmvs.verification import CostTracker


class TestParseCandidateUrl:
    def test_accepts_single_url(self):
        assert parse_candidate_url("  https://oakpic.org/oakland\n") == "https://oakpic.org/oakland"

    @pytest.mark.parametrize(
        "reply",
        [
            NOT_FOUND,
            "not_found",
            "",
            "The website is https://oakpic.org",
            "oakpic.org",
            "https://oakpic.org is the site",
            "https://www.findhelp.org/oak-pic",
            "https://www.linkedin.com/company/oak-pic",
        ],
    )
    def test_rejects_everything_else(self, reply):
        assert parse_candidate_url(reply) is None


def test_is_aggregator_matches_subdomains_only():
    assert is_aggregator("https://m.yelp.com/biz/oak-pic") is True
    assert is_aggregator("https://notyelp.com") is False


class TestUrlAutoFixer:
    @pytest.mark.asyncio
    async def test_fixes_with_reachable_candidate(self, fake_llm_class, page_factory):
        llm = fake_llm_class(search_reply="https://oakpic.org/oakland")
        checker = ReachabilityChecker(
            timeout_ms=1000, page_factory=page_factory({"https://oakpic.org/oakland": 200})
        )
        tracker = CostTracker()

        result = await UrlAutoFixer(llm, checker).fix(
            "Oak PIC", "https://oakpic.com", "Oakland", "CA", cost_tracker=tracker
        )

        assert result.fixed is True
        assert result.new_url == "https://oakpic.org/oakland"
        assert result.confidence == FIX_CONFIDENCE
        assert result.method == "ai_web_search"
        assert result.check.passed is True
        assert result.cost_usd == pytest.approx(tracker.total_cost_usd)
        assert llm.calls[0]["web_search"] is True
        record = tracker.records[0]
        assert record.operation_type == OperationType.URL_AUTOFIX
        assert record.operation_context == {
            "organization_name": "Oak PIC",
            "current_url": "https://oakpic.com",
            "city": "Oakland",
            "state": "CA",
        }

    @pytest.mark.asyncio
    async def test_unreachable_candidate_is_not_a_fix(self, fake_llm_class, page_factory):
        llm = fake_llm_class(search_reply="https://oakpic.org/oakland")
        checker = ReachabilityChecker(
            timeout_ms=1000, page_factory=page_factory({"https://oakpic.org/oakland": 404})
        )

        result = await UrlAutoFixer(llm, checker).fix("Oak PIC", "https://oakpic.com")

        assert result.fixed is False
        assert result.new_url is None
        assert result.candidate_url == "https://oakpic.org/oakland"
        assert result.check.passed is False

    @pytest.mark.asyncio
    async def test_not_found_sentinel(self, fake_llm_class, page_factory):
        factory = page_factory()
        llm = fake_llm_class(search_reply=NOT_FOUND)

        result = await UrlAutoFixer(llm, ReachabilityChecker(1000, factory)).fix(
            "Oak PIC", "https://oakpic.com"
        )

        assert result.fixed is False
        assert result.candidate_url is None
        assert factory.calls == []

    @pytest.mark.asyncio
    async def test_client_without_web_search_is_skipped(self, fake_llm_class, page_factory):
        llm = fake_llm_class(supports_web_search=False)

        result = await UrlAutoFixer(llm, ReachabilityChecker(1000, page_factory())).fix(
            "Oak PIC", "https://oakpic.com"
        )

        assert result.fixed is False
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_llm_error_is_not_a_fix(self, fake_llm_class, page_factory, llm_error):
        llm = fake_llm_class(search_reply=llm_error)
        tracker = CostTracker()

        result = await UrlAutoFixer(llm, ReachabilityChecker(1000, page_factory())).fix(
            "Oak PIC", "https://oakpic.com", cost_tracker=tracker
        )

        assert result.fixed is False
        assert tracker.api_calls == 0

    def test_prompt_mentions_location_and_sentinel(self, fake_llm_class, page_factory):
        fixer = UrlAutoFixer(fake_llm_class(), ReachabilityChecker(1000, page_factory()))

        prompt = fixer.build_prompt("Oak PIC", "https://oakpic.com", "San Leandro", "CA")

        assert '"Oak PIC" in San Leandro, CA' in prompt
        assert "/locations/san-leandro" in prompt
        assert prompt.rstrip().endswith(NOT_FOUND)
