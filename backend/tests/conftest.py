"""Shared fixtures and in-memory fakes for RMVS tests."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from rmvs.config import Settings
from rmvs.checks import CrossReferenceMatch
from rmvs.errors import LLMError
from rmvs.llm import LLMResponse
from rmvs.models import Suggestion, SuggestionStatus


# =========================
# LLM
# =========================


class FakeLLM:
    """LLM client that answers from canned replies.

    `search_reply` answers web-search calls (URL auto-fix), `reply`
    answers everything else (content matching). An Exception instance
    is raised instead of returned.
    """

    provider = "anthropic"
    model = "claude-sonnet-4-5"
    fast_model = "claude-haiku-4-5"

    def __init__(self, reply="", search_reply="NOT_FOUND", supports_web_search=True):
        self.reply = reply
        self.search_reply = search_reply
        self.supports_web_search = supports_web_search
        self.calls: list[dict] = []

    async def complete(self, prompt, *, model=None, max_tokens=1024, temperature=0.1, web_search=False):
        self.calls.append({"prompt": prompt, "model": model, "web_search": web_search})
        answer = self.search_reply if web_search else self.reply
        if isinstance(answer, Exception):
            raise answer
        return LLMResponse(
            text=answer,
            input_tokens=1000,
            output_tokens=200,
            model=model or self.model,
            provider=self.provider,
            duration_ms=5,
        )


# =========================
# Browser
# =========================


class FakePage:
    def __init__(self, responses: dict, calls: list):
        self.responses = responses
        self.calls = calls

    async def goto(self, url, wait_until=None, timeout=None):
        self.calls.append(url)
        outcome = self.responses.get(url, 200)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return None
        return SimpleNamespace(status=outcome)


def make_page_factory(responses: dict | None = None):
    """Page factory whose pages answer `goto` with the status mapped to the URL."""
    calls: list[str] = []

    @asynccontextmanager
    async def factory():
        yield FakePage(responses or {}, calls)

    factory.calls = calls
    return factory


# =========================
# Providers
# =========================


class StubGeocoder:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = []

    async def validate(self, address, city=None, state=None, zip_code=None):
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return self.result


class StubContentExtractor:
    def __init__(self, text: str | None = "Oak PIC offers reentry job training in Oakland."):
        self.text = text

    async def extract(self, url):
        return self.text


class StubCrossReferencer:
    def __init__(self, matches: list[CrossReferenceMatch] | None = None):
        self.matches = matches or []

    async def search(self, name, address=None, city=None, state=None):
        return self.matches


# =========================
# Storage
# =========================


class InMemoryRepository:
    """Stands in for VerificationRepository."""

    def __init__(self):
        self.suggestions: dict[UUID, Suggestion] = {}
        self.resources: dict[UUID, dict] = {}
        self.due: list[Suggestion] = []
        self.logs = []
        self.events = []
        self.ai_usage = []
        self.fail_create = False

    async def find_duplicate(self, name, address):
        key = (name.lower(), (address or "").lower())
        for resource in self.resources.values():
            if (resource["name"].lower(), (resource["address"] or "").lower()) == key:
                return "resource"
        for suggestion in self.suggestions.values():
            if (suggestion.name.lower(), (suggestion.address or "").lower()) == key:
                return "suggestion"
        return None

    async def create_suggestion(self, suggestion):
        if self.fail_create:
            raise RuntimeError("database unavailable")
        self.suggestions[suggestion.id] = suggestion
        return suggestion

    async def update_suggestion_status(self, suggestion_id, status, admin_notes):
        self.suggestions[suggestion_id] = self.suggestions[suggestion_id].model_copy(
            update={"status": status, "admin_notes": admin_notes}
        )

    async def create_resource_from_suggestion(self, suggestion, result, next_verification_at):
        resource_id = uuid4()
        self.resources[resource_id] = {
            "name": suggestion.name,
            "address": suggestion.address,
            "website": result.verified_website or suggestion.website,
            "next_verification_at": next_verification_at,
        }
        await self.update_suggestion_status(
            suggestion.id, SuggestionStatus.APPROVED, f"Auto-approved: {result.decision_reason}"
        )
        return resource_id

    async def get_resources_due_for_verification(self, limit):
        return self.due[:limit]

    async def update_resource_verification(self, resource_id, **fields):
        self.resources.setdefault(resource_id, {}).update(fields)

    async def save_verification_log(self, log):
        self.logs.append(log)

    async def get_verification_logs(self, suggestion_id):
        return [
            log for log in self.logs
            if suggestion_id in (log.suggestion_id, log.resource_id)
        ]

    async def record_human_review(self, log_id, reviewer_id, decision, notes):
        for i, log in enumerate(self.logs):
            if log.id == log_id:
                self.logs[i] = log.with_human_review(reviewer_id, decision, notes)
                return self.logs[i]
        return None

    async def save_event(self, event):
        self.events.append(event)

    async def get_events(self, suggestion_id):
        return [e for e in self.events if e.suggestion_id == suggestion_id]

    async def save_ai_usage(self, record):
        self.ai_usage.append(record)


# =========================
# Fixtures
# =========================


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only, independent of any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def fake_llm_class():
    return FakeLLM


@pytest.fixture
def page_factory():
    return make_page_factory


@pytest.fixture
def stubs():
    return SimpleNamespace(
        geocoder=StubGeocoder,
        content=StubContentExtractor,
        cross_referencer=StubCrossReferencer,
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def oak_pic() -> Suggestion:
    """A complete, verifiable suggestion."""
    return Suggestion(
        name="Oak PIC",
        description="Reentry job training and placement",
        primary_category="employment",
        address="1212 Broadway",
        city="Oakland",
        state="CA",
        zip="94612",
        phone="(510) 555-1234",
        website="https://oakpic.org",
        submitted_by="discovery_agent",
        created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
    )


@pytest.fixture
def oak_pic_match() -> CrossReferenceMatch:
    """A 211 record that agrees with every submitted Oak PIC field."""
    return CrossReferenceMatch(
        source="211 Database",
        found=True,
        match_score=0.95,
        url="https://211.example.org/oak-pic",
        data={
            "name": "Oak PIC",
            "address": "1212 Broadway",
            "phone": "(510) 555-1234",
            "website": "https://oakpic.org",
            "email": None,
        },
    )


@pytest.fixture
def llm_error():
    return LLMError("anthropic", "overloaded")
