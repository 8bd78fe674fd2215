"""Fixtures that assemble a verification pipeline from in-memory fakes."""

import pytest

from rmvs.checks import ReachabilityChecker
from rmvs.models import Coordinates, GeocodeCheck
from rmvs.verification import DatabaseEventSink, EventEmitter, InMemoryEventSink, VerificationPipeline

CONTENT_MATCH_REPLY = '{"pass": true, "confidence": 0.9, "evidence": "Name and services match"}'


@pytest.fixture
def event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture
def oakland_geocode() -> GeocodeCheck:
    return GeocodeCheck(
        passed=True,
        coords=Coordinates(lat=37.8044, lng=-122.2712),
        confidence=0.95,
        formatted_address="1212 Broadway, Oakland, CA 94612, USA",
    )


@pytest.fixture
def build_pipeline(settings, repository, event_sink, page_factory, stubs, fake_llm_class, oakland_geocode):
    """Factory for a pipeline wired to fakes.

    Keyword arguments override the default collaborators: `llm`,
    `pages` (URL to status map), `geocoder`, `content` and `matches`.
    """

    def factory(**overrides) -> VerificationPipeline:
        llm = overrides.get("llm", fake_llm_class(reply=CONTENT_MATCH_REPLY))
        return VerificationPipeline(
            llm=llm,
            reachability=ReachabilityChecker(
                timeout_ms=1000, page_factory=page_factory(overrides.get("pages"))
            ),
            geocoder=overrides.get("geocoder", stubs.geocoder(oakland_geocode)),
            content_extractor=overrides.get("content", stubs.content()),
            cross_referencer=stubs.cross_referencer(overrides.get("matches", [])),
            emitter=EventEmitter([event_sink, DatabaseEventSink(repository)]),
            ledger=repository,
            log_store=repository,
            settings=settings,
        )

    return factory
