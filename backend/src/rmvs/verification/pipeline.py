"""Verification pipeline orchestration.

Runs the checks for one suggestion in order (format, network, AI),
scores them, renders a decision, and records the trace, the costs and
the verification log. Any exception inside a pass is converted into a
flag_for_human outcome with a terminal `failed` event.
"""

import time
from datetime import datetime, timezone
from typing import Protocol

from ..checks import (
    ContentExtractor,
    ContentVerifier,
    CrossReferencer,
    Geocoder,
    ReachabilityChecker,
    UrlAutoFixer,
    detect_conflicts,
    validate_phone_number,
)
from ..config import Settings, get_settings
from ..llm import LLMClient, get_llm_client
from ..logging import (
    get_context_logger,
    log_decision,
    log_verification_complete,
    log_verification_start,
)
from ..models import (
    ConflictCheck,
    CrossReferenceCheck,
    CrossReferenceSourceRef,
    Decision,
    FieldChange,
    FieldConflict,
    ProgressStatus,
    Suggestion,
    VerificationChecks,
    VerificationLog,
    VerificationResult,
    VerificationType,
)
from .costs import CostLedger, CostTracker
from .decision import DecisionEngine, DecisionThresholds
from .events import DatabaseEventSink, EventEmitter, RedisEventSink, VerificationTrace
from .scoring import calculate_verification_score

# Score for sources that report a match without a score of their own
DEFAULT_SOURCE_MATCH_SCORE = 0.8


class VerificationLogStore(Protocol):
    async def save_verification_log(self, log: VerificationLog) -> None: ...


def _status(passed: bool) -> ProgressStatus:
    return ProgressStatus.COMPLETED if passed else ProgressStatus.FAILED


class _PassState:
    """Mutable working state of one pass."""

    def __init__(self, suggestion: Suggestion):
        self.checks = VerificationChecks()
        self.conflicts: list[FieldConflict] = []
        self.changes: list[FieldChange] = []
        self.website = suggestion.website
        self.network_calls = 0

    def add_change(self, field: str, old_value, new_value) -> None:
        if any(change.field == field for change in self.changes):
            return
        self.changes.append(FieldChange(field=field, old_value=old_value, new_value=new_value))


class VerificationPipeline:
    """Verifies suggestions end to end.

    All collaborators are injected; anything left out is built from
    settings. Without an LLM client the AI checks (content match and URL
    auto-fix) are skipped and excluded from scoring.
    """

    def __init__(
        self,
        llm: LLMClient | None = None,
        reachability: ReachabilityChecker | None = None,
        geocoder: Geocoder | None = None,
        content_extractor: ContentExtractor | None = None,
        cross_referencer: CrossReferencer | None = None,
        decision_engine: DecisionEngine | None = None,
        emitter: EventEmitter | None = None,
        ledger: CostLedger | None = None,
        log_store: VerificationLogStore | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm
        self.reachability = reachability or ReachabilityChecker(
            timeout_ms=self.settings.reachability_timeout_ms
        )
        self.geocoder = geocoder or Geocoder()
        self.content_extractor = content_extractor or ContentExtractor()
        self.cross_referencer = cross_referencer or CrossReferencer()
        self.decision_engine = decision_engine or DecisionEngine(
            DecisionThresholds.from_settings(self.settings)
        )
        self.emitter = emitter or EventEmitter()
        self.ledger = ledger
        self.log_store = log_store

        self.autofixer = UrlAutoFixer(llm, self.reachability) if llm else None
        self.content_verifier = (
            ContentVerifier(llm, max_chars=self.settings.content_max_chars) if llm else None
        )

    async def run(
        self,
        suggestion: Suggestion,
        verification_type: VerificationType = VerificationType.INITIAL,
    ) -> VerificationResult:
        """Run one verification pass.

        Never raises for failures inside the pass: the result is then
        flag_for_human with a "Verification error" reason.

        Args:
            suggestion: Stored suggestion to verify
            verification_type: Why the pass runs

        Returns:
            VerificationResult (also persisted as a VerificationLog)
        """
        logger = get_context_logger(__name__, suggestion_id=str(suggestion.id))
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        trace = self.emitter.trace(suggestion.id)
        costs = CostTracker(
            ledger=self.ledger,
            trace=trace,
            suggestion_id=suggestion.id,
            resource_id=suggestion.resource_id,
        )
        state = _PassState(suggestion)

        log_verification_start(str(suggestion.id), suggestion.name, verification_type.value)
        await trace.start(
            suggestion.name, verification_type, city=suggestion.city, state=suggestion.state
        )

        try:
            await self._run_checks(suggestion, state, trace, costs)

            score = calculate_verification_score(state.checks)
            outcome = self.decision_engine.decide(score, state.checks, state.conflicts)
            result = self._build_result(
                suggestion, state, costs, started_at, start,
                decision=outcome.decision, reason=outcome.reason, score=outcome.score,
            )
            await trace.complete(result)

        except Exception as e:
            logger.exception(f"Verification failed for '{suggestion.name}': {e}")
            result = self._build_result(
                suggestion, state, costs, started_at, start,
                decision=Decision.FLAG_FOR_HUMAN,
                reason=f"Verification error: {e}",
                score=calculate_verification_score(state.checks),
                error=str(e),
            )
            if not trace.closed:
                await trace.fail(str(e), duration_ms=result.duration_ms)

        await self._save_log(suggestion, result, verification_type, logger)

        log_verification_complete(
            str(suggestion.id), result.overall_score, result.duration_ms, result.estimated_cost_usd
        )
        log_decision(
            str(suggestion.id), result.decision.value, result.overall_score, result.decision_reason
        )
        return result

    async def _run_checks(
        self,
        suggestion: Suggestion,
        state: _PassState,
        trace: VerificationTrace,
        costs: CostTracker,
    ) -> None:
        checks = state.checks

        # Format
        if suggestion.phone:
            await trace.progress("Validating phone number", ProgressStatus.RUNNING)
            checks.phone_valid = validate_phone_number(suggestion.phone)
            await trace.progress(
                f"Phone validation {'passed' if checks.phone_valid.passed else 'failed'}",
                _status(checks.phone_valid.passed),
                phone=suggestion.phone,
                format=checks.phone_valid.format,
            )

        # Network
        if state.website:
            await self._check_website(suggestion, state, trace, costs)

        if suggestion.address:
            await trace.progress("Geocoding address", ProgressStatus.RUNNING)
            state.network_calls += 1
            geocode = await self.geocoder.validate(
                suggestion.address, suggestion.city, suggestion.state, suggestion.zip
            )
            checks.address_geocodable = geocode
            if geocode is None:
                await trace.progress("Address geocoding unavailable", ProgressStatus.FAILED)
            else:
                await trace.progress(
                    f"Address geocoding {'passed' if geocode.passed else 'failed'}",
                    _status(geocode.passed),
                    address=suggestion.address,
                    latitude=geocode.coords.lat if geocode.coords else None,
                    longitude=geocode.coords.lng if geocode.coords else None,
                )

        # AI
        if (
            self.content_verifier is not None
            and state.website
            and checks.url_reachable is not None
            and checks.url_reachable.passed
        ):
            await self._check_content(suggestion, state, trace, costs)

        await self._cross_reference(suggestion, state, trace)

    async def _check_website(
        self,
        suggestion: Suggestion,
        state: _PassState,
        trace: VerificationTrace,
        costs: CostTracker,
    ) -> None:
        await trace.progress("Checking website URL", ProgressStatus.RUNNING)
        state.network_calls += 1
        url_check = await self.reachability.check(state.website)

        if url_check.passed:
            await trace.progress(
                "Website URL reachable",
                ProgressStatus.COMPLETED,
                url=state.website,
                status_code=url_check.status_code,
                latency_ms=url_check.latency_ms,
            )
        elif self.autofixer is not None:
            await trace.progress("Auto-fixing broken URL with AI", ProgressStatus.RUNNING)
            fix = await self.autofixer.fix(
                suggestion.name,
                state.website,
                suggestion.city,
                suggestion.state,
                cost_tracker=costs,
            )
            if fix.candidate_url:
                state.network_calls += 1

            if fix.fixed and fix.check is not None:
                await trace.progress(
                    "URL auto-fix successful",
                    ProgressStatus.COMPLETED,
                    old_url=state.website,
                    new_url=fix.new_url,
                )
                state.add_change("website", state.website, fix.new_url)
                state.website = fix.new_url
                url_check = fix.check
            else:
                await trace.progress(
                    "URL auto-fix failed", ProgressStatus.FAILED, url=state.website
                )
        else:
            await trace.progress(
                "Website URL unreachable",
                ProgressStatus.FAILED,
                url=state.website,
                error=url_check.error,
            )

        state.checks.url_reachable = url_check

    async def _check_content(
        self,
        suggestion: Suggestion,
        state: _PassState,
        trace: VerificationTrace,
        costs: CostTracker,
    ) -> None:
        await trace.progress("Running AI content verification", ProgressStatus.RUNNING)
        state.network_calls += 1
        content = await self.content_extractor.extract(state.website)
        if not content:
            await trace.progress(
                "Website content unavailable", ProgressStatus.FAILED, url=state.website
            )
            return

        match = await self.content_verifier.verify(
            suggestion, content, cost_tracker=costs, url=state.website
        )
        state.checks.website_content_matches = match
        if match is None:
            await trace.progress("AI content verification unavailable", ProgressStatus.FAILED)
        else:
            await trace.progress(
                f"AI content verification {'passed' if match.passed else 'failed'}",
                _status(match.passed),
                confidence=f"{match.confidence * 100:.0f}%",
                evidence=match.evidence,
            )

    async def _cross_reference(
        self,
        suggestion: Suggestion,
        state: _PassState,
        trace: VerificationTrace,
    ) -> None:
        await trace.progress("Cross-referencing with external sources", ProgressStatus.RUNNING)

        matches = await self.cross_referencer.search(
            suggestion.name, suggestion.address, suggestion.city, suggestion.state
        )
        available = [m for m in matches if m.available]
        found = [m for m in available if m.found]
        state.network_calls += len(available)

        submitted = {**suggestion.field_map(), "website": state.website}
        compared = False
        for match in found:
            if match.data:
                compared = True
                state.conflicts.extend(
                    detect_conflicts(
                        submitted,
                        match.data,
                        match.source,
                        threshold=self.settings.conflict_similarity_threshold,
                    )
                )

        if available:
            state.checks.cross_referenced = CrossReferenceCheck(
                passed=len(found) >= 1,
                sources=[
                    CrossReferenceSourceRef(
                        name=m.source,
                        url=m.url,
                        match_score=(
                            m.match_score
                            if m.match_score is not None
                            else DEFAULT_SOURCE_MATCH_SCORE
                        ),
                    )
                    for m in found
                ],
            )
        if compared:
            state.checks.conflict_detection = ConflictCheck(
                passed=not state.conflicts, conflicts=state.conflicts
            )

        for conflict in state.conflicts:
            state.add_change(conflict.field, conflict.submitted_value, conflict.found_value)

        await trace.progress(
            "Cross-referencing completed",
            ProgressStatus.COMPLETED,
            sources_found=len(found),
            sources_unavailable=len(matches) - len(available),
            conflicts_found=len(state.conflicts),
            sources=[m.source for m in found],
        )

    def _build_result(
        self,
        suggestion: Suggestion,
        state: _PassState,
        costs: CostTracker,
        started_at: datetime,
        start: float,
        *,
        decision: Decision,
        reason: str,
        score: float,
        error: str | None = None,
    ) -> VerificationResult:
        return VerificationResult(
            suggestion_id=suggestion.id,
            overall_score=score,
            checks=state.checks,
            conflicts=state.conflicts,
            changes_detected=state.changes,
            decision=decision,
            decision_reason=reason,
            verified_website=state.website,
            estimated_cost_usd=costs.total_cost_usd,
            api_calls_made=state.network_calls + costs.api_calls,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            duration_ms=int((time.monotonic() - start) * 1000),
            error=error,
        )

    async def _save_log(self, suggestion, result, verification_type, logger) -> None:
        if self.log_store is None:
            return
        log = VerificationLog.from_result(
            result,
            verification_type=verification_type,
            agent_version=self.settings.agent_version,
            resource_id=suggestion.resource_id,
        )
        try:
            await self.log_store.save_verification_log(log)
        except Exception as e:
            logger.error(f"Failed to save verification log: {e}")


def build_pipeline(
    repository,
    redis=None,
    llm: LLMClient | None = None,
    settings: Settings | None = None,
) -> VerificationPipeline:
    """Build a pipeline that persists to the repository and publishes to Redis.

    Args:
        repository: VerificationRepository (log store, cost ledger, event rows)
        redis: Optional Redis client for live event publication
        llm: LLM client; defaults to the configured provider
        settings: Settings override
    """
    settings = settings or get_settings()

    sinks: list = [DatabaseEventSink(repository)]
    if redis is not None and settings.publish_events:
        sinks.append(RedisEventSink(redis, settings.event_channel_prefix))

    return VerificationPipeline(
        llm=llm if llm is not None else get_llm_client(settings),
        emitter=EventEmitter(sinks),
        ledger=repository,
        log_store=repository,
        settings=settings,
    )
