"""Verification event stream.

Each verification pass gets a `VerificationTrace` that enforces the
event order: one `started`, then any number of `progress`/`cost`
events, then exactly one terminal `completed` or `failed`. Events carry
a per-suggestion sequence number and non-decreasing timestamps, and are
fanned out to the configured sinks (database rows, Redis pub/sub).
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from ..errors import EventOrderError
from ..models import (
    AIUsageRecord,
    EventType,
    ProgressStatus,
    VerificationEvent,
    VerificationResult,
    VerificationType,
)

if TYPE_CHECKING:
    from ..repository import VerificationRepository

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    async def publish(self, event: VerificationEvent) -> None: ...


class InMemoryEventSink:
    """Collects events in a list (CLI runs and tests)."""

    def __init__(self):
        self.events: list[VerificationEvent] = []

    async def publish(self, event: VerificationEvent) -> None:
        self.events.append(event)

    def for_suggestion(self, suggestion_id: UUID) -> list[VerificationEvent]:
        return [e for e in self.events if e.suggestion_id == suggestion_id]


class DatabaseEventSink:
    """Appends events to the verification_events table."""

    def __init__(self, repository: "VerificationRepository"):
        self.repository = repository

    async def publish(self, event: VerificationEvent) -> None:
        await self.repository.save_event(event)


class RedisEventSink:
    """Publishes events to a per-suggestion Redis channel for live viewers."""

    def __init__(self, redis: Any, channel_prefix: str):
        self.redis = redis
        self.channel_prefix = channel_prefix

    def channel(self, suggestion_id: UUID) -> str:
        return f"{self.channel_prefix}:{suggestion_id}"

    async def publish(self, event: VerificationEvent) -> None:
        await self.redis.publish(self.channel(event.suggestion_id), event.model_dump_json())


class VerificationTrace:
    """Ordered event trace for one verification pass of one suggestion."""

    def __init__(self, suggestion_id: UUID, sinks: list[EventSink]):
        self.suggestion_id = suggestion_id
        self.sinks = sinks
        self.events: list[VerificationEvent] = []
        self._last_timestamp: datetime | None = None

    @property
    def started(self) -> bool:
        return bool(self.events)

    @property
    def closed(self) -> bool:
        return bool(self.events) and self.events[-1].event_type.is_terminal

    async def emit(
        self, event_type: EventType, data: dict[str, Any] | None = None
    ) -> VerificationEvent:
        """Append an event and publish it to every sink.

        Raises:
            EventOrderError: if the event would break the trace order
        """
        if self.closed:
            raise EventOrderError(
                f"Trace for {self.suggestion_id} is closed; cannot emit {event_type.value}"
            )
        if event_type == EventType.STARTED and self.started:
            raise EventOrderError(f"Trace for {self.suggestion_id} already started")
        if event_type != EventType.STARTED and not self.started:
            raise EventOrderError(
                f"Trace for {self.suggestion_id} not started; cannot emit {event_type.value}"
            )

        timestamp = datetime.now(timezone.utc)
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp

        event = VerificationEvent(
            suggestion_id=self.suggestion_id,
            event_type=event_type,
            event_data=data or {},
            timestamp=timestamp,
            sequence=len(self.events),
        )
        self.events.append(event)

        for sink in self.sinks:
            try:
                await sink.publish(event)
            except Exception as e:
                logger.error(
                    f"Failed to publish {event_type.value} event to {type(sink).__name__}: {e}"
                )

        return event

    async def start(
        self,
        name: str,
        verification_type: VerificationType,
        city: str | None = None,
        state: str | None = None,
    ) -> VerificationEvent:
        return await self.emit(
            EventType.STARTED,
            {
                "name": name,
                "city": city,
                "state": state,
                "verification_type": verification_type.value,
            },
        )

    async def progress(
        self, step: str, status: ProgressStatus, **details: Any
    ) -> VerificationEvent:
        return await self.emit(
            EventType.PROGRESS, {"step": step, "status": status.value, **details}
        )

    async def cost(self, record: AIUsageRecord) -> VerificationEvent:
        return await self.emit(
            EventType.COST,
            {
                "operation": record.operation_type.value,
                "model": record.model,
                "total_cost_usd": record.total_cost_usd,
                "tokens": record.input_tokens + record.output_tokens,
            },
        )

    async def complete(self, result: VerificationResult) -> VerificationEvent:
        return await self.emit(
            EventType.COMPLETED,
            {
                "decision": result.decision.value,
                "score": result.overall_score,
                "reason": result.decision_reason,
                "duration_ms": result.duration_ms,
                "total_cost_usd": result.estimated_cost_usd,
                "conflicts_found": len(result.conflicts),
                "sources_verified": (
                    len(result.checks.cross_referenced.sources)
                    if result.checks.cross_referenced
                    else 0
                ),
            },
        )

    async def fail(self, error: str, **details: Any) -> VerificationEvent:
        return await self.emit(EventType.FAILED, {"error": error, **details})


class EventEmitter:
    """Creates per-pass traces that share a set of sinks."""

    def __init__(self, sinks: list[EventSink] | None = None):
        self.sinks = sinks or []

    def trace(self, suggestion_id: UUID) -> VerificationTrace:
        return VerificationTrace(suggestion_id, self.sinks)
