"""PostgreSQL access for suggestions, resources and verification records.

Uses raw SQL through SQLAlchemy `text()`; the schema lives in the Alembic
revision `001_verification_tables`.
"""

import json
import logging
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db_session
from .models import (
    AIUsageRecord,
    Decision,
    EventType,
    Suggestion,
    SuggestionStatus,
    VerificationEvent,
    VerificationLog,
    VerificationResult,
    VerificationType,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

_SUGGESTION_COLUMNS = (
    "id", "name", "description", "primary_category", "categories", "tags",
    "address", "city", "state", "zip", "latitude", "longitude",
    "phone", "website", "email", "hours", "services_offered",
    "eligibility_requirements", "required_documents", "fees", "languages",
    "accessibility_features", "discovered_via", "discovery_notes",
    "submitted_by", "reason", "status", "admin_notes", "created_at",
)

_RESOURCE_COPY_COLUMNS = (
    "name", "description", "primary_category", "categories", "tags",
    "address", "city", "state", "zip", "latitude", "longitude",
    "phone", "website", "email", "hours", "services_offered",
    "eligibility_requirements", "required_documents", "fees", "languages",
    "accessibility_features",
)


def _as_uuid(value: Any) -> UUID | None:
    if value is None:
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def _json_value(value: Any) -> Any:
    # asyncpg returns jsonb as text unless a codec is registered
    if isinstance(value, str):
        return json.loads(value)
    return value


class VerificationRepository:
    """Reads and writes the records the verification pipeline uses."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self._get_session = session_factory or get_db_session

    # =========================
    # Suggestions
    # =========================

    async def find_duplicate(self, name: str, address: str | None) -> str | None:
        """Return "resource" or "suggestion" if an equivalent record exists."""
        params = {"name": name.strip(), "address": (address or "").strip()}
        async with self._get_session() as session:
            result = await session.execute(
                text("""
                SELECT 1 FROM resources
                WHERE lower(name) = lower(:name)
                  AND lower(coalesce(address, '')) = lower(:address)
                LIMIT 1
                """),
                params,
            )
            if result.first() is not None:
                return "resource"

            result = await session.execute(
                text("""
                SELECT 1 FROM resource_suggestions
                WHERE lower(name) = lower(:name)
                  AND lower(coalesce(address, '')) = lower(:address)
                  AND status = 'pending'
                LIMIT 1
                """),
                params,
            )
            if result.first() is not None:
                return "suggestion"

        return None

    async def create_suggestion(self, suggestion: Suggestion) -> Suggestion:
        columns = ", ".join(_SUGGESTION_COLUMNS)
        placeholders = ", ".join(
            "CAST(:hours AS jsonb)" if c == "hours" else f":{c}" for c in _SUGGESTION_COLUMNS
        )
        params = suggestion.model_dump(include=set(_SUGGESTION_COLUMNS))
        params["status"] = suggestion.status.value
        params["hours"] = json.dumps(suggestion.hours) if suggestion.hours is not None else None

        async with self._get_session() as session:
            await session.execute(
                text(f"INSERT INTO resource_suggestions ({columns}) VALUES ({placeholders})"),
                params,
            )

        logger.info(f"Stored suggestion {suggestion.id} ({suggestion.name})")
        return suggestion

    async def get_suggestion(self, suggestion_id: UUID) -> Suggestion | None:
        async with self._get_session() as session:
            result = await session.execute(
                text("SELECT * FROM resource_suggestions WHERE id = :id"),
                {"id": suggestion_id},
            )
            row = result.mappings().first()
        return self._row_to_suggestion(row) if row else None

    async def update_suggestion_status(
        self, suggestion_id: UUID, status: SuggestionStatus, admin_notes: str | None
    ) -> None:
        async with self._get_session() as session:
            await session.execute(
                text("""
                UPDATE resource_suggestions
                SET status = :status, admin_notes = :admin_notes, reviewed_at = :reviewed_at
                WHERE id = :id
                """),
                {
                    "id": suggestion_id,
                    "status": status.value,
                    "admin_notes": admin_notes,
                    "reviewed_at": datetime.now(timezone.utc),
                },
            )

    def _row_to_suggestion(self, row: Any) -> Suggestion:
        data = {k: row[k] for k in _SUGGESTION_COLUMNS if k in row}
        data["hours"] = _json_value(data.get("hours"))
        for coord in ("latitude", "longitude"):
            if data.get(coord) is not None:
                data[coord] = float(data[coord])
        return Suggestion(**data)

    # =========================
    # Resources
    # =========================

    async def create_resource_from_suggestion(
        self,
        suggestion: Suggestion,
        result: VerificationResult,
        next_verification_at: datetime,
    ) -> UUID:
        """Promote an auto-approved suggestion into the published directory."""
        resource_id = uuid4()
        now = datetime.now(timezone.utc)

        params: dict[str, Any] = suggestion.model_dump(include=set(_RESOURCE_COPY_COLUMNS))
        params["hours"] = json.dumps(suggestion.hours) if suggestion.hours is not None else None
        if result.verified_website:
            params["website"] = result.verified_website
        geocode = result.checks.address_geocodable
        if geocode is not None and geocode.coords is not None and suggestion.latitude is None:
            params["latitude"] = geocode.coords.lat
            params["longitude"] = geocode.coords.lng

        params.update({
            "id": resource_id,
            "status": "active",
            "verification_status": "verified",
            "verification_confidence": result.overall_score,
            "human_review_required": False,
            "last_verified_at": now,
            "next_verification_at": next_verification_at,
            "provenance": json.dumps({
                "discovered_via": suggestion.discovered_via,
                "discovery_notes": suggestion.discovery_notes,
                "submitted_by": suggestion.submitted_by,
                "suggestion_id": str(suggestion.id),
                "verified_at": now.isoformat(),
            }),
        })

        columns = list(_RESOURCE_COPY_COLUMNS) + [
            "id", "status", "verification_status", "verification_confidence",
            "human_review_required", "last_verified_at", "next_verification_at", "provenance",
        ]
        placeholders = ", ".join(
            f"CAST(:{c} AS jsonb)" if c in ("hours", "provenance") else f":{c}" for c in columns
        )

        async with self._get_session() as session:
            await session.execute(
                text(f"INSERT INTO resources ({', '.join(columns)}) VALUES ({placeholders})"),
                params,
            )
            await session.execute(
                text("""
                UPDATE resource_suggestions
                SET status = 'approved', reviewed_at = :now, admin_notes = :notes
                WHERE id = :id
                """),
                {
                    "id": suggestion.id,
                    "now": now,
                    "notes": f"Auto-approved: {result.decision_reason}",
                },
            )

        logger.info(f"Published resource {resource_id} from suggestion {suggestion.id}")
        return resource_id

    async def get_resources_due_for_verification(self, limit: int) -> list[Suggestion]:
        """Active resources whose next verification is unset or past, oldest first."""
        async with self._get_session() as session:
            result = await session.execute(
                text("""
                SELECT * FROM resources
                WHERE (next_verification_at IS NULL OR next_verification_at <= NOW())
                  AND status = 'active'
                ORDER BY next_verification_at ASC NULLS FIRST
                LIMIT :limit
                """),
                {"limit": limit},
            )
            rows = result.mappings().all()

        resources = []
        for row in rows:
            data = {k: row[k] for k in _RESOURCE_COPY_COLUMNS if k in row}
            data["hours"] = _json_value(data.get("hours"))
            for coord in ("latitude", "longitude"):
                if data.get(coord) is not None:
                    data[coord] = float(data[coord])
            resource_id = _as_uuid(row["id"])
            resources.append(Suggestion(id=resource_id, resource_id=resource_id, **data))
        return resources

    async def update_resource_verification(
        self,
        resource_id: UUID,
        *,
        verification_status: str,
        verification_confidence: float,
        human_review_required: bool,
        last_verified_at: datetime,
        next_verification_at: datetime,
        website: str | None = None,
    ) -> None:
        """Record a periodic pass on a resource.

        `website` is written only when given (an auto-fixed URL).
        """
        async with self._get_session() as session:
            await session.execute(
                text("""
                UPDATE resources SET
                    verification_status = :verification_status,
                    verification_confidence = :verification_confidence,
                    human_review_required = :human_review_required,
                    last_verified_at = :last_verified_at,
                    next_verification_at = :next_verification_at,
                    website = COALESCE(:website, website),
                    updated_at = NOW()
                WHERE id = :id
                """),
                {
                    "id": resource_id,
                    "verification_status": verification_status,
                    "verification_confidence": round(verification_confidence, 2),
                    "human_review_required": human_review_required,
                    "last_verified_at": last_verified_at,
                    "next_verification_at": next_verification_at,
                    "website": website,
                },
            )

    # =========================
    # Verification logs
    # =========================

    async def save_verification_log(self, log: VerificationLog) -> None:
        async with self._get_session() as session:
            await session.execute(
                text("""
                INSERT INTO verification_logs (
                    id, suggestion_id, resource_id, verification_type, agent_version,
                    overall_score, checks_performed, conflicts_found, changes_detected,
                    decision, decision_reason, auto_approved, started_at, completed_at,
                    duration_ms, api_calls_made, estimated_cost_usd, created_at
                ) VALUES (
                    :id, :suggestion_id, :resource_id, :verification_type, :agent_version,
                    :overall_score, CAST(:checks_performed AS jsonb),
                    CAST(:conflicts_found AS jsonb), CAST(:changes_detected AS jsonb),
                    :decision, :decision_reason, :auto_approved, :started_at, :completed_at,
                    :duration_ms, :api_calls_made, :estimated_cost_usd, :created_at
                )
                """),
                {
                    "id": log.id,
                    "suggestion_id": log.suggestion_id,
                    "resource_id": log.resource_id,
                    "verification_type": log.verification_type.value,
                    "agent_version": log.agent_version,
                    "overall_score": round(log.overall_score, 2),
                    "checks_performed": json.dumps(log.checks_performed),
                    "conflicts_found": json.dumps(log.conflicts_found),
                    "changes_detected": json.dumps(log.changes_detected),
                    "decision": log.decision.value,
                    "decision_reason": log.decision_reason,
                    "auto_approved": log.auto_approved,
                    "started_at": log.started_at,
                    "completed_at": log.completed_at,
                    "duration_ms": log.duration_ms,
                    "api_calls_made": log.api_calls_made,
                    "estimated_cost_usd": round(log.estimated_cost_usd, 4),
                    "created_at": log.created_at,
                },
            )

    async def get_verification_logs(self, suggestion_id: UUID) -> list[VerificationLog]:
        async with self._get_session() as session:
            result = await session.execute(
                text("""
                SELECT * FROM verification_logs
                WHERE suggestion_id = :id OR resource_id = :id
                ORDER BY created_at DESC
                """),
                {"id": suggestion_id},
            )
            rows = result.mappings().all()
        return [self._row_to_log(row) for row in rows]

    async def get_verification_log(self, log_id: UUID) -> VerificationLog | None:
        async with self._get_session() as session:
            result = await session.execute(
                text("SELECT * FROM verification_logs WHERE id = :id"),
                {"id": log_id},
            )
            row = result.mappings().first()
        return self._row_to_log(row) if row else None

    async def record_human_review(
        self,
        log_id: UUID,
        reviewer_id: UUID | None,
        decision: Decision,
        notes: str | None,
    ) -> VerificationLog | None:
        """Annotate a log with a human override; the only permitted update."""
        log = await self.get_verification_log(log_id)
        if log is None:
            return None

        reviewed = log.with_human_review(reviewer_id, decision, notes)
        async with self._get_session() as session:
            await session.execute(
                text("""
                UPDATE verification_logs SET
                    human_reviewed = TRUE,
                    human_reviewer_id = :reviewer_id,
                    human_decision = :decision,
                    human_notes = :notes,
                    updated_at = NOW()
                WHERE id = :id
                """),
                {
                    "id": log_id,
                    "reviewer_id": reviewer_id,
                    "decision": decision.value,
                    "notes": notes,
                },
            )
        return reviewed

    def _row_to_log(self, row: Any) -> VerificationLog:
        return VerificationLog(
            id=_as_uuid(row["id"]),
            suggestion_id=_as_uuid(row["suggestion_id"]),
            resource_id=_as_uuid(row["resource_id"]),
            verification_type=VerificationType(row["verification_type"]),
            agent_version=row["agent_version"],
            overall_score=float(row["overall_score"] or 0),
            checks_performed=_json_value(row["checks_performed"]) or {},
            conflicts_found=_json_value(row["conflicts_found"]) or [],
            changes_detected=_json_value(row["changes_detected"]) or [],
            decision=Decision(row["decision"]),
            decision_reason=row["decision_reason"] or "",
            auto_approved=bool(row["auto_approved"]),
            human_reviewed=bool(row["human_reviewed"]),
            human_reviewer_id=_as_uuid(row["human_reviewer_id"]),
            human_decision=Decision(row["human_decision"]) if row["human_decision"] else None,
            human_notes=row["human_notes"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            duration_ms=row["duration_ms"] or 0,
            api_calls_made=row["api_calls_made"] or 0,
            estimated_cost_usd=float(row["estimated_cost_usd"] or 0),
            created_at=row["created_at"],
        )

    # =========================
    # Events
    # =========================

    async def save_event(self, event: VerificationEvent) -> None:
        async with self._get_session() as session:
            await session.execute(
                text("""
                INSERT INTO verification_events (
                    id, suggestion_id, event_type, event_data, sequence, created_at
                ) VALUES (
                    :id, :suggestion_id, :event_type, CAST(:event_data AS jsonb),
                    :sequence, :created_at
                )
                """),
                {
                    "id": event.id,
                    "suggestion_id": event.suggestion_id,
                    "event_type": event.event_type.value,
                    "event_data": json.dumps(event.event_data, default=str),
                    "sequence": event.sequence,
                    "created_at": event.timestamp,
                },
            )

    async def get_events(self, suggestion_id: UUID) -> list[VerificationEvent]:
        async with self._get_session() as session:
            result = await session.execute(
                text("""
                SELECT * FROM verification_events
                WHERE suggestion_id = :id
                ORDER BY created_at ASC, sequence ASC
                """),
                {"id": suggestion_id},
            )
            rows = result.mappings().all()

        return [
            VerificationEvent(
                id=_as_uuid(row["id"]),
                suggestion_id=_as_uuid(row["suggestion_id"]),
                event_type=EventType(row["event_type"]),
                event_data=_json_value(row["event_data"]) or {},
                timestamp=row["created_at"],
                sequence=row["sequence"],
            )
            for row in rows
        ]

    # =========================
    # AI usage
    # =========================

    async def save_ai_usage(self, record: AIUsageRecord) -> None:
        async with self._get_session() as session:
            await session.execute(
                text("""
                INSERT INTO ai_usage_logs (
                    id, operation_type, provider, model, input_tokens, output_tokens,
                    input_cost_usd, output_cost_usd, duration_ms, suggestion_id,
                    resource_id, operation_context, created_at
                ) VALUES (
                    :id, :operation_type, :provider, :model, :input_tokens, :output_tokens,
                    :input_cost_usd, :output_cost_usd, :duration_ms, :suggestion_id,
                    :resource_id, CAST(:operation_context AS jsonb), :created_at
                )
                """),
                {
                    "id": record.id,
                    "operation_type": record.operation_type.value,
                    "provider": record.provider,
                    "model": record.model,
                    "input_tokens": record.input_tokens,
                    "output_tokens": record.output_tokens,
                    "input_cost_usd": record.input_cost_usd,
                    "output_cost_usd": record.output_cost_usd,
                    "duration_ms": record.duration_ms,
                    "suggestion_id": record.suggestion_id,
                    "resource_id": record.resource_id,
                    "operation_context": json.dumps(record.operation_context, default=str),
                    "created_at": record.created_at,
                },
            )
