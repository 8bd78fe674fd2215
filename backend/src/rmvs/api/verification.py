"""Verification history endpoints: event traces, logs and human review."""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..models import Decision, VerificationEvent, VerificationLog
from ..repository import VerificationRepository
from . import NotFoundError
from .submissions import get_repository

router = APIRouter(prefix="/verification", tags=["verification"])


class HumanReviewRequest(BaseModel):
    """Human override of an automated decision."""

    reviewer_id: UUID | None = None
    decision: Decision
    notes: str | None = None


@router.get("/{suggestion_id}/events", response_model=list[VerificationEvent])
async def list_events(
    suggestion_id: UUID,
    repository: VerificationRepository = Depends(get_repository),
):
    """Replay the event trace of every pass for a suggestion or resource."""
    return await repository.get_events(suggestion_id)


@router.get("/{suggestion_id}/logs", response_model=list[VerificationLog])
async def list_logs(
    suggestion_id: UUID,
    repository: VerificationRepository = Depends(get_repository),
):
    return await repository.get_verification_logs(suggestion_id)


@router.post("/logs/{log_id}/review", response_model=VerificationLog)
async def review_log(
    log_id: UUID,
    request: HumanReviewRequest,
    repository: VerificationRepository = Depends(get_repository),
):
    """Record a human decision against a verification log."""
    log = await repository.record_human_review(
        log_id, request.reviewer_id, request.decision, request.notes
    )
    if log is None:
        raise NotFoundError("Verification log", log_id)
    return log
