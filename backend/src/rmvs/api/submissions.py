"""Batch submission endpoint.

Accepts up to 100 resource suggestions from a discovery agent and
verifies each one before responding.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..config import get_settings
from ..db import get_event_redis
from ..intake import BatchProcessor, BatchResult, parse_batch
from ..logging import get_logger
from ..repository import VerificationRepository
from ..verification import build_pipeline

logger = get_logger(__name__)

router = APIRouter(prefix="/resources", tags=["submissions"])


def get_repository() -> VerificationRepository:
    """Get the verification repository."""
    return VerificationRepository()


async def get_batch_processor(
    repository: VerificationRepository = Depends(get_repository),
) -> BatchProcessor:
    """Build a batch processor with a fully wired verification pipeline."""
    settings = get_settings()
    if not settings.verification_enabled:
        return BatchProcessor(repository, None, verification_enabled=False)

    pipeline = build_pipeline(
        repository, redis=await get_event_redis(settings), settings=settings
    )
    return BatchProcessor(repository, pipeline, verification_enabled=True)


# =========================
# Endpoints
# =========================


@router.post("/suggest-batch", response_model=BatchResult)
async def suggest_batch(
    payload: dict[str, Any] = Body(...),
    processor: BatchProcessor = Depends(get_batch_processor),
) -> BatchResult:
    """Submit a batch of resource suggestions.

    The whole batch is rejected with 422 when any entry violates the
    schema. Otherwise every entry is deduplicated, stored and verified,
    and the response carries one outcome per entry.
    """
    batch = parse_batch(payload)
    logger.info(f"Received batch of {len(batch.resources)} suggestions from {batch.submitter}")
    return await processor.process(batch)
