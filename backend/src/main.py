"""FastAPI application entry point for RMVS.

Serves batch intake for discovery agents and read access to verification
logs and event traces for the admin review queue.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rmvs import __version__
from rmvs.api import register_exception_handlers
from rmvs.api.submissions import router as submissions_router
from rmvs.api.verification import router as verification_router
from rmvs.config import get_settings
from rmvs.db import close_all_connections, ping_postgres, ping_redis
from rmvs.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting RMVS API",
        extra={
            "environment": settings.environment,
            "verification_enabled": settings.verification_enabled,
            "llm_provider": settings.llm_provider,
            "publish_events": settings.publish_events,
        },
    )
    if not settings.verification_enabled:
        logger.warning("Verification disabled: every submission goes to manual review")

    yield

    logger.info("Shutting down RMVS API")
    await close_all_connections()


app = FastAPI(
    title="RMVS API",
    description="Resource Map Verification System",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(submissions_router, prefix="/api/v1", tags=["Submissions"])
app.include_router(verification_router, prefix="/api/v1", tags=["Verification"])


# =========================
# Health
# =========================


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "service": "rmvs-api"}


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """Report whether the stores a verification pass writes to are reachable.

    Redis only gates readiness when live events are published.
    """
    probes = {"postgres": ping_postgres}
    if settings.publish_events:
        probes["redis"] = ping_redis

    checks = {}
    for name, probe in probes.items():
        try:
            await probe()
            checks[name] = "healthy"
        except Exception as e:
            logger.warning(f"Readiness probe {name} failed: {e}")
            checks[name] = f"unhealthy: {e}"

    ready = all(v == "healthy" for v in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "checks": checks,
            "verification_enabled": settings.verification_enabled,
        },
    )


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": "RMVS API",
        "version": __version__,
        "docs": "/docs" if settings.is_development else None,
    }
