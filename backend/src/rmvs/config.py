"""Configuration management for RMVS.

Uses pydantic-settings to load configuration from environment variables.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> Path | None:
    """Search for .env file in common locations."""
    cwd = Path.cwd()
    check_dir = cwd
    for _ in range(5):
        if (check_dir / ".env").exists():
            return check_dir / ".env"
        parent = check_dir.parent
        if parent == check_dir:
            break
        check_dir = parent

    # backend/src/rmvs/config.py -> project root
    project_root = Path(__file__).resolve().parent.parent.parent.parent
    if (project_root / ".env").exists():
        return project_root / ".env"

    return None


_env_file = _find_env_file()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_env_file) if _env_file else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================
    # Environment
    # =========================
    environment: Literal["development", "staging", "production"] = "development"

    # =========================
    # API Settings
    # =========================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    cors_origins: str = "http://localhost:3000"

    # =========================
    # PostgreSQL
    # =========================
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "reentry_map"
    postgres_user: str = "reentrymap"
    postgres_password: str = Field(default="", repr=False)
    db_pool_size: int = 5
    db_max_overflow: int = 10

    @computed_field
    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL for PostgreSQL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Synchronous database URL for Alembic."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # =========================
    # Redis (live event stream)
    # =========================
    redis_url: str = "redis://localhost:6379/0"
    event_channel_prefix: str = "rmvs:verification_events"
    publish_events: bool = True

    # =========================
    # LLM Providers
    # =========================
    llm_provider: Literal["anthropic", "openai"] = "anthropic"
    anthropic_api_key: str = Field(default="", repr=False)
    openai_api_key: str = Field(default="", repr=False)
    # Web-search capable model used by the URL auto-fixer
    anthropic_verification_model: str = "claude-sonnet-4-5-20250929"
    # Cheap model used for website content matching
    anthropic_enrichment_model: str = "claude-haiku-4-5-20251001"
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 15.0

    # =========================
    # External Data Sources
    # =========================
    google_maps_api_key: str = Field(default="", repr=False)
    directory_211_api_url: str = ""
    directory_211_api_key: str = Field(default="", repr=False)

    # =========================
    # Verification
    # =========================
    verification_enabled: bool = True
    agent_version: str = "verification-agent-v1.0.0"
    auto_approve_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    auto_reject_threshold: float = Field(default=0.50, ge=0.0, le=1.0)
    conflict_similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    high_confidence_conflict: float = Field(default=0.7, ge=0.0, le=1.0)
    min_cross_references: int = Field(default=1, ge=0)
    reachability_timeout_ms: int = 15000
    content_fetch_timeout_seconds: float = 10.0
    geocode_timeout_seconds: float = 10.0
    cross_reference_timeout_seconds: float = 10.0
    content_max_chars: int = 5000
    batch_max_size: int = 100

    # =========================
    # Logging
    # =========================
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        if self.auto_reject_threshold >= self.auto_approve_threshold:
            raise ValueError(
                "auto_reject_threshold must be lower than auto_approve_threshold"
            )
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
