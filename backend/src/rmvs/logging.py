"""Structured logging configuration for RMVS.

Provides JSON-formatted logs for production and human-readable
logs for development.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from .config import get_settings

# Attributes present on every LogRecord; anything else came in through `extra`
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.funcName:
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable log formatter for development.

    Records logged with a `suggestion_id` (see `get_context_logger`) are
    suffixed with it so interleaved batch passes stay readable.
    """

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        suggestion_id = getattr(record, "suggestion_id", None)
        if suggestion_id:
            line = f"{line} [suggestion={suggestion_id}]"
        return line


def setup_logging(stream: TextIO | None = None) -> None:
    """Configure logging based on settings.

    Args:
        stream: Output stream for log records (defaults to stdout)
    """
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stdout)
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # Suppress noisy loggers
    for noisy in ("httpx", "httpcore", "asyncio", "playwright", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = get_logger(__name__)
    logger.info(
        "Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": settings.log_level,
            "log_format": settings.log_format,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to all log messages."""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """Process the logging message and add extra context."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    """Get a logger with additional context.

    Usage:
        logger = get_context_logger(__name__, suggestion_id="abc123")
        logger.info("Geocoding address")  # Includes suggestion_id
    """
    return LoggerAdapter(get_logger(name), context)


# =========================
# Convenience functions
# =========================


def log_verification_start(suggestion_id: str, name: str, verification_type: str) -> None:
    """Log the start of a verification pass."""
    logger = get_logger("rmvs.verification")
    logger.info(
        f"Starting {verification_type} verification for '{name}'",
        extra={
            "suggestion_id": suggestion_id,
            "verification_type": verification_type,
            "event": "verification_start",
        },
    )


def log_verification_complete(
    suggestion_id: str, score: float, duration_ms: int, cost_usd: float
) -> None:
    """Log the completion of a verification pass."""
    logger = get_logger("rmvs.verification")
    logger.info(
        f"Completed verification for {suggestion_id}",
        extra={
            "suggestion_id": suggestion_id,
            "score": score,
            "duration_ms": duration_ms,
            "cost_usd": cost_usd,
            "event": "verification_complete",
        },
    )


def log_decision(suggestion_id: str, decision: str, score: float, reason: str) -> None:
    """Log a verification decision."""
    logger = get_logger("rmvs.verification")
    logger.info(
        f"Decision {decision} ({score:.2f}): {reason}",
        extra={
            "suggestion_id": suggestion_id,
            "decision": decision,
            "score": score,
            "event": "verification_decision",
        },
    )


def log_ai_cost(
    operation_type: str, model: str, input_tokens: int, output_tokens: int, cost_usd: float
) -> None:
    """Log the cost of one LLM invocation."""
    logger = get_logger("rmvs.costs")
    logger.info(
        f"{operation_type}: {input_tokens} in + {output_tokens} out = ${cost_usd:.4f}",
        extra={
            "operation_type": operation_type,
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "cost_usd": cost_usd,
            "event": "ai_cost",
        },
    )
