"""Exception hierarchy for RMVS.

Check modules convert transient network failures into failed check
results; the exceptions below cover the cases that callers must
distinguish (provider unavailable, broken event ordering, bad intake).
"""

from typing import Any


class RMVSError(Exception):
    """Base class for all RMVS errors."""


class ProviderError(RMVSError):
    """An external provider returned an error or an unexpected shape."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class LLMError(ProviderError):
    """LLM call failed or returned an unusable response."""


class GeocodingError(ProviderError):
    """Geocoding provider rejected the request."""


class CrossReferenceError(ProviderError):
    """Cross-reference directory lookup failed."""


class EventOrderError(RMVSError):
    """An event was emitted out of order for a verification trace."""


class IntakeValidationError(RMVSError):
    """A submission batch failed schema validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]]):
        self.errors = errors
        super().__init__(message)
