"""Individual verification checks.

Format, network and AI-backed checks. Each check converts transient
failures into a failed result and reports provider outages as None.
"""

from .autofix import AutoFixResult, UrlAutoFixer
from .conflicts import detect_conflicts
from .content import ContentExtractor, ContentVerifier
from .cross_reference import (
    CrossReferenceMatch,
    CrossReferencer,
    Directory211Source,
    GooglePlacesSource,
)
from .geocoding import Geocoder, enrich_address
from .phone import validate_phone_number
from .reachability import ReachabilityChecker, browser_page

__all__ = [
    "AutoFixResult",
    "ContentExtractor",
    "ContentVerifier",
    "CrossReferenceMatch",
    "CrossReferencer",
    "Directory211Source",
    "Geocoder",
    "GooglePlacesSource",
    "ReachabilityChecker",
    "UrlAutoFixer",
    "browser_page",
    "detect_conflicts",
    "enrich_address",
    "validate_phone_number",
]
