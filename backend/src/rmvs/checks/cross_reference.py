"""Cross-referencing suggestions against external directories.

Each source returns candidate records in a canonical field layout
(name, address, phone, website, email); the best candidate is picked
with RapidFuzz name scoring, boosted when the addresses agree.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from rapidfuzz import fuzz, process

from ..config import get_settings
from ..errors import CrossReferenceError

logger = logging.getLogger(__name__)


@dataclass
class CrossReferenceMatch:
    """Outcome of querying one external source."""

    source: str
    available: bool = True
    found: bool = False
    match_score: float | None = None
    url: str | None = None
    data: dict[str, Any] | None = None


class OrganizationMatcher:
    """Scores candidate records against a submitted organization.

    Confidence:
    - Weighted name ratio: 0.0-0.9
    - Address token overlap >= 80: +0.1
    """

    ORG_SUFFIXES = [
        r"\bInc\.?$",
        r"\bIncorporated$",
        r"\bLLC$",
        r"\bCorp\.?$",
        r"\bCorporation$",
        r"\bCo\.?$",
    ]

    def __init__(self, min_score: int = 80):
        """Initialize the matcher.

        Args:
            min_score: Minimum name score (0-100) for a candidate to count
        """
        self.min_score = min_score

    def normalize_name(self, name: str) -> str:
        if not name:
            return ""
        normalized = name.upper().strip()
        for suffix in self.ORG_SUFFIXES:
            normalized = re.sub(suffix, "", normalized, flags=re.IGNORECASE).strip()
        normalized = re.sub(r"[^A-Z0-9\s]", "", normalized)
        return re.sub(r"\s+", " ", normalized).strip()

    def best_match(
        self,
        name: str,
        address: str | None,
        candidates: list[dict[str, Any]],
    ) -> tuple[dict[str, Any], float] | None:
        """Pick the best candidate, or None if nothing clears min_score."""
        source_name = self.normalize_name(name)
        if not source_name:
            return None

        indexed = [
            (self.normalize_name(c.get("name") or ""), c) for c in candidates
        ]
        indexed = [(n, c) for n, c in indexed if n]
        if not indexed:
            return None

        matches = process.extract(
            source_name,
            [n for n, _ in indexed],
            scorer=fuzz.WRatio,
            limit=5,
            score_cutoff=self.min_score,
        )

        best: tuple[dict[str, Any], float] | None = None
        for _, score, idx in matches:
            candidate = indexed[idx][1]
            confidence = (score / 100) * 0.9

            candidate_address = candidate.get("address")
            if address and candidate_address:
                if fuzz.token_set_ratio(address.lower(), str(candidate_address).lower()) >= 80:
                    confidence += 0.1

            confidence = min(confidence, 1.0)
            if best is None or confidence > best[1]:
                best = (candidate, confidence)

        return best


class CrossReferenceSource(ABC):
    """An external directory that can be searched by organization name."""

    label: str

    def __init__(self, timeout: float, client: httpx.AsyncClient | None = None):
        self.timeout = timeout
        self._client = client

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def search(
        self,
        name: str,
        address: str | None = None,
        city: str | None = None,
        state: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return candidate records in canonical field layout.

        Raises:
            httpx.HTTPError: transport failure or error status
            CrossReferenceError: unexpected response shape
        """
        ...

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        if self._client is not None:
            response = await self._client.request(method, url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)

        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise CrossReferenceError(self.label, f"invalid JSON: {e}") from e


class Directory211Source(CrossReferenceSource):
    """Regional 211 social-services directory (keyword search API)."""

    label = "211 Database"

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        super().__init__(timeout or settings.cross_reference_timeout_seconds, client)
        self.api_url = (api_url if api_url is not None else settings.directory_211_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.directory_211_api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url)

    async def search(self, name, address=None, city=None, state=None):
        location = ", ".join(p for p in (address, city, state) if p)
        params = {"keywords": name}
        if location:
            params["location"] = location
        headers = {"Api-Key": self.api_key} if self.api_key else {}

        data = await self._send(
            "GET", f"{self.api_url}/search/keyword", params=params, headers=headers
        )

        if isinstance(data, dict):
            records = data.get("results") or data.get("value") or []
        elif isinstance(data, list):
            records = data
        else:
            raise CrossReferenceError(self.label, "unexpected response shape")

        return [self._to_canonical(r) for r in records if isinstance(r, dict)]

    def _to_canonical(self, record: dict[str, Any]) -> dict[str, Any]:
        address = record.get("address")
        if isinstance(address, dict):
            address = ", ".join(
                str(address[k])
                for k in ("street", "address1", "city", "state", "postalCode")
                if address.get(k)
            )

        phone = record.get("phone")
        phones = record.get("phones")
        if not phone and isinstance(phones, list) and phones:
            first = phones[0]
            phone = first.get("number") if isinstance(first, dict) else first

        return {
            "name": record.get("name") or record.get("organizationName"),
            "address": address,
            "phone": phone,
            "website": record.get("website") or record.get("url"),
            "email": record.get("email"),
            "url": record.get("detailUrl") or record.get("link"),
        }


class GooglePlacesSource(CrossReferenceSource):
    """Google Places Text Search (Places API v1)."""

    label = "Google Maps"

    SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
    FIELD_MASK = ",".join([
        "places.id",
        "places.displayName",
        "places.formattedAddress",
        "places.nationalPhoneNumber",
        "places.websiteUri",
        "places.googleMapsUri",
    ])

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        super().__init__(timeout or settings.cross_reference_timeout_seconds, client)
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, name, address=None, city=None, state=None):
        query = " ".join(p for p in (name, address, city, state) if p)
        data = await self._send(
            "POST",
            self.SEARCH_URL,
            json={"textQuery": query, "maxResultCount": 5},
            headers={"X-Goog-Api-Key": self.api_key, "X-Goog-FieldMask": self.FIELD_MASK},
        )

        if not isinstance(data, dict):
            raise CrossReferenceError(self.label, "unexpected response shape")

        places = []
        for place in data.get("places") or []:
            display_name = place.get("displayName") or {}
            places.append({
                "name": display_name.get("text") if isinstance(display_name, dict) else display_name,
                "address": place.get("formattedAddress"),
                "phone": place.get("nationalPhoneNumber"),
                "website": place.get("websiteUri"),
                "email": None,
                "url": place.get("googleMapsUri")
                or (f"https://maps.google.com/?cid={place['id']}" if place.get("id") else None),
            })
        return places


class CrossReferencer:
    """Queries each configured source for a matching organization."""

    def __init__(
        self,
        sources: list[CrossReferenceSource] | None = None,
        matcher: OrganizationMatcher | None = None,
    ):
        self.sources = sources if sources is not None else [
            Directory211Source(),
            GooglePlacesSource(),
        ]
        self.matcher = matcher or OrganizationMatcher()

    async def search(
        self,
        name: str,
        address: str | None = None,
        city: str | None = None,
        state: str | None = None,
    ) -> list[CrossReferenceMatch]:
        """Search every source.

        Returns:
            One CrossReferenceMatch per source, in source order. Sources
            that are unconfigured or failing report available=False.
        """
        results: list[CrossReferenceMatch] = []

        for source in self.sources:
            if not source.is_configured:
                results.append(CrossReferenceMatch(source=source.label, available=False))
                continue

            try:
                candidates = await source.search(name, address, city, state)
            except (httpx.HTTPError, CrossReferenceError) as e:
                logger.warning(f"Cross-reference source {source.label} failed: {e}")
                results.append(CrossReferenceMatch(source=source.label, available=False))
                continue

            best = self.matcher.best_match(name, address, candidates)
            if best is None:
                results.append(CrossReferenceMatch(source=source.label, found=False))
                continue

            candidate, score = best
            data = {k: v for k, v in candidate.items() if k != "url"}
            results.append(
                CrossReferenceMatch(
                    source=source.label,
                    found=True,
                    match_score=round(score, 4),
                    url=candidate.get("url"),
                    data=data,
                )
            )

        return results
