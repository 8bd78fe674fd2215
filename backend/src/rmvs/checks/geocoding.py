"""Address geocoding via the Google Geocoding API."""

import logging
from typing import Any

import httpx

from ..config import get_settings
from ..errors import GeocodingError
from ..models import Coordinates, GeocodeCheck

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Fixed confidence for any returned match; not derived from location_type
MATCH_CONFIDENCE = 0.95


def enrich_address(
    address: str,
    city: str | None = None,
    state: str | None = None,
    zip_code: str | None = None,
) -> str:
    """Append city, state and zip when the address does not already contain them."""
    parts = [address.strip()]
    lowered = address.lower()

    if city and city.lower() not in lowered:
        parts.append(city.strip())
    if state and state.lower() not in lowered:
        parts.append(state.strip())
    if zip_code and zip_code not in address:
        parts.append(zip_code.strip())

    return ", ".join(part for part in parts if part)


class Geocoder:
    """Resolves free-text addresses to coordinates.

    Outcomes:
    - match: pass=True with coordinates and a fixed confidence
    - no match (ZERO_RESULTS) or transport failure: pass=False
    - provider error or no API key: None, the check is unavailable
    """

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.timeout = timeout or settings.geocode_timeout_seconds
        self._client = client

    async def validate(
        self,
        address: str,
        city: str | None = None,
        state: str | None = None,
        zip_code: str | None = None,
    ) -> GeocodeCheck | None:
        """Geocode an address.

        Args:
            address: Street address, possibly already containing city/state
            city: Optional city
            state: Optional state
            zip_code: Optional ZIP code

        Returns:
            GeocodeCheck, or None when the provider is unavailable
        """
        if not address or not address.strip():
            return GeocodeCheck(passed=False)

        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY not set, skipping geocoding")
            return None

        query = enrich_address(address, city, state, zip_code)

        try:
            data = await self._request(query)
            return self._parse(data)
        except httpx.HTTPError as e:
            logger.warning(f"Geocoding request failed for '{query}': {e}")
            return GeocodeCheck(passed=False)
        except GeocodingError as e:
            logger.warning(f"Geocoding unavailable: {e}")
            return None

    async def _request(self, query: str) -> dict[str, Any]:
        params = {"address": query, "key": self.api_key}

        if self._client is not None:
            response = await self._client.get(GEOCODE_URL, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(GEOCODE_URL, params=params)

        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as e:
            raise GeocodingError("google", f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise GeocodingError("google", "unexpected response shape")
        return data

    def _parse(self, data: dict[str, Any]) -> GeocodeCheck:
        status = data.get("status")

        if status == "ZERO_RESULTS":
            return GeocodeCheck(passed=False)
        if status != "OK":
            raise GeocodingError("google", f"status {status}: {data.get('error_message', '')}")

        results = data.get("results") or []
        if not results:
            return GeocodeCheck(passed=False)

        first = results[0]
        try:
            location = first["geometry"]["location"]
            coords = Coordinates(lat=float(location["lat"]), lng=float(location["lng"]))
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodingError("google", f"malformed result: {e}") from e

        return GeocodeCheck(
            passed=True,
            coords=coords,
            confidence=MATCH_CONFIDENCE,
            formatted_address=first.get("formatted_address"),
            location_type=first["geometry"].get("location_type"),
            place_id=first.get("place_id"),
        )
