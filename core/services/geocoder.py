# =============================================================================
# core/services/geocoder.py - Geocoding Queries & Result Parsing
# =============================================================================
# Turns an AddressRecord into a geocoder query and the geocoder's JSON answer
# into coordinates:
# - Unit/apartment fragments are stripped before the free-text query
# - An address that is just the country name becomes a structured country
#   lookup whose coordinates are the bounding-box midpoint
# - Non-JSON or unparseable answers count as "not found" instead of failing
#
# The HTTP side (User-Agent, throttling, retries) lives in lib/http_client.py.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx

from app.config import settings
from core.models.address import AddressRecord, Coordinates, GeocodeResult
from lib.http_client import DEFAULT_MAX_DELAY, Sleep, fetch_with_retry

logger = logging.getLogger(__name__)

# "Apt 4B", "apartment 12", "Unit 3-A", "#7"
UNIT_PATTERN = re.compile(r"(?:\b(?:apt|apartment|unit)\b\.?|#)\s*[\w-]+", re.IGNORECASE)
_COMMA_RUN = re.compile(r"\s*,[\s,]*")
_SPACE_RUN = re.compile(r"\s{2,}")


# =============================================================================
# Query Building
# =============================================================================

@dataclass(frozen=True)
class GeocodeQuery:
    """What to ask the geocoder for one record."""

    text: str
    country_level: bool = False

    def params(self) -> dict[str, str]:
        if self.country_level:
            return {"country": self.text, "format": "json", "limit": "1"}
        return {"q": self.text, "format": "json", "addressdetails": "1", "limit": "1"}


def strip_unit_numbers(text: str) -> str:
    """
    Remove apartment/unit fragments and tidy the leftover punctuation.

    Example:
        strip_unit_numbers("Apt 4B, 10 Main St, Springfield")
        # "10 Main St, Springfield"
    """
    cleaned = UNIT_PATTERN.sub("", text)
    cleaned = _COMMA_RUN.sub(", ", cleaned)
    cleaned = _SPACE_RUN.sub(" ", cleaned)
    cleaned = cleaned.strip(" ,")
    # An address that was nothing but a unit number is sent as-is
    return cleaned or text.strip()


def build_query(record: AddressRecord) -> GeocodeQuery:
    """Build the geocoder query for a record that has address text."""
    if record.is_country_level:
        return GeocodeQuery(text=record.country.strip(), country_level=True)
    return GeocodeQuery(text=strip_unit_numbers(record.full_address_text))


# =============================================================================
# Result Parsing
# =============================================================================

def bounding_box_midpoint(bounding_box: list[float]) -> Coordinates:
    """
    Center of a [lat_min, lat_max, lon_min, lon_max] box.

    Example:
        bounding_box_midpoint([10, 20, 100, 110])  # Coordinates(lat=15, long=105)
    """
    if len(bounding_box) != 4:
        raise ValueError(f"Bounding box needs 4 values, got {len(bounding_box)}")
    lat_min, lat_max, lon_min, lon_max = (float(v) for v in bounding_box)
    return Coordinates(lat=(lat_min + lat_max) / 2, long=(lon_min + lon_max) / 2)


def parse_match(match: dict[str, Any], country_level: bool = False) -> GeocodeResult:
    """
    Extract coordinates from one Nominatim match.

    Nominatim returns numbers as strings: {"lat": "40.0", "lon": "-88.0",
    "boundingbox": ["10", "20", "100", "110"], ...}.
    """
    display_name = match.get("display_name")

    if country_level and match.get("boundingbox"):
        try:
            box = [float(v) for v in match["boundingbox"]]
            return GeocodeResult(
                coordinates=bounding_box_midpoint(box),
                bounding_box=box,
                display_name=display_name,
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Unusable bounding box {match.get('boundingbox')!r}: {e}")

    try:
        coordinates = Coordinates(lat=float(match["lat"]), long=float(match["lon"]))
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Geocoder match without usable coordinates: {e}")
        return GeocodeResult.empty()

    return GeocodeResult(coordinates=coordinates, display_name=display_name)


def parse_response(response: httpx.Response, country_level: bool = False) -> GeocodeResult:
    """
    Parse a geocoder response, treating anything unexpected as "not found".
    """
    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type:
        logger.error(f"Received non-JSON response from geocoder ({content_type or 'no content type'})")
        return GeocodeResult.empty()

    try:
        payload = response.json()
    except ValueError as e:
        logger.error(f"Unparseable geocoder response: {e}")
        return GeocodeResult.empty()

    if not isinstance(payload, list) or not payload:
        return GeocodeResult.empty()

    first = payload[0]
    if not isinstance(first, dict):
        logger.error(f"Unexpected geocoder match type: {type(first).__name__}")
        return GeocodeResult.empty()

    return parse_match(first, country_level=country_level)


# =============================================================================
# Geocoder
# =============================================================================

class Geocoder:
    """
    Client for a Nominatim-compatible search endpoint.

    Example:
        async with Geocoder.from_settings() as geocoder:
            result = await geocoder.geocode(GeocodeQuery("10 Main St, Springfield"))
            if result.found:
                print(result.coordinates)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        user_agent: str,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = DEFAULT_MAX_DELAY,
        sleep: Sleep = asyncio.sleep,
        owns_client: bool = False,
    ):
        self.client = client
        self.base_url = base_url
        self.user_agent = user_agent
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.sleep = sleep
        self._owns_client = owns_client

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient | None = None) -> Geocoder:
        """Build a geocoder from settings, creating an HTTP client if none is given."""
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=settings.GEOCODER_TIMEOUT_SECONDS)
        return cls(
            client,
            base_url=settings.GEOCODER_BASE_URL,
            user_agent=settings.GEOCODER_USER_AGENT,
            max_retries=settings.GEOCODER_MAX_RETRIES,
            initial_delay=settings.GEOCODER_INITIAL_RETRY_DELAY_SECONDS,
            # A retry wait must fit inside one batch invocation
            max_delay=min(settings.GEOCODER_MAX_RETRY_DELAY_SECONDS, settings.BATCH_TIME_BUDGET_SECONDS),
            owns_client=owns_client,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> Geocoder:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def geocode(self, query: GeocodeQuery) -> GeocodeResult:
        """
        Look up one query.

        Returns:
            GeocodeResult, empty when nothing matched or the answer was unusable

        Raises:
            FetchError: If the geocoder could not be reached or kept throttling
        """
        logger.info(f"Geocoding {'country' if query.country_level else 'address'}: {query.text}")
        response = await fetch_with_retry(
            self.client,
            self.base_url,
            params=query.params(),
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            user_agent=self.user_agent,
            sleep=self.sleep,
        )
        result = parse_response(response, country_level=query.country_level)
        logger.debug(f"Geocoding result: {result.model_dump()}")
        return result
