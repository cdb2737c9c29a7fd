# =============================================================================
# tests/test_geocoder.py - Geocoder Tests
# =============================================================================
# Tests for core/services/geocoder.py:
# - Unit/apartment stripping
# - Country-level queries and bounding-box midpoints
# - Defensive parsing (non-JSON, unparseable, empty answers)
# - Query parameters and User-Agent sent to the geocoder
#
# Run with: poetry run pytest tests/test_geocoder.py -v
# =============================================================================

import asyncio

import httpx
import pytest

from app.config import settings
from core.models.address import AddressRecord
from core.services.geocoder import (
    GeocodeQuery,
    Geocoder,
    bounding_box_midpoint,
    build_query,
    parse_match,
    parse_response,
    strip_unit_numbers,
)
from tests.fakes import build_geocoder, json_response


# =============================================================================
# Query Building
# =============================================================================

class TestStripUnitNumbers:
    """Tests for strip_unit_numbers."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Apt 4B, 10 Main St, Springfield", "10 Main St, Springfield"),
            ("10 Main St Apt. 12, Springfield", "10 Main St, Springfield"),
            ("10 Main St, Unit 3-A, Springfield", "10 Main St, Springfield"),
            ("10 Main St #7, Springfield", "10 Main St, Springfield"),
            ("apartment 2, 5 Elm Rd", "5 Elm Rd"),
        ],
    )
    def test_strips_unit_fragments(self, text, expected):
        assert strip_unit_numbers(text) == expected

    def test_leaves_plain_address_alone(self):
        assert strip_unit_numbers("10 Main St, Springfield") == "10 Main St, Springfield"

    def test_does_not_strip_inside_words(self):
        """'Unity' and 'Aptos' are place names, not units."""
        assert strip_unit_numbers("1 Unity Rd, Aptos") == "1 Unity Rd, Aptos"

    def test_unit_only_text_falls_back_to_original(self):
        assert strip_unit_numbers("Apt 4B") == "Apt 4B"


class TestBuildQuery:
    """Tests for build_query."""

    def test_free_text_query(self):
        record = AddressRecord(id="a1", full_address_text="Apt 4B, 10 Main St, Springfield")

        query = build_query(record)

        assert query == GeocodeQuery(text="10 Main St, Springfield")
        assert query.params() == {
            "q": "10 Main St, Springfield",
            "format": "json",
            "addressdetails": "1",
            "limit": "1",
        }

    def test_country_level_query(self):
        record = AddressRecord(id="a1", full_address_text="france", country="France")

        query = build_query(record)

        assert query.country_level is True
        assert query.params() == {"country": "France", "format": "json", "limit": "1"}


# =============================================================================
# Result Parsing
# =============================================================================

class TestParsing:
    """Tests for bounding_box_midpoint, parse_match and parse_response."""

    def test_bounding_box_midpoint(self):
        midpoint = bounding_box_midpoint([10, 20, 100, 110])

        assert midpoint.lat == 15
        assert midpoint.long == 105

    def test_bounding_box_needs_four_values(self):
        with pytest.raises(ValueError):
            bounding_box_midpoint([1, 2, 3])

    def test_parse_match_point(self):
        result = parse_match({"lat": "40.0", "lon": "-88.0", "display_name": "Springfield"})

        assert result.found
        assert result.coordinates.lat == 40.0
        assert result.coordinates.long == -88.0
        assert result.display_name == "Springfield"

    def test_parse_match_country_uses_bounding_box(self):
        match = {"lat": "1", "lon": "1", "boundingbox": ["10", "20", "100", "110"]}

        result = parse_match(match, country_level=True)

        assert result.coordinates.lat == 15
        assert result.coordinates.long == 105
        assert result.bounding_box == [10.0, 20.0, 100.0, 110.0]

    def test_parse_match_without_coordinates_is_empty(self):
        assert not parse_match({"display_name": "Nowhere"}).found

    def test_non_json_response_is_not_found(self):
        response = httpx.Response(200, text="<html>Service busy</html>")

        assert not parse_response(response).found

    def test_unparseable_json_is_not_found(self):
        response = httpx.Response(
            200,
            content=b"[{not json",
            headers={"content-type": "application/json"},
        )

        assert not parse_response(response).found

    def test_empty_list_is_not_found(self):
        assert not parse_response(json_response([])).found

    def test_object_instead_of_list_is_not_found(self):
        assert not parse_response(json_response({"error": "bad request"})).found

    def test_first_match_wins(self):
        response = json_response([
            {"lat": "1.5", "lon": "2.5"},
            {"lat": "9", "lon": "9"},
        ])

        result = parse_response(response)

        assert (result.coordinates.lat, result.coordinates.long) == (1.5, 2.5)


# =============================================================================
# Geocoder
# =============================================================================

class TestGeocoder:
    """Tests for Geocoder.geocode against a mock transport."""

    def test_geocode_sends_query_and_user_agent(self):
        geocoder, stub = build_geocoder(lambda request: json_response([{"lat": "40.0", "lon": "-88.0"}]))

        async def run():
            async with geocoder:
                return await geocoder.geocode(GeocodeQuery(text="10 Main St, Springfield"))

        result = asyncio.run(run())

        assert result.coordinates.lat == 40.0
        assert len(stub.requests) == 1
        request = stub.requests[0]
        assert request.url.host == "geocoder.test"
        assert request.url.params["q"] == "10 Main St, Springfield"
        assert request.url.params["format"] == "json"
        assert request.headers["User-Agent"] == "geocode-sync-tests/1.0"

    def test_geocode_country_returns_midpoint(self):
        geocoder, stub = build_geocoder(
            lambda request: json_response([{"lat": "0", "lon": "0", "boundingbox": ["10", "20", "100", "110"]}])
        )

        async def run():
            async with geocoder:
                return await geocoder.geocode(GeocodeQuery(text="France", country_level=True))

        result = asyncio.run(run())

        assert (result.coordinates.lat, result.coordinates.long) == (15, 105)
        assert stub.requests[0].url.params["country"] == "France"
        assert "q" not in stub.requests[0].url.params

    def test_from_settings_caps_retry_wait_by_time_budget(self, monkeypatch):
        monkeypatch.setattr(settings, "GEOCODER_MAX_RETRY_DELAY_SECONDS", 60.0)
        monkeypatch.setattr(settings, "BATCH_TIME_BUDGET_SECONDS", 20.0)

        geocoder = Geocoder.from_settings(client=httpx.AsyncClient())

        assert geocoder.max_delay == 20.0
