# =============================================================================
# tests/test_address_processor.py - Single Address Processing Tests
# =============================================================================
# Tests for AddressProcessor.process:
# - Validation (no address text)
# - updated / unchanged / not_found / error outcomes
# - At most one store write per call, none when nothing changed
#
# Run with: poetry run pytest tests/test_address_processor.py -v
# =============================================================================

import asyncio

import httpx

from core.models.address import AddressRecord, Coordinates, ProcessStatus
from core.services.address_processor import AddressProcessor
from tests.fakes import build_geocoder, json_response


def run_process(store, geocoder, row):
    async def run():
        async with geocoder:
            return await AddressProcessor(store, geocoder).process(AddressRecord.model_validate(row))

    return asyncio.run(run())


class TestValidation:
    """Records that cannot be geocoded at all."""

    def test_missing_address_text(self, fake_store, springfield_geocoder):
        geocoder, stub = springfield_geocoder
        store = fake_store()

        result = run_process(store, geocoder, {"profile_id": "a1", "generated_full_address": "   "})

        assert result.status == ProcessStatus.ERROR
        assert result.message == "No address text available"
        assert stub.requests == []
        assert store.updates == []


class TestOutcomes:
    """Geocoding outcomes and store writes."""

    def test_updated_then_unchanged(self, fake_store, springfield_geocoder, sample_address_row):
        """First call writes 40/-88; a second call on the stored row does not write again."""
        geocoder, stub = springfield_geocoder
        store = fake_store([sample_address_row])
        processor = AddressProcessor(store, geocoder)

        async def run():
            async with geocoder:
                first = await processor.process(AddressRecord.model_validate(sample_address_row))
                second = await processor.process(AddressRecord.model_validate(store.rows["a1"]))
                return first, second

        first, second = asyncio.run(run())

        assert first.status == ProcessStatus.UPDATED
        assert first.coordinates == Coordinates(lat=40.0, long=-88.0)
        assert first.previous_coordinates is None
        assert store.rows["a1"]["lat"] == 40.0
        assert store.rows["a1"]["long"] == -88.0
        assert stub.requests[0].url.params["q"] == "10 Main St, Springfield"

        assert second.status == ProcessStatus.UNCHANGED
        assert len(store.updates) == 1

    def test_zero_coordinates_count_as_unset(self, fake_store, springfield_geocoder, sample_address_row):
        geocoder, _ = springfield_geocoder
        store = fake_store()
        row = {**sample_address_row, "lat": 0, "long": 0}

        result = run_process(store, geocoder, row)

        assert result.status == ProcessStatus.UPDATED
        assert store.updates == [("a1", Coordinates(lat=40.0, long=-88.0))]

    def test_changed_coordinates_are_overwritten(self, fake_store, springfield_geocoder, sample_address_row):
        geocoder, _ = springfield_geocoder
        store = fake_store()
        row = {**sample_address_row, "lat": 1.0, "long": 2.0}

        result = run_process(store, geocoder, row)

        assert result.status == ProcessStatus.UPDATED
        assert result.previous_coordinates == Coordinates(lat=1.0, long=2.0)
        assert len(store.updates) == 1

    def test_not_found(self, fake_store, sample_address_row):
        geocoder, stub = build_geocoder(lambda request: json_response([]))
        store = fake_store()

        result = run_process(store, geocoder, sample_address_row)

        assert result.status == ProcessStatus.NOT_FOUND
        assert result.address == "Apt 4B, 10 Main St, Springfield"
        assert len(stub.requests) == 1
        assert store.updates == []

    def test_non_json_answer_is_not_found(self, fake_store, sample_address_row):
        geocoder, _ = build_geocoder(lambda request: httpx.Response(200, text="Service busy"))

        result = run_process(fake_store(), geocoder, sample_address_row)

        assert result.status == ProcessStatus.NOT_FOUND

    def test_geocoder_failure_is_error(self, fake_store, sample_address_row):
        geocoder, stub = build_geocoder(lambda request: httpx.Response(503))
        store = fake_store()

        result = run_process(store, geocoder, sample_address_row)

        assert result.status == ProcessStatus.ERROR
        assert result.message.startswith("Geocoding failed")
        assert len(stub.requests) == 1
        assert store.updates == []

    def test_store_failure_is_error(self, fake_store, springfield_geocoder, sample_address_row):
        geocoder, _ = springfield_geocoder
        store = fake_store([sample_address_row])
        store.fail_update_ids.add("a1")

        result = run_process(store, geocoder, sample_address_row)

        assert result.status == ProcessStatus.ERROR
        assert result.message.startswith("Failed to update coordinates")
        assert result.coordinates == Coordinates(lat=40.0, long=-88.0)
        assert store.rows["a1"]["lat"] is None

    def test_country_level_address_uses_bounding_box(self, fake_store):
        geocoder, stub = build_geocoder(
            lambda request: json_response([{"lat": "0", "lon": "0", "boundingbox": ["10", "20", "100", "110"]}])
        )
        store = fake_store()
        row = {"profile_id": "c1", "generated_full_address": "France", "country": "France"}

        result = run_process(store, geocoder, row)

        assert result.status == ProcessStatus.UPDATED
        assert store.updates == [("c1", Coordinates(lat=15, long=105))]
        assert stub.requests[0].url.params["country"] == "France"


class TestSerialization:
    """ProcessResult leaves the API in camelCase."""

    def test_process_result_camel_case(self, fake_store, springfield_geocoder, sample_address_row):
        geocoder, _ = springfield_geocoder

        result = run_process(fake_store(), geocoder, {**sample_address_row, "lat": 1.0, "long": 2.0})
        payload = result.model_dump(mode="json", by_alias=True)

        assert payload["status"] == "updated"
        assert payload["previousCoordinates"] == {"lat": 1.0, "long": 2.0}
        assert payload["coordinates"] == {"lat": 40.0, "long": -88.0}
