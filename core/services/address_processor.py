# =============================================================================
# core/services/address_processor.py - Single Address Geocoding
# =============================================================================
# Geocodes one address record and persists the coordinates when they changed.
# The processor holds no per-call state: a batch can reuse one instance for
# every record, and a webhook call can use it for just one.
# =============================================================================

import logging

from core.models.address import AddressRecord, ProcessResult, ProcessStatus
from core.services.geocoder import Geocoder, build_query
from lib.http_client import FetchError
from lib.supabase_client import AddressStore, StoreError

logger = logging.getLogger(__name__)


class AddressProcessor:
    """
    Decide whether a record needs geocoding, geocode it, and store the result.

    Outcomes:
    - error: no address text, geocoder unreachable, or store write failed
    - not_found: geocoder had no match
    - unchanged: stored coordinates already match (no write)
    - updated: coordinates written

    At most one store write and one geocoder lookup happen per call.
    """

    def __init__(self, store: AddressStore, geocoder: Geocoder):
        self.store = store
        self.geocoder = geocoder

    async def process(self, record: AddressRecord) -> ProcessResult:
        logger.info(f"Processing address for profile_id: {record.id}")

        if not record.has_address_text:
            logger.warning(f"[{record.id}] validate: no address text")
            return ProcessResult(
                id=record.id,
                status=ProcessStatus.ERROR,
                message="No address text available",
            )

        address = record.full_address_text
        query = build_query(record)

        try:
            geocoded = await self.geocoder.geocode(query)
        except FetchError as e:
            logger.error(f"[{record.id}] geocode: {e.message}")
            return ProcessResult(
                id=record.id,
                status=ProcessStatus.ERROR,
                address=address,
                message=f"Geocoding failed: {e.message}",
            )

        if not geocoded.found:
            logger.info(f"[{record.id}] geocode: no coordinates found")
            return ProcessResult(
                id=record.id,
                status=ProcessStatus.NOT_FOUND,
                address=address,
                message="Geocoder could not find coordinates for this address",
            )

        coordinates = geocoded.coordinates

        if not record.has_unset_coordinates and coordinates.matches(record.latitude, record.longitude):
            logger.info(f"[{record.id}] compare: coordinates have not changed")
            return ProcessResult(
                id=record.id,
                status=ProcessStatus.UNCHANGED,
                address=address,
                coordinates=coordinates,
            )

        try:
            await self.store.update_coordinates(record.id, coordinates)
        except StoreError as e:
            logger.error(f"[{record.id}] store: {e.message}")
            return ProcessResult(
                id=record.id,
                status=ProcessStatus.ERROR,
                address=address,
                message=f"Failed to update coordinates: {e.message}",
                coordinates=coordinates,
            )

        logger.info(f"[{record.id}] store: coordinates updated to {coordinates.lat}, {coordinates.long}")
        return ProcessResult(
            id=record.id,
            status=ProcessStatus.UPDATED,
            address=address,
            coordinates=coordinates,
            previous_coordinates=record.coordinates,
        )
