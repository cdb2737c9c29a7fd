# =============================================================================
# lib/supabase_client.py - Supabase Address Store
# =============================================================================
# This module provides a typed async wrapper around the `address` table.
# It reuses a single client connection for the API process and provides
# the three operations the geocoding pipeline needs:
# - Paged reads after an id cursor (optionally updated after a timestamp)
# - Paged reads of rows with unset coordinates (catch-up scans)
# - Per-row coordinate updates keyed by profile_id
#
# Celery tasks call AddressStore.connect() for a fresh client per event loop;
# the API uses AddressStore.get_instance().
#
# Usage:
#   store = await AddressStore.get_instance()
#   page = await store.fetch_page_after(last_id, limit=10)
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from supabase import AsyncClient, acreate_client

from app.config import settings
from core.models.address import AddressRecord, Coordinates
from lib.utils import ApplicationError, ConfigError, normalize_uuid

# Set up logging for this module
logger = logging.getLogger(__name__)

ID_COLUMN = "profile_id"
ADDRESS_COLUMNS = "profile_id, generated_full_address, lat, long, country, updated_at"

# PostgREST filter for rows whose coordinates were never set
UNSET_COORDINATES_FILTER = "lat.is.null,long.is.null,lat.eq.0,long.eq.0"


class StoreError(ApplicationError):
    """
    Error during an address table read or write.

    Attributes:
        operation: Which store call failed (fetch_page, update_coordinates, ...)
        record_id: The affected row, when the failure concerns one record
    """

    def __init__(
        self,
        message: str,
        operation: str,
        record_id: str | None = None,
        suggestion: str | None = None,
    ):
        details: dict[str, Any] = {"operation": operation}
        if record_id is not None:
            details["record_id"] = record_id
        super().__init__(
            message=message,
            code="STORE_ERROR",
            status_code=500,
            suggestion=suggestion or "Check that the address table is reachable and the key has access",
            details=details,
        )
        self.operation = operation
        self.record_id = record_id


@dataclass
class AddressPage:
    """One page of rows plus the exact count of rows matching the filter."""

    records: list[AddressRecord] = field(default_factory=list)
    total_count: int | None = None

    def __len__(self) -> int:
        return len(self.records)


class AddressStore:
    """
    Typed wrapper for address table operations.

    Example:
        store = await AddressStore.get_instance()
        page = await store.fetch_unset_after(ZERO_ID, limit=10)
        for record in page.records:
            ...
        await store.update_coordinates(record.id, Coordinates(lat=1.0, long=2.0))
    """

    _instance: AddressStore | None = None

    def __init__(self, client: AsyncClient, table: str = "address"):
        self.client = client
        self.table = table

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    async def connect(cls) -> AddressStore:
        """
        Create a new store from settings.

        Raises:
            ConfigError: If SUPABASE_URL or a key is missing
            StoreError: If client creation fails
        """
        missing = settings.missing_supabase_settings
        if missing:
            logger.error(f"Missing Supabase settings: {', '.join(missing)}")
            raise ConfigError(missing)

        try:
            client = await acreate_client(settings.SUPABASE_URL, settings.supabase_key)
        except Exception as e:
            raise StoreError(
                message=f"Failed to create Supabase client: {e}",
                operation="connect",
                suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file",
            ) from e

        logger.info("Supabase client initialized successfully")
        return cls(client, table=settings.ADDRESS_TABLE)

    @classmethod
    async def get_instance(cls) -> AddressStore:
        """Get or create the process-wide store used by the API."""
        if cls._instance is None:
            cls._instance = await cls.connect()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _select(self):
        return self.client.table(self.table).select(ADDRESS_COLUMNS, count="exact")

    async def _execute_page(self, query, operation: str) -> AddressPage:
        try:
            response = await query.execute()
        except Exception as e:
            logger.error(f"Error fetching addresses ({operation}): {e}")
            raise StoreError(message=f"Failed to fetch addresses: {e}", operation=operation) from e

        rows = response.data or []
        records = [AddressRecord.model_validate(row) for row in rows]
        logger.debug(f"Fetched {len(records)} addresses ({operation})")
        return AddressPage(records=records, total_count=response.count)

    async def fetch_page_after(
        self,
        last_id: str,
        *,
        limit: int,
        updated_since: datetime | None = None,
    ) -> AddressPage:
        """
        Fetch rows with an id strictly greater than `last_id`, ordered by id.

        Args:
            last_id: Cursor from the previous page
            limit: Page size
            updated_since: If given, only rows with updated_at after this instant

        Raises:
            StoreError: If the query fails
        """
        query = self._select().gt(ID_COLUMN, last_id)
        if updated_since is not None:
            query = query.gt("updated_at", updated_since.isoformat())
        query = query.order(ID_COLUMN).limit(limit)
        return await self._execute_page(query, "fetch_page_after")

    async def fetch_unset_after(self, last_id: str, *, limit: int) -> AddressPage:
        """
        Fetch rows after `last_id` whose lat or long is null or zero.

        Raises:
            StoreError: If the query fails
        """
        query = (
            self._select()
            .gt(ID_COLUMN, last_id)
            .or_(UNSET_COORDINATES_FILTER)
            .order(ID_COLUMN)
            .limit(limit)
        )
        return await self._execute_page(query, "fetch_unset_after")

    async def ping(self) -> None:
        """Cheap read used by the readiness probe."""
        try:
            await self.client.table(self.table).select(ID_COLUMN).limit(1).execute()
        except Exception as e:
            raise StoreError(message=f"Address table unreachable: {e}", operation="ping") from e

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def update_coordinates(self, record_id: str | UUID, coordinates: Coordinates) -> None:
        """
        Set lat/long on one row.

        Raises:
            StoreError: If the update fails or matches no row
        """
        record_id = normalize_uuid(record_id)
        try:
            response = await (
                self.client.table(self.table)
                .update({"lat": coordinates.lat, "long": coordinates.long})
                .eq(ID_COLUMN, record_id)
                .execute()
            )
        except Exception as e:
            raise StoreError(
                message=f"Failed to update coordinates: {e}",
                operation="update_coordinates",
                record_id=record_id,
            ) from e

        if not response.data:
            raise StoreError(
                message="Update matched no address row",
                operation="update_coordinates",
                record_id=record_id,
                suggestion="The row may have been deleted, or row level security hides it from this key",
            )
