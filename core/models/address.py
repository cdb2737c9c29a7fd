# =============================================================================
# core/models/address.py - Address & Geocoding Schemas
# =============================================================================
# These models describe one address row and what happens to it:
# - AddressRecord: A row from the address table (or a webhook payload)
# - Coordinates: A lat/long pair
# - GeocodeResult: The geocoder's answer for one query
# - ProcessResult: Outcome of geocoding one record
#
# Rows arrive with database column names (profile_id, generated_full_address,
# lat, long); the models accept those as well as the Python field names.
# =============================================================================

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Coordinates(BaseModel):
    """A latitude/longitude pair, serialized as {"lat": ..., "long": ...}."""

    lat: float
    long: float

    def matches(self, lat: float | None, long: float | None) -> bool:
        """Exact equality on both axes."""
        return self.lat == lat and self.long == long


class AddressRecord(BaseModel):
    """
    One postal address awaiting or having undergone geocoding.

    `(None, None)` and `(0, 0)` coordinates both count as unset.

    Example:
        {
            "profile_id": "a1",
            "generated_full_address": "Apt 4B, 10 Main St, Springfield",
            "lat": null,
            "long": null,
            "country": "United States",
            "updated_at": "2024-01-15T10:30:00Z"
        }
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("id", "profile_id"),
        description="Stable, orderable record identifier"
    )

    full_address_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "full_address_text", "generated_full_address", "fullAddressText"
        ),
        description="Free-form address used as the geocoding query"
    )

    latitude: float | None = Field(
        default=None,
        validation_alias=AliasChoices("latitude", "lat"),
    )

    longitude: float | None = Field(
        default=None,
        validation_alias=AliasChoices("longitude", "long"),
    )

    country: str | None = Field(default=None)

    updated_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("updated_at", "updatedAt"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (UUID, int)):
            return str(value)
        return value

    @field_validator("updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_address_text(self) -> bool:
        return bool(self.full_address_text and self.full_address_text.strip())

    @property
    def has_unset_coordinates(self) -> bool:
        """True for (None, None), (0, 0) and any mix of the two."""
        return not self.latitude and not self.longitude

    @property
    def is_country_level(self) -> bool:
        """The address text is just the country name."""
        if not self.country or not self.has_address_text:
            return False
        return self.full_address_text.strip().casefold() == self.country.strip().casefold()

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(lat=self.latitude, long=self.longitude)


class GeocodeResult(BaseModel):
    """
    The geocoder's answer for one query.

    Either empty (not found) or one match. Country-level matches also carry
    the bounding box as returned: [lat_min, lat_max, lon_min, lon_max].
    """

    coordinates: Coordinates | None = None
    bounding_box: list[float] | None = None
    display_name: str | None = None

    @property
    def found(self) -> bool:
        return self.coordinates is not None

    @classmethod
    def empty(cls) -> "GeocodeResult":
        return cls()


class ProcessStatus(str, Enum):
    """
    Outcome of processing one address.

    - updated: New coordinates were written
    - unchanged: Geocoder agreed with the stored coordinates, no write
    - not_found: Geocoder had no match
    - error: Missing address text, fetch failure or store failure
    """
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ProcessResult(BaseModel):
    """
    Result of geocoding one record, returned to API callers as camelCase JSON.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    status: ProcessStatus
    address: str | None = None
    message: str | None = None
    coordinates: Coordinates | None = None
    previous_coordinates: Coordinates | None = None
