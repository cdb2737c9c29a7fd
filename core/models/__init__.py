# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - address.py: Address rows, coordinates, geocoder answers, per-record results
# - batch.py: Scan modes, checkpoints, batch results and HTTP shapes
#
# These models define the "contract" between API, workers and clients.
# =============================================================================

from .address import (
    AddressRecord,
    Coordinates,
    GeocodeResult,
    ProcessResult,
    ProcessStatus,
)
from .batch import (
    ZERO_ID,
    BatchCheckpoint,
    BatchRequest,
    BatchResponse,
    BatchResult,
    ScanMode,
)

__all__ = [
    # Address
    "AddressRecord",
    "Coordinates",
    "GeocodeResult",
    "ProcessResult",
    "ProcessStatus",
    # Batch
    "ZERO_ID",
    "BatchCheckpoint",
    "BatchRequest",
    "BatchResponse",
    "BatchResult",
    "ScanMode",
]
