# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .geocoder import Geocoder, GeocodeQuery, build_query
from .address_processor import AddressProcessor
from .batch_coordinator import BatchCoordinator

__all__ = [
    "Geocoder",
    "GeocodeQuery",
    "build_query",
    "AddressProcessor",
    "BatchCoordinator",
]
