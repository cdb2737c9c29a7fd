# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# Tests swap them out through app.dependency_overrides.
#
# The address store is handed out as a factory: routes validate the request
# body first and only then connect, so a malformed request is a 400 even when
# Supabase is not configured.
# =============================================================================

from typing import Annotated, Awaitable, Callable

from fastapi import Depends, Request

from core.services.address_processor import AddressProcessor
from core.services.batch_coordinator import BatchCoordinator
from core.services.geocoder import Geocoder
from lib.supabase_client import AddressStore

StoreFactory = Callable[[], Awaitable[AddressStore]]


def get_store_factory() -> StoreFactory:
    """
    Get the lookup for the process-wide address store.

    Awaiting it raises ConfigError (HTTP 500) when Supabase settings are missing.
    """
    return AddressStore.get_instance


def get_geocoder(request: Request) -> Geocoder:
    """Geocoder created in the application lifespan."""
    return request.app.state.geocoder


class CoordinatorFactory:
    """Builds the processor and coordinator once the store is needed."""

    def __init__(self, store_factory: StoreFactory, geocoder: Geocoder):
        self.store_factory = store_factory
        self.geocoder = geocoder

    async def __call__(self) -> BatchCoordinator:
        store = await self.store_factory()
        return BatchCoordinator.from_settings(store, AddressProcessor(store, self.geocoder))


def get_coordinator_factory(
    store_factory: Annotated[StoreFactory, Depends(get_store_factory)],
    geocoder: Annotated[Geocoder, Depends(get_geocoder)],
) -> CoordinatorFactory:
    return CoordinatorFactory(store_factory, geocoder)


# Type aliases for dependency injection
CoordinatorFactoryDep = Annotated[CoordinatorFactory, Depends(get_coordinator_factory)]
