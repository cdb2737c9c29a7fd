# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - http_client.py: Rate-limited fetcher with retry/backoff for outbound GETs
# - supabase_client.py: Typed async wrapper for the address table
# - utils.py: Base error classes and UUID normalization
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.utils import ApplicationError, ConfigError, normalize_uuid
from lib.http_client import FetchError, fetch_with_retry
from lib.supabase_client import AddressPage, AddressStore, StoreError

__all__ = [
    # HTTP
    "FetchError",
    "fetch_with_retry",
    # Supabase
    "AddressPage",
    "AddressStore",
    "StoreError",
    # Utils
    "ApplicationError",
    "ConfigError",
    "normalize_uuid",
]
