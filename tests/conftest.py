# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Fixtures built on the fakes in tests/fakes.py
# =============================================================================

import os
import sys
from pathlib import Path

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BATCH_CONTINUATION_ENABLED", "false")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from tests.fakes import OLD_TIMESTAMP, FakeAddressStore, FakeClock, build_geocoder, json_response


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_store():
    """Factory for an in-memory address store."""
    return FakeAddressStore


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def springfield_geocoder():
    """Geocoder that always answers 40.0, -88.0."""
    return build_geocoder(lambda request: json_response([{"lat": "40.0", "lon": "-88.0", "display_name": "Springfield"}]))


@pytest.fixture
def sample_address_row():
    """Raw row as sent by the database webhook."""
    return {
        "profile_id": "a1",
        "generated_full_address": "Apt 4B, 10 Main St, Springfield",
        "lat": None,
        "long": None,
        "country": "United States",
        "updated_at": OLD_TIMESTAMP,
    }


