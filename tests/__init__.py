# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the geocode-sync API:
# - test_models.py: Unit tests for Pydantic model validation
# - test_http_client.py: Retry/backoff behavior of the fetcher
# - test_geocoder.py: Query building and response parsing
# - test_address_processor.py: Single address outcomes
# - test_batch_coordinator.py: Pagination, pacing, time budget, scan modes
# - test_api.py: Endpoint tests with FastAPI's TestClient
# - test_tasks.py: Celery tasks called directly
#
# Run tests with: poetry run pytest
# =============================================================================
