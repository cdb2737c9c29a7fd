#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker to process geocoding scans.
#
# Usage:
#   # Start worker (development)
#   poetry run python scripts/start_worker.py
#
#   # Or use Celery CLI directly
#   poetry run celery -A workers.celery_app worker -Q geocoding,default --concurrency=1 --loglevel=info
#
#   # Periodic scans also need the beat scheduler
#   poetry run celery -A workers.celery_app beat --loglevel=info
#
# Prerequisites:
#   - Redis must be running
#   - Environment variables must be set (.env file)
# =============================================================================

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from workers.celery_app import celery_app


def main():
    """Start the Celery worker."""
    print("=" * 60)
    print("geocode-sync Celery Worker")
    print("=" * 60)
    print()
    print("Starting worker...")
    print("Press Ctrl+C to stop")
    print()

    # One process: the geocoder must see one request at a time
    celery_app.worker_main([
        "worker",
        "--loglevel=info",
        "--queues=geocoding,default",
        "--concurrency=1",
    ])


if __name__ == "__main__":
    main()
