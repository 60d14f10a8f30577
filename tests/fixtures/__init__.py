"""Test fixture package for procura.

Contains fixtures for:
- SQLite-backed address cache
- Fake geocoding providers and resolver wiring
"""

from .db import cache_store, db_engine, db_session_factory
from .geocoding import (
    make_location,
    make_provider,
    orchestrator,
    paulista_address,
    postal_lookup,
)

__all__ = [
    # Database
    "cache_store",
    "db_engine",
    "db_session_factory",
    # Geocoding
    "make_location",
    "make_provider",
    "orchestrator",
    "paulista_address",
    "postal_lookup",
]
