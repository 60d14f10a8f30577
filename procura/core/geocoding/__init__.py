"""Postal code geocoding for the São Paulo municipality.

This package provides:
- Postal code normalisation and the ViaCEP address lookup
- A permanent address cache
- Multi-provider geocoding with spatial consensus
- A deterministic offline fallback
"""

# Import main components for easy access
from procura.core.geocoding.cache import AddressCacheStore
from procura.core.geocoding.consensus import SpatialConsensusEngine, haversine_distance
from procura.core.geocoding.exceptions import (
    CacheError,
    GeocodingError,
    InvalidPostalCode,
    PostalCodeNotFound,
    PostalLookupUnavailable,
    ProviderError,
)
from procura.core.geocoding.fallback import RegionalFallbackTable
from procura.core.geocoding.models import (
    ConfidenceTier,
    GeoCoordinate,
    PostalAddress,
    ResolutionResult,
    ResolutionSource,
)
from procura.core.geocoding.resolver import ResolutionContext, ResolutionOrchestrator

__all__ = [
    "AddressCacheStore",
    "CacheError",
    "ConfidenceTier",
    "GeoCoordinate",
    "GeocodingError",
    "InvalidPostalCode",
    "PostalAddress",
    "PostalCodeNotFound",
    "PostalLookupUnavailable",
    "ProviderError",
    "RegionalFallbackTable",
    "ResolutionContext",
    "ResolutionOrchestrator",
    "ResolutionResult",
    "ResolutionSource",
    "SpatialConsensusEngine",
    "haversine_distance",
]
