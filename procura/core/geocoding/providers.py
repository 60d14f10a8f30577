"""Geocoding provider registry and concurrent fan-out.

Providers are declared once as descriptors. At startup each descriptor's
``enabled`` predicate is evaluated against the settings, producing a fixed
list of active providers. The pool then issues every query variation to
every active provider on a bounded thread pool and keeps only coordinates
inside the municipal bounding box.
"""

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Optional, Sequence

from geopy.exc import GeocoderServiceError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import ArcGIS, MapBox, Nominatim, OpenCage
from redis import Redis

from procura.core.config import Settings
from procura.core.geocoding import metrics
from procura.core.geocoding.exceptions import ProviderError
from procura.core.geocoding.models import (
    MUNICIPAL_BOUNDS,
    BoundingBox,
    GeoCoordinate,
    ProviderResult,
    QueryVariation,
)

logger = logging.getLogger(__name__)

# Candidates requested from providers that can return several
CANDIDATE_LIMIT = 5


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of one geocoding service."""

    name: str
    build: Callable[[Settings], Any]
    credential: Optional[str] = None
    query_options: dict[str, Any] = field(default_factory=dict)
    rate_limit_setting: str = "GEOCODING_RATE_LIMIT"

    def enabled(self, settings: Settings) -> bool:
        """A provider is active when allowed and its credential is present."""
        if self.name not in settings.GEOCODING_PROVIDERS:
            return False
        if self.credential is None:
            return True
        return bool(getattr(settings, self.credential, None))


@dataclass(frozen=True)
class ActiveProvider:
    """A provider ready to answer queries.

    ``geocode`` takes a query string and returns a geopy Location, a list of
    them, or None.
    """

    name: str
    geocode: Callable[[str], Any]


def _build_nominatim(settings: Settings) -> Nominatim:
    return Nominatim(
        user_agent=settings.GEOCODING_USER_AGENT, timeout=settings.GEOCODING_TIMEOUT
    )


def _build_arcgis(settings: Settings) -> ArcGIS:
    return ArcGIS(timeout=settings.GEOCODING_TIMEOUT)


def _build_opencage(settings: Settings) -> OpenCage:
    return OpenCage(
        api_key=settings.OPENCAGE_API_KEY, timeout=settings.GEOCODING_TIMEOUT
    )


def _build_mapbox(settings: Settings) -> MapBox:
    return MapBox(
        api_key=settings.MAPBOX_ACCESS_TOKEN, timeout=settings.GEOCODING_TIMEOUT
    )


PROVIDER_REGISTRY: tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(
        name="nominatim",
        build=_build_nominatim,
        query_options={"country_codes": "br", "limit": CANDIDATE_LIMIT},
        rate_limit_setting="NOMINATIM_RATE_LIMIT",
    ),
    # ArcGIS has no country option; queries end in "Brasil" and results are
    # bounding-box filtered by the pool
    ProviderDescriptor(
        name="arcgis",
        build=_build_arcgis,
    ),
    ProviderDescriptor(
        name="opencage",
        build=_build_opencage,
        credential="OPENCAGE_API_KEY",
        query_options={"country": "br"},
    ),
    ProviderDescriptor(
        name="mapbox",
        build=_build_mapbox,
        credential="MAPBOX_ACCESS_TOKEN",
        query_options={"country": "BR"},
    ),
)


def build_active_providers(
    settings: Settings,
    registry: Sequence[ProviderDescriptor] = PROVIDER_REGISTRY,
) -> list[ActiveProvider]:
    """Evaluate each descriptor once and build the active provider list.

    Args:
        settings: Application settings
        registry: Provider descriptors, in attribution order

    Returns:
        Providers whose credential is present, wrapped in a rate limiter
    """
    active: list[ActiveProvider] = []
    for descriptor in registry:
        if not descriptor.enabled(settings):
            logger.info(f"Geocoding provider {descriptor.name} not enabled")
            continue

        try:
            geocoder = descriptor.build(settings)
        except Exception as e:
            logger.error(f"Failed to initialize {descriptor.name} geocoder: {e}")
            continue

        min_delay = float(getattr(settings, descriptor.rate_limit_setting))
        geocode = RateLimiter(
            partial(geocoder.geocode, exactly_one=False, **descriptor.query_options),
            min_delay_seconds=min_delay,
            max_retries=0,
            swallow_exceptions=False,
        )
        active.append(ActiveProvider(name=descriptor.name, geocode=geocode))
        logger.info(
            f"Geocoding provider {descriptor.name} initialized with {min_delay}s rate limit"
        )
    return active


def connect_query_cache(settings: Settings) -> Optional[Redis]:
    """Connect to Redis for provider query caching, if configured."""
    if not settings.REDIS_URL:
        return None
    try:
        client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        client.ping()
        logger.info("Redis caching enabled for geocoding queries")
        return client
    except Exception as e:
        logger.warning(f"Redis connection failed, query caching disabled: {e}")
        return None


class GeocodingProviderPool:
    """Issues every variation to every active provider concurrently."""

    def __init__(
        self,
        providers: Sequence[ActiveProvider],
        bounds: BoundingBox = MUNICIPAL_BOUNDS,
        max_workers: int = 8,
        redis_client: Optional[Redis] = None,
        cache_ttl: int = 2592000,
    ):
        """Initialize the pool.

        Args:
            providers: Active providers, fixed for the pool's lifetime
            bounds: Results outside this box are discarded
            max_workers: Upper bound on concurrent lookups
            redis_client: Optional Redis client for query caching
            cache_ttl: Query cache TTL in seconds
        """
        self.providers = tuple(providers)
        self.bounds = bounds
        self.max_workers = max_workers
        self.redis_client = redis_client
        self.cache_ttl = cache_ttl

    @classmethod
    def from_settings(
        cls, settings: Settings, bounds: BoundingBox = MUNICIPAL_BOUNDS
    ) -> "GeocodingProviderPool":
        """Build a pool from the provider registry and settings."""
        return cls(
            providers=build_active_providers(settings),
            bounds=bounds,
            max_workers=settings.GEOCODING_MAX_WORKERS,
            redis_client=connect_query_cache(settings),
            cache_ttl=settings.GEOCODING_QUERY_CACHE_TTL,
        )

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self.providers]

    def query_all(
        self,
        variations: Sequence[QueryVariation],
        providers: Optional[Sequence[ActiveProvider]] = None,
    ) -> list[ProviderResult]:
        """Look up every (variation, provider) pair.

        Waits for every lookup to finish or hit its own timeout. A failed
        pair is logged and left out; this method never raises for provider
        faults.

        Args:
            variations: Query variations, most specific first
            providers: Providers to use, defaulting to the active list

        Returns:
            Accepted results ordered by variation, then provider
        """
        providers = self.providers if providers is None else tuple(providers)
        pairs = [
            ((v_index, p_index), variation, provider)
            for v_index, variation in enumerate(variations)
            for p_index, provider in enumerate(providers)
        ]
        if not pairs:
            return []

        accepted: dict[tuple[int, int], ProviderResult] = {}
        workers = min(self.max_workers, len(pairs))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._lookup_pair, variation, provider): position
                for position, variation, provider in pairs
            }
            for future in as_completed(futures):
                result = future.result()
                if result is not None:
                    accepted[futures[future]] = result

        logger.info(
            f"Geocoding fan-out accepted {len(accepted)} of {len(pairs)} lookups"
        )
        return [accepted[position] for position in sorted(accepted)]

    def _lookup_pair(
        self, variation: QueryVariation, provider: ActiveProvider
    ) -> Optional[ProviderResult]:
        try:
            candidates = self._candidates(provider, variation.query)
        except ProviderError as e:
            metrics.PROVIDER_LOOKUPS_TOTAL.labels(
                provider=provider.name, outcome="error"
            ).inc()
            logger.warning(f"Geocoding lookup skipped: {e}")
            return None

        for coordinate in candidates:
            if self.bounds.contains(coordinate):
                metrics.PROVIDER_LOOKUPS_TOTAL.labels(
                    provider=provider.name, outcome="accepted"
                ).inc()
                logger.debug(
                    f"{provider.name} ({variation.strategy}) returned "
                    f"{coordinate.latitude}, {coordinate.longitude}"
                )
                return ProviderResult(
                    provider=provider.name,
                    strategy=variation.strategy,
                    coordinate=coordinate,
                )

        outcome = "out_of_bounds" if candidates else "empty"
        metrics.PROVIDER_LOOKUPS_TOTAL.labels(
            provider=provider.name, outcome=outcome
        ).inc()
        logger.debug(f"{provider.name} ({variation.strategy}) {outcome}")
        return None

    def _candidates(self, provider: ActiveProvider, query: str) -> list[GeoCoordinate]:
        cached = self._get_cached_result(query, provider.name)
        if cached is not None:
            return cached

        try:
            response = provider.geocode(query)
        except GeocoderServiceError as e:
            raise ProviderError(provider.name, query, f"{type(e).__name__}: {e}") from e
        except Exception as e:
            raise ProviderError(
                provider.name, query, f"unexpected {type(e).__name__}: {e}"
            ) from e

        coordinates = self._to_coordinates(provider.name, query, response)
        if coordinates:
            self._cache_result(query, provider.name, coordinates)
        return coordinates

    @staticmethod
    def _to_coordinates(provider: str, query: str, response: Any) -> list[GeoCoordinate]:
        if response is None:
            return []
        locations = response if isinstance(response, list) else [response]

        coordinates: list[GeoCoordinate] = []
        for location in locations:
            try:
                coordinates.append(
                    GeoCoordinate(
                        latitude=float(location.latitude),
                        longitude=float(location.longitude),
                    )
                )
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"{provider} returned a malformed candidate: {e}")
        if locations and not coordinates:
            raise ProviderError(provider, query, "malformed response")
        return coordinates

    def _get_cache_key(self, query: str, provider: str) -> str:
        """Generate cache key for a provider query.

        Args:
            query: Query string sent to the provider
            provider: Geocoding provider name

        Returns:
            Cache key string
        """
        query_hash = hashlib.sha256(query.lower().encode()).hexdigest()
        return f"geocode:{provider}:{query_hash}"

    def _get_cached_result(
        self, query: str, provider: str
    ) -> Optional[list[GeoCoordinate]]:
        if not self.redis_client:
            return None

        try:
            cached = self.redis_client.get(self._get_cache_key(query, provider))
            if cached:
                logger.debug(f"Cache hit for query: {query[:50]}...")
                return [
                    GeoCoordinate(latitude=lat, longitude=lon)
                    for lat, lon in json.loads(cached)
                ]
        except Exception as e:
            logger.warning(f"Cache retrieval error: {e}")

        return None

    def _cache_result(
        self, query: str, provider: str, coordinates: list[GeoCoordinate]
    ) -> None:
        if not self.redis_client:
            return

        try:
            payload = json.dumps([[c.latitude, c.longitude] for c in coordinates])
            self.redis_client.setex(
                self._get_cache_key(query, provider), self.cache_ttl, payload
            )
        except Exception as e:
            logger.warning(f"Cache storage error: {e}")
