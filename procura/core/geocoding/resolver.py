"""Postal code resolution pipeline.

Composes the address cache, the postal lookup, the variation generator, the
provider pool, the consensus engine and the regional fallback into a single
``resolve`` operation. Once the postal code is known to the postal lookup,
``resolve`` always returns a coordinate; every internal fault lowers the
confidence tier instead of failing the call.
"""

import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Engine

from procura.core.config import Settings
from procura.core.db import create_db_engine, create_session_factory
from procura.core.geocoding import metrics
from procura.core.geocoding.cache import AddressCacheStore
from procura.core.geocoding.consensus import SpatialConsensusEngine
from procura.core.geocoding.exceptions import (
    InvalidPostalCode,
    PostalCodeNotFound,
    PostalLookupUnavailable,
)
from procura.core.geocoding.fallback import RegionalFallbackTable
from procura.core.geocoding.models import (
    ConfidenceTier,
    PostalAddress,
    ResolutionResult,
    ResolutionSource,
)
from procura.core.geocoding.postal_code import (
    format_postal_code,
    normalise,
    normalise_house_number,
)
from procura.core.geocoding.postal_lookup import PostalLookupClient, ViaCepClient
from procura.core.geocoding.providers import GeocodingProviderPool
from procura.core.geocoding.variations import AddressVariationGenerator
from procura.core.logging import get_resolution_logger


@dataclass
class ResolutionContext:
    """Collaborators of the resolver, built once at startup."""

    cache: AddressCacheStore
    postal_lookup: PostalLookupClient
    variations: AddressVariationGenerator
    pool: GeocodingProviderPool
    consensus: SpatialConsensusEngine
    fallback: RegionalFallbackTable
    engine: Optional[Engine] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResolutionContext":
        """Wire the production collaborators from settings.

        Args:
            settings: Application settings

        Returns:
            ResolutionContext owning a database engine
        """
        engine = create_db_engine(settings)
        return cls(
            cache=AddressCacheStore(create_session_factory(engine)),
            postal_lookup=ViaCepClient(
                base_url=settings.POSTAL_LOOKUP_URL,
                timeout=settings.POSTAL_LOOKUP_TIMEOUT,
                user_agent=settings.GEOCODING_USER_AGENT,
            ),
            variations=AddressVariationGenerator(),
            pool=GeocodingProviderPool.from_settings(settings),
            consensus=SpatialConsensusEngine(
                radius_meters=settings.CONSENSUS_RADIUS_METERS,
                high_min_sources=settings.CONFIDENCE_HIGH_MIN_SOURCES,
                medium_min_sources=settings.CONFIDENCE_MEDIUM_MIN_SOURCES,
            ),
            fallback=RegionalFallbackTable(),
            engine=engine,
        )

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


class ResolutionOrchestrator:
    """Resolves postal codes to coordinates through the fallback chain."""

    def __init__(self, context: ResolutionContext):
        self.context = context

    def resolve(
        self, postal_code: str, house_number: Optional[str] = None
    ) -> ResolutionResult:
        """Resolve a postal code, and optionally a house number, to a coordinate.

        Args:
            postal_code: Postal code in any punctuation
            house_number: Optional house number; blanks and "S/N" are ignored

        Returns:
            ResolutionResult with coordinate, confidence and attribution

        Raises:
            InvalidPostalCode: The input does not carry exactly 8 digits
            PostalCodeNotFound: The postal lookup does not know the code
            PostalLookupUnavailable: The postal lookup failed and no cached
                address exists
        """
        try:
            digits = normalise(postal_code)
        except InvalidPostalCode:
            metrics.RESOLUTION_FAILURES_TOTAL.labels(reason="invalid_input").inc()
            raise

        number = normalise_house_number(house_number)
        started = time.perf_counter()
        try:
            result = self._resolve(digits, number)
        except PostalCodeNotFound:
            metrics.RESOLUTION_FAILURES_TOTAL.labels(reason="not_found").inc()
            raise
        except PostalLookupUnavailable:
            metrics.RESOLUTION_FAILURES_TOTAL.labels(reason="lookup_unavailable").inc()
            raise
        finally:
            metrics.RESOLUTION_DURATION.observe(time.perf_counter() - started)

        metrics.RESOLUTIONS_TOTAL.labels(
            source=result.source.value, confidence=result.confidence.value
        ).inc()
        return result

    def _resolve(self, digits: str, house_number: Optional[str]) -> ResolutionResult:
        log = get_resolution_logger(format_postal_code(digits), house_number)
        ctx = self.context

        entry = ctx.cache.get(digits, house_number)
        if entry is not None and entry.has_coordinate and entry.matches_house_number(
            house_number
        ):
            log.info("cache_hit", confidence=entry.confidence)
            return ResolutionResult(
                coordinate=entry.coordinate,
                confidence=entry.confidence or ConfidenceTier.NONE,
                source=ResolutionSource.CACHE,
                providers=entry.sources,
                address=entry.address,
            )

        if entry is not None:
            log.info("cache_address_reused", has_coordinate=entry.has_coordinate)
            address = entry.address
        else:
            try:
                address = ctx.postal_lookup.lookup(digits)
            except PostalCodeNotFound:
                log.info("postal_code_not_found")
                raise
            except PostalLookupUnavailable as e:
                log.warning("postal_lookup_unavailable", error=str(e))
                raise

        result = self._geocode(digits, house_number, address, log)
        ctx.cache.upsert(
            digits,
            address,
            coordinate=result.coordinate,
            house_number=house_number,
            confidence=result.confidence,
            sources=result.source_attribution,
        )
        log.info(
            "resolved",
            source=result.source.value,
            confidence=result.confidence.value,
            latitude=result.coordinate.latitude,
            longitude=result.coordinate.longitude,
        )
        return result

    def _geocode(
        self,
        digits: str,
        house_number: Optional[str],
        address: PostalAddress,
        log,
    ) -> ResolutionResult:
        ctx = self.context
        if not address.has_street:
            log.info("fallback", reason="no_street")
            return ctx.fallback.locate(digits, house_number, address=address)

        variations = ctx.variations.generate(address, house_number)
        results = ctx.pool.query_all(variations)
        log.info(
            "provider_results",
            variations=len(variations),
            providers=ctx.pool.provider_names,
            accepted=len(results),
        )

        result = ctx.consensus.evaluate(results, address=address)
        if result is None:
            log.info("fallback", reason="no_consensus")
            return ctx.fallback.locate(digits, house_number, address=address)
        return result
