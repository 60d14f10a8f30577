"""Permanent address cache backed by SQLAlchemy.

The cache is a performance optimization. Read and write failures are logged
and reported to the caller as a miss or a no-op, never raised.
"""

import logging
from datetime import UTC, datetime
from typing import Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from procura.core.geocoding import metrics
from procura.core.geocoding.exceptions import CacheError
from procura.core.geocoding.models import (
    MUNICIPAL_BOUNDS,
    CacheEntry,
    ConfidenceTier,
    GeoCoordinate,
    PostalAddress,
)
from procura.core.geocoding.postal_code import format_postal_code
from procura.database.models import PostalAddressCacheModel

logger = logging.getLogger(__name__)


class AddressCacheStore:
    """Key/value persistence of postal addresses and coordinates.

    At most one row exists per postal code. Upserts overwrite address,
    coordinate and timestamps, so concurrent writers converge to the last
    write.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        """Initialize the store.

        Args:
            session_factory: Factory producing sessions on the cache database
        """
        self.session_factory = session_factory

    def get(
        self, postal_code: str, house_number: Optional[str] = None
    ) -> Optional[CacheEntry]:
        """Look up a postal code.

        Matching uses the postal code alone. When *house_number* is given and
        the entry holds a different one, the entry is still returned and the
        caller decides whether it applies (see CacheEntry.matches_house_number).

        Args:
            postal_code: Postal code in any punctuation
            house_number: Optional normalised house number

        Returns:
            The cache entry, or None on a miss or a read failure
        """
        key = format_postal_code(postal_code)
        try:
            entry = self._fetch(key)
        except CacheError as e:
            metrics.CACHE_ERRORS_TOTAL.labels(operation="read").inc()
            logger.warning(f"Cache retrieval error for {key}: {e}")
            return None

        if entry is None:
            logger.debug(f"Cache miss for postal code {key}")
            return None

        if not entry.matches_house_number(house_number):
            logger.debug(
                f"Cache entry for {key} holds house number {entry.house_number}, "
                f"requested {house_number}"
            )
        return entry

    def upsert(
        self,
        postal_code: str,
        address: PostalAddress,
        coordinate: Optional[GeoCoordinate] = None,
        house_number: Optional[str] = None,
        confidence: Optional[ConfidenceTier] = None,
        sources: Sequence[str] = (),
    ) -> None:
        """Insert or overwrite the entry for a postal code.

        A write without a house number keeps the stored one.

        Args:
            postal_code: Postal code in any punctuation
            address: Address fields to store
            coordinate: Optional resolved coordinate
            house_number: Optional house number the coordinate was resolved for
            confidence: Confidence tier of the coordinate
            sources: Source attribution of the coordinate
        """
        key = format_postal_code(postal_code)
        try:
            self._write(
                key, address, coordinate, house_number, confidence, sources
            )
            logger.debug(f"Cached address for postal code {key}")
        except CacheError as e:
            metrics.CACHE_ERRORS_TOTAL.labels(operation="write").inc()
            logger.warning(f"Cache storage error for {key}: {e}")

    def _fetch(self, key: str) -> Optional[CacheEntry]:
        try:
            with self.session_factory() as session:
                row = session.execute(
                    select(PostalAddressCacheModel).where(
                        PostalAddressCacheModel.postal_code == key
                    )
                ).scalar_one_or_none()
                return self._to_entry(row) if row is not None else None
        except (SQLAlchemyError, ValidationError) as e:
            raise CacheError("read", str(e)) from e

    def _write(
        self,
        key: str,
        address: PostalAddress,
        coordinate: Optional[GeoCoordinate],
        house_number: Optional[str],
        confidence: Optional[ConfidenceTier],
        sources: Sequence[str],
    ) -> None:
        now = datetime.now(UTC)
        values = {
            "postal_code": key,
            "street": address.street,
            "complement": address.complement,
            "neighborhood": address.neighborhood,
            "city": address.city,
            "state": address.state,
            "latitude": coordinate.latitude if coordinate else None,
            "longitude": coordinate.longitude if coordinate else None,
            "house_number": house_number,
            "confidence": confidence.value if confidence else None,
            "sources": ",".join(sources) if sources else None,
            "cached_at": now,
            "updated_at": now,
        }
        try:
            with self.session_factory() as session:
                insert = (
                    pg_insert
                    if session.get_bind().dialect.name == "postgresql"
                    else sqlite_insert
                )
                stmt = insert(PostalAddressCacheModel).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[PostalAddressCacheModel.postal_code],
                    set_={
                        "street": stmt.excluded.street,
                        "complement": stmt.excluded.complement,
                        "neighborhood": stmt.excluded.neighborhood,
                        "city": stmt.excluded.city,
                        "state": stmt.excluded.state,
                        "latitude": stmt.excluded.latitude,
                        "longitude": stmt.excluded.longitude,
                        "house_number": func.coalesce(
                            stmt.excluded.house_number,
                            PostalAddressCacheModel.house_number,
                        ),
                        "confidence": stmt.excluded.confidence,
                        "sources": stmt.excluded.sources,
                        "cached_at": stmt.excluded.cached_at,
                        "updated_at": stmt.excluded.updated_at,
                    },
                )
                session.execute(stmt)
                session.commit()
        except SQLAlchemyError as e:
            raise CacheError("write", str(e)) from e

    @staticmethod
    def _to_entry(row: PostalAddressCacheModel) -> CacheEntry:
        coordinate = None
        if row.latitude is not None and row.longitude is not None:
            try:
                coordinate = GeoCoordinate(latitude=row.latitude, longitude=row.longitude)
            except ValidationError:
                coordinate = None
            if coordinate is None or not MUNICIPAL_BOUNDS.contains(coordinate):
                # Treated as address-only so the postal code is geocoded again
                logger.warning(
                    f"Discarding cached coordinate ({row.latitude}, {row.longitude}) "
                    f"for {row.postal_code}: outside municipal bounds"
                )
                coordinate = None
        confidence = None
        if row.confidence:
            try:
                confidence = ConfidenceTier(row.confidence)
            except ValueError:
                logger.warning(
                    f"Unknown confidence '{row.confidence}' cached for {row.postal_code}"
                )
        return CacheEntry(
            address=PostalAddress(
                postal_code=row.postal_code,
                street=row.street or "",
                complement=row.complement or "",
                neighborhood=row.neighborhood or "",
                city=row.city or "",
                state=row.state or "",
            ),
            coordinate=coordinate,
            house_number=row.house_number,
            confidence=confidence,
            sources=tuple(s for s in (row.sources or "").split(",") if s),
            cached_at=row.cached_at,
            updated_at=row.updated_at,
        )
