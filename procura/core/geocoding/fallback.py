"""Offline coordinate approximation for postal codes.

Used only when no provider consensus is reachable. The digit-derived offset
is a low-trust heuristic that spreads postal codes of one zone apart; it can
land on the wrong block, so results are always tagged ConfidenceTier.NONE.
"""

import logging
from typing import Mapping, Optional

from procura.core.geocoding.constants import (
    CITY_CENTROID,
    HOUSE_NUMBER_OFFSET_DIVISOR,
    POSTAL_CODE_OVERRIDES,
    POSTAL_ZONE_CENTROIDS,
    ZONE_OFFSET_SCALE,
)
from procura.core.geocoding.models import (
    MUNICIPAL_BOUNDS,
    BoundingBox,
    ConfidenceTier,
    GeoCoordinate,
    PostalAddress,
    ResolutionResult,
    ResolutionSource,
)
from procura.core.geocoding.postal_code import house_number_value, normalise

logger = logging.getLogger(__name__)


class RegionalFallbackTable:
    """Deterministic postal code to coordinate mapping that never fails."""

    def __init__(
        self,
        overrides: Mapping[str, tuple[float, float]] = POSTAL_CODE_OVERRIDES,
        zones: Mapping[str, tuple[float, float]] = POSTAL_ZONE_CENTROIDS,
        default: tuple[float, float] = CITY_CENTROID,
        bounds: BoundingBox = MUNICIPAL_BOUNDS,
    ):
        """Initialize the table.

        Args:
            overrides: Fixed coordinates keyed by 8-digit postal code
            zones: Zone centroids keyed by the first two digits
            default: Centroid for prefixes missing from *zones*
            bounds: Box every returned coordinate is clamped into
        """
        self.overrides = dict(overrides)
        self.zones = dict(zones)
        self.default = default
        self.bounds = bounds

    def approximate(
        self, postal_code: str, house_number: Optional[str] = None
    ) -> GeoCoordinate:
        """Approximate a coordinate for a postal code.

        Args:
            postal_code: Postal code in any punctuation
            house_number: Optional house number; its leading integer shifts
                the point slightly

        Returns:
            GeoCoordinate inside the municipal bounding box
        """
        digits = normalise(postal_code)

        if digits in self.overrides:
            lat, lon = self.overrides[digits]
            logger.debug(f"Using fixed coordinates for postal code {digits}")
            return GeoCoordinate(latitude=lat, longitude=lon)

        base = self.zones.get(digits[:2])
        if base is None:
            logger.debug(f"No zone for prefix {digits[:2]}, using city centroid")
            base = self.default

        lat_offset = int(digits[2:4]) / 100 * ZONE_OFFSET_SCALE
        lon_offset = int(digits[4:6]) / 100 * ZONE_OFFSET_SCALE
        number = house_number_value(house_number)
        number_offset = (number % 100) / HOUSE_NUMBER_OFFSET_DIVISOR if number else 0.0

        lat = base[0] + lat_offset + number_offset
        lon = base[1] + lon_offset + number_offset
        return GeoCoordinate(
            latitude=min(max(lat, self.bounds.south), self.bounds.north),
            longitude=min(max(lon, self.bounds.west), self.bounds.east),
        )

    def locate(
        self,
        postal_code: str,
        house_number: Optional[str] = None,
        address: Optional[PostalAddress] = None,
    ) -> ResolutionResult:
        """Build a fallback resolution result.

        Args:
            postal_code: Postal code in any punctuation
            house_number: Optional house number
            address: Address to attach to the result, if known

        Returns:
            ResolutionResult with source FALLBACK and confidence NONE
        """
        coordinate = self.approximate(postal_code, house_number)
        logger.info(
            f"Fallback coordinates for {postal_code}: "
            f"{coordinate.latitude}, {coordinate.longitude}"
        )
        return ResolutionResult(
            coordinate=coordinate,
            confidence=ConfidenceTier.NONE,
            source=ResolutionSource.FALLBACK,
            address=address,
        )
