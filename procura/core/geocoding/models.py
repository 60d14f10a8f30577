"""Typed models for postal-code resolution."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from procura.core.geocoding.constants import SAO_PAULO_BOUNDS


class ConfidenceTier(str, Enum):
    """Trust label attached to a resolved coordinate."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class ResolutionSource(str, Enum):
    """Which tier of the pipeline produced a coordinate."""

    CACHE = "cache"
    CONSENSUS = "consensus"
    FALLBACK = "fallback"


class GeoCoordinate(BaseModel):
    """A WGS84 point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(
        ..., ge=-180, le=180, description="Longitude in decimal degrees"
    )


class BoundingBox(BaseModel):
    """Geographic bounding box."""

    model_config = ConfigDict(frozen=True)

    north: float = Field(..., description="Northern latitude boundary")
    south: float = Field(..., description="Southern latitude boundary")
    east: float = Field(..., description="Eastern longitude boundary")
    west: float = Field(..., description="Western longitude boundary")

    @classmethod
    def from_bounds(cls, bounds: dict[str, float]) -> "BoundingBox":
        """Create a bounding box from a min/max lat/lon mapping."""
        return cls(
            north=bounds["max_lat"],
            south=bounds["min_lat"],
            east=bounds["max_lon"],
            west=bounds["min_lon"],
        )

    def contains(self, coordinate: GeoCoordinate) -> bool:
        """Check whether a coordinate lies inside the box (edges included)."""
        return (
            self.south <= coordinate.latitude <= self.north
            and self.west <= coordinate.longitude <= self.east
        )

    @property
    def name(self) -> str:
        """Get a descriptive name for this bounding box.

        Returns:
            str: Description of the box's location
        """
        return f"Area ({self.south:.2f}, {self.west:.2f}) to ({self.north:.2f}, {self.east:.2f})"


MUNICIPAL_BOUNDS = BoundingBox.from_bounds(SAO_PAULO_BOUNDS)


class PostalAddress(BaseModel):
    """Structured address returned by the postal lookup."""

    model_config = ConfigDict(frozen=True)

    postal_code: str = Field(..., description="Postal code formatted as NNNNN-NNN")
    street: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    complement: str = ""

    @property
    def has_street(self) -> bool:
        return bool(self.street.strip())


class CacheEntry(BaseModel):
    """A persisted resolution for one postal code."""

    model_config = ConfigDict(frozen=True)

    address: PostalAddress
    coordinate: Optional[GeoCoordinate] = None
    house_number: Optional[str] = None
    confidence: Optional[ConfidenceTier] = None
    sources: tuple[str, ...] = ()
    cached_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_coordinate(self) -> bool:
        return self.coordinate is not None

    def matches_house_number(self, house_number: Optional[str]) -> bool:
        """An entry serves a request unless both carry different numbers."""
        if house_number is None or self.house_number is None:
            return True
        return self.house_number == house_number


class QueryVariation(BaseModel):
    """A free-text geocoder query tagged with the strategy that built it."""

    model_config = ConfigDict(frozen=True)

    strategy: str
    query: str


class ProviderResult(BaseModel):
    """One accepted coordinate from one provider for one variation."""

    model_config = ConfigDict(frozen=True)

    provider: str
    strategy: str
    coordinate: GeoCoordinate
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ConsensusCluster:
    """Group of provider results within the consensus radius."""

    centroid: GeoCoordinate
    order: int
    member_count: int = 1
    providers: list[str] = field(default_factory=list)

    @property
    def distinct_providers(self) -> int:
        return len(set(self.providers))

    def add(self, coordinate: GeoCoordinate, provider: str) -> None:
        """Merge a coordinate, keeping the centroid as the running mean."""
        count = self.member_count
        self.centroid = GeoCoordinate(
            latitude=(self.centroid.latitude * count + coordinate.latitude)
            / (count + 1),
            longitude=(self.centroid.longitude * count + coordinate.longitude)
            / (count + 1),
        )
        self.member_count = count + 1
        self.providers.append(provider)


class ResolutionResult(BaseModel):
    """Final coordinate handed to the calling domain service.

    Callers must not assume HIGH confidence; LOW and NONE mean the
    coordinate is usable but approximate.
    """

    model_config = ConfigDict(frozen=True)

    coordinate: GeoCoordinate
    confidence: ConfidenceTier
    source: ResolutionSource
    providers: tuple[str, ...] = ()
    address: Optional[PostalAddress] = None

    @property
    def source_attribution(self) -> list[str]:
        if self.source is ResolutionSource.CACHE:
            return ["cache", *self.providers]
        if self.source is ResolutionSource.FALLBACK:
            return ["fallback"]
        return list(self.providers)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the outbound shape consumed by domain services."""
        return {
            "lat": self.coordinate.latitude,
            "lng": self.coordinate.longitude,
            "confidence_tier": self.confidence.value,
            "source_attribution": self.source_attribution,
            "postal_code": self.address.postal_code if self.address else None,
        }
