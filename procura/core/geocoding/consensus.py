"""Spatial consensus over provider results.

Results are grouped in a single agglomerative pass: each result joins the
nearest open cluster whose running-mean centroid lies within the consensus
radius, or opens a new one. The cluster with the most members wins. Ties go
to the cluster backed by more distinct providers, then to the one opened
first.
"""

import logging
import math
from typing import Optional, Sequence

from procura.core.geocoding.constants import (
    CONSENSUS_RADIUS_METERS,
    EARTH_RADIUS_METERS,
    HIGH_CONFIDENCE_MIN_SOURCES,
    MEDIUM_CONFIDENCE_MIN_SOURCES,
)
from procura.core.geocoding.models import (
    ConfidenceTier,
    ConsensusCluster,
    GeoCoordinate,
    PostalAddress,
    ProviderResult,
    ResolutionResult,
    ResolutionSource,
)

logger = logging.getLogger(__name__)


def haversine_distance(a: GeoCoordinate, b: GeoCoordinate) -> float:
    """Great-circle distance between two coordinates.

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance in meters
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class SpatialConsensusEngine:
    """Selects the best-supported coordinate among provider results."""

    def __init__(
        self,
        radius_meters: float = CONSENSUS_RADIUS_METERS,
        high_min_sources: int = HIGH_CONFIDENCE_MIN_SOURCES,
        medium_min_sources: int = MEDIUM_CONFIDENCE_MIN_SOURCES,
    ):
        """Initialize the engine.

        Args:
            radius_meters: Maximum distance from a cluster centroid to merge
            high_min_sources: Members needed for HIGH confidence
            medium_min_sources: Members needed for MEDIUM confidence

        Raises:
            ValueError: If the thresholds are not increasing
        """
        if radius_meters <= 0:
            raise ValueError("radius_meters must be positive")
        if medium_min_sources < 1 or high_min_sources <= medium_min_sources:
            raise ValueError(
                "confidence thresholds must satisfy 1 <= medium < high, "
                f"got medium={medium_min_sources}, high={high_min_sources}"
            )
        self.radius_meters = radius_meters
        self.high_min_sources = high_min_sources
        self.medium_min_sources = medium_min_sources

    def cluster(self, results: Sequence[ProviderResult]) -> list[ConsensusCluster]:
        """Group results into clusters in input order.

        Args:
            results: Accepted provider results

        Returns:
            Clusters in creation order
        """
        clusters: list[ConsensusCluster] = []
        for result in results:
            nearest: Optional[ConsensusCluster] = None
            nearest_distance = math.inf
            for candidate in clusters:
                distance = haversine_distance(candidate.centroid, result.coordinate)
                if distance < nearest_distance:
                    nearest, nearest_distance = candidate, distance

            if nearest is not None and nearest_distance <= self.radius_meters:
                nearest.add(result.coordinate, result.provider)
            else:
                clusters.append(
                    ConsensusCluster(
                        centroid=result.coordinate,
                        order=len(clusters),
                        providers=[result.provider],
                    )
                )
        return clusters

    def select(self, clusters: Sequence[ConsensusCluster]) -> Optional[ConsensusCluster]:
        """Pick the winning cluster, or None when there are no clusters."""
        if not clusters:
            return None
        return min(
            clusters,
            key=lambda c: (-c.member_count, -c.distinct_providers, c.order),
        )

    def tier_for(self, member_count: int) -> ConfidenceTier:
        if member_count >= self.high_min_sources:
            return ConfidenceTier.HIGH
        if member_count >= self.medium_min_sources:
            return ConfidenceTier.MEDIUM
        if member_count >= 1:
            return ConfidenceTier.LOW
        return ConfidenceTier.NONE

    def evaluate(
        self,
        results: Sequence[ProviderResult],
        address: Optional[PostalAddress] = None,
    ) -> Optional[ResolutionResult]:
        """Run clustering and selection over a result set.

        Args:
            results: Accepted provider results, in a stable order
            address: Address the results were geocoded from

        Returns:
            The consensus result, or None when no cluster could be formed
        """
        clusters = self.cluster(results)
        winner = self.select(clusters)
        if winner is None:
            logger.info("No provider results, no consensus")
            return None

        confidence = self.tier_for(winner.member_count)
        logger.info(
            f"Consensus from {len(results)} results in {len(clusters)} clusters: "
            f"{winner.member_count} members, {winner.distinct_providers} providers, "
            f"confidence {confidence.value}"
        )
        return ResolutionResult(
            coordinate=winner.centroid,
            confidence=confidence,
            source=ResolutionSource.CONSENSUS,
            providers=tuple(dict.fromkeys(winner.providers)),
            address=address,
        )
