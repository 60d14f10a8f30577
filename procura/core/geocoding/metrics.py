"""Prometheus metrics for postal-code resolution."""

from prometheus_client import Counter, Histogram

RESOLUTIONS_TOTAL = Counter(
    "procura_resolutions_total",
    "Postal code resolutions by source and confidence tier",
    ["source", "confidence"],
)

RESOLUTION_FAILURES_TOTAL = Counter(
    "procura_resolution_failures_total",
    "Resolutions that failed before producing a coordinate",
    ["reason"],
)

PROVIDER_LOOKUPS_TOTAL = Counter(
    "procura_provider_lookups_total",
    "Geocoder lookups by provider and outcome",
    ["provider", "outcome"],
)

CACHE_ERRORS_TOTAL = Counter(
    "procura_cache_errors_total",
    "Address cache errors by operation",
    ["operation"],
)

RESOLUTION_DURATION = Histogram(
    "procura_resolution_duration_seconds",
    "Wall time of a full resolution",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0, 60.0),
)
