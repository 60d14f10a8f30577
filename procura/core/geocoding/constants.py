"""Geographic constants for postal-code geocoding.

This module contains the municipal bounding box used to reject geocoder
results outside Greater São Paulo, the consensus defaults and the offline
fallback tables.
"""

# Greater São Paulo bounds
SAO_PAULO_BOUNDS = {
    "min_lat": -24.0,  # Southern zone
    "max_lat": -22.3,  # Northern zone
    "min_lon": -47.0,  # Western zone
    "max_lon": -46.2,  # Eastern zone
}

POSTAL_CODE_DIGITS = 8

# House numbers that mean "no number"
NO_HOUSE_NUMBER = frozenset({"S/N", "SN", "S/Nº", "SEM NUMERO", "SEM NÚMERO"})

# Consensus defaults
CONSENSUS_RADIUS_METERS = 100.0
HIGH_CONFIDENCE_MIN_SOURCES = 3
MEDIUM_CONFIDENCE_MIN_SOURCES = 2

EARTH_RADIUS_METERS = 6371000.0

COUNTRY_NAME = "Brasil"

# Fixed coordinates for well-known postal codes
POSTAL_CODE_OVERRIDES: dict[str, tuple[float, float]] = {
    "01310100": (-23.5613, -46.6565),  # Av. Paulista
    "01000000": (-23.5505, -46.6333),  # Centro - Praça da Sé
    "01234000": (-23.5505, -46.6333),  # Centro
    "02000000": (-23.4800, -46.6200),  # Zona Norte
    "03000000": (-23.5743, -46.5216),  # Zona Leste
    "04000000": (-23.6000, -46.6500),  # Zona Sul
    "05000000": (-23.5500, -46.7200),  # Zona Oeste
    "03472127": (-23.5742983, -46.5215913),  # Rua Sales de Oliveira - Jardim Haia do Carrão
    "04284020": (-23.6066347, -46.6018006),  # Rua Ateneu - Vila Moinho Velho
}

# Zone centroids keyed by the first two digits of the postal code
POSTAL_ZONE_CENTROIDS: dict[str, tuple[float, float]] = {
    "01": (-23.5505, -46.6333),  # Centro
    "02": (-23.4800, -46.6200),  # Zona Norte
    "03": (-23.5743, -46.5216),  # Zona Leste
    "04": (-23.6000, -46.6500),  # Zona Sul
    "05": (-23.5500, -46.7200),  # Zona Oeste
    "06": (-23.4500, -46.7000),  # Zona Norte
    "07": (-23.5000, -46.4000),  # Zona Leste
    "08": (-23.6500, -46.6200),  # Zona Sul
    "09": (-23.7000, -46.7000),  # Zona Sul
}

# São Paulo centre, used for prefixes outside the zone table
CITY_CENTROID: tuple[float, float] = (-23.5505, -46.6333)

# Perturbation scale applied to zone centroids, in degrees
ZONE_OFFSET_SCALE = 0.01
HOUSE_NUMBER_OFFSET_DIVISOR = 10000.0
