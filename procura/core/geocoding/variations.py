"""Free-text query variations for a structured address."""

from typing import Optional

from procura.core.geocoding.constants import COUNTRY_NAME
from procura.core.geocoding.models import PostalAddress, QueryVariation


class AddressVariationGenerator:
    """Builds geocoder queries from most to least specific.

    The order only matters for attribution; every variation is sent to
    every provider.
    """

    def __init__(self, country: str = COUNTRY_NAME):
        self.country = country

    def generate(
        self, address: PostalAddress, house_number: Optional[str] = None
    ) -> list[QueryVariation]:
        """Return the deduplicated variations for an address.

        Args:
            address: Address from the postal lookup or the cache
            house_number: Optional normalised house number

        Returns:
            Variations ordered from most to least specific
        """
        street = address.street.strip()
        neighborhood = address.neighborhood.strip()
        city = address.city.strip()
        state = address.state.strip()

        candidates: list[tuple[str, list[str]]] = []
        if street and house_number:
            candidates.append(
                (
                    "full_address",
                    [street, house_number, neighborhood, city, state],
                )
            )
        if street:
            candidates.extend(
                [
                    ("street_neighborhood_city", [street, neighborhood, city, state]),
                    ("street_neighborhood", [street, neighborhood, city]),
                    ("street_city", [street, city, state]),
                ]
            )
        if neighborhood:
            candidates.append(("neighborhood_city", [neighborhood, city, state]))

        variations: list[QueryVariation] = []
        seen: set[str] = set()
        for strategy, parts in candidates:
            query = self._join(parts)
            key = query.lower()
            if key in seen:
                continue
            seen.add(key)
            variations.append(QueryVariation(strategy=strategy, query=query))
        return variations

    def _join(self, parts: list[str]) -> str:
        return ", ".join([p for p in parts if p] + [self.country])
