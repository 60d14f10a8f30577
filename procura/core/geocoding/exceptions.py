"""Exception hierarchy for postal-code resolution.

Only InvalidPostalCode, PostalCodeNotFound and PostalLookupUnavailable ever
leave the resolver. ProviderError and CacheError are raised internally and
swallowed where they occur.
"""


class GeocodingError(Exception):
    """Base exception for all resolution errors."""


class InvalidPostalCode(GeocodingError, ValueError):
    """The input is not an 8-digit postal code."""

    def __init__(self, postal_code: str):
        self.postal_code = postal_code
        super().__init__(f"Invalid postal code: '{postal_code}'")


class PostalCodeNotFound(GeocodingError):
    """The postal lookup has no address for this postal code."""

    def __init__(self, postal_code: str):
        self.postal_code = postal_code
        super().__init__(f"Postal code not found: '{postal_code}'")


class PostalLookupUnavailable(GeocodingError):
    """The postal lookup could not be reached or answered garbage."""

    def __init__(self, postal_code: str, detail: str):
        self.postal_code = postal_code
        self.detail = detail
        super().__init__(f"Postal lookup failed for '{postal_code}': {detail}")


class ProviderError(GeocodingError):
    """A single (variation, provider) lookup failed."""

    def __init__(self, provider: str, query: str, detail: str):
        self.provider = provider
        self.query = query
        self.detail = detail
        super().__init__(f"{provider} failed for '{query[:50]}': {detail}")


class CacheError(GeocodingError):
    """The address cache could not be read or written."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Address cache {operation} failed: {detail}")
