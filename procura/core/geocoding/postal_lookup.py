"""Postal code to address lookup.

The resolver depends only on the PostalLookupClient protocol. ViaCepClient
is the production implementation.
"""

import logging
from typing import Any, Protocol

import requests

from procura.core.geocoding.exceptions import (
    PostalCodeNotFound,
    PostalLookupUnavailable,
)
from procura.core.geocoding.models import PostalAddress
from procura.core.geocoding.postal_code import format_postal_code, normalise

logger = logging.getLogger(__name__)


class PostalLookupClient(Protocol):
    """Resolves a normalized postal code to a structured address."""

    def lookup(self, postal_code: str) -> PostalAddress:
        """Return the address, raising PostalCodeNotFound when unknown."""
        ...


class ViaCepClient:
    """Postal lookup against the ViaCEP web service."""

    def __init__(
        self,
        base_url: str = "https://viacep.com.br/ws",
        timeout: int = 10,
        user_agent: str = "procura-sp",
    ):
        """Initialize the ViaCEP client.

        Args:
            base_url: Service root, without trailing slash
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with every request
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent

    def lookup(self, postal_code: str) -> PostalAddress:
        """Fetch the address for a postal code.

        Args:
            postal_code: Postal code in any punctuation

        Returns:
            PostalAddress with the postal code formatted as NNNNN-NNN

        Raises:
            PostalCodeNotFound: ViaCEP does not know the postal code
            PostalLookupUnavailable: The service failed or answered garbage
        """
        digits = normalise(postal_code)
        url = f"{self.base_url}/{digits}/json/"

        try:
            response = requests.get(
                url,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
            if response.status_code == 404:
                raise PostalCodeNotFound(digits)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            logger.warning(f"ViaCEP timeout for {digits}: {e}")
            raise PostalLookupUnavailable(digits, "timeout") from e
        except requests.RequestException as e:
            logger.warning(f"ViaCEP request failed for {digits}: {e}")
            raise PostalLookupUnavailable(digits, str(e)) from e
        except ValueError as e:
            logger.warning(f"ViaCEP returned invalid JSON for {digits}: {e}")
            raise PostalLookupUnavailable(digits, "invalid JSON") from e

        return self._parse(digits, data)

    def _parse(self, digits: str, data: Any) -> PostalAddress:
        if not isinstance(data, dict):
            raise PostalLookupUnavailable(digits, "unexpected response shape")
        if data.get("erro"):
            logger.info(f"ViaCEP has no address for {digits}")
            raise PostalCodeNotFound(digits)

        address = PostalAddress(
            postal_code=format_postal_code(digits),
            street=data.get("logradouro") or "",
            complement=data.get("complemento") or "",
            neighborhood=data.get("bairro") or "",
            city=data.get("localidade") or "",
            state=data.get("uf") or "",
        )
        logger.debug(
            f"ViaCEP resolved {digits} to {address.street}, {address.neighborhood}"
        )
        return address
