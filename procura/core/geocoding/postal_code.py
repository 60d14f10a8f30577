"""Postal code (CEP) validation and normalisation."""

import re
from typing import Optional

from procura.core.geocoding.constants import NO_HOUSE_NUMBER, POSTAL_CODE_DIGITS
from procura.core.geocoding.exceptions import InvalidPostalCode

_NON_DIGITS = re.compile(r"\D")
_LEADING_INT = re.compile(r"^\s*(\d+)")


def strip_postal_code(raw: str) -> str:
    """Remove every non-digit character."""
    return _NON_DIGITS.sub("", raw or "")


def validate(raw: str) -> bool:
    """Return True if *raw* carries exactly eight digits."""
    return len(strip_postal_code(raw)) == POSTAL_CODE_DIGITS


def normalise(raw: str) -> str:
    """
    Normalise to the bare 8-digit form, e.g. '01310-100' -> '01310100'.

    Raises InvalidPostalCode if the input does not have exactly 8 digits.
    """
    digits = strip_postal_code(raw)
    if len(digits) != POSTAL_CODE_DIGITS:
        raise InvalidPostalCode(raw)
    return digits


def format_postal_code(raw: str) -> str:
    """Canonical persisted form, e.g. '01310100' -> '01310-100'."""
    digits = normalise(raw)
    return f"{digits[:5]}-{digits[5:]}"


def normalise_house_number(raw: Optional[str]) -> Optional[str]:
    """Trim a house number; blanks and 'S/N' mean no number."""
    if raw is None:
        return None
    cleaned = " ".join(raw.split())
    if not cleaned or cleaned.upper() in NO_HOUSE_NUMBER:
        return None
    return cleaned


def house_number_value(house_number: Optional[str]) -> Optional[int]:
    """Leading integer of a house number ('221A' -> 221), if any."""
    if not house_number:
        return None
    match = _LEADING_INT.match(house_number)
    return int(match.group(1)) if match else None
