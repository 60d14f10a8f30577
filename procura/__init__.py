"""Postal code resolution and geocoding consensus for São Paulo."""
