"""Database models for the address cache."""

from procura.database.base import Base
from procura.database.models import PostalAddressCacheModel

__all__ = ["Base", "PostalAddressCacheModel"]
