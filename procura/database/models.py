"""SQLAlchemy models for the permanent address cache."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Float, Integer, Text

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PostalAddressCacheModel(Base):
    """One resolved postal code.

    Entries never expire. The postal code is the only uniqueness key; the
    house number is a tiebreak recorded alongside the coordinate.
    """

    __tablename__ = "postal_address_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    postal_code = Column(Text, nullable=False, unique=True, index=True)
    street = Column(Text, nullable=False, default="")
    complement = Column(Text, nullable=False, default="")
    neighborhood = Column(Text, nullable=False, default="")
    city = Column(Text, nullable=False, default="")
    state = Column(Text, nullable=False, default="")

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    house_number = Column(Text, nullable=True)
    confidence = Column(Text, nullable=True)
    sources = Column(Text, nullable=True)  # comma separated attribution

    # Timestamps
    cached_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )
