"""Tests for the permanent address cache."""

from unittest.mock import MagicMock, patch

from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from procura.core.geocoding.cache import AddressCacheStore
from procura.core.geocoding.models import ConfidenceTier, GeoCoordinate
from procura.database.models import PostalAddressCacheModel


class TestAddressCacheStore:
    """Tests for AddressCacheStore against SQLite."""

    def test_miss_returns_none(self, cache_store):
        assert cache_store.get("01310-100") is None

    def test_upsert_then_get(self, cache_store, paulista_address):
        """Test an entry round-trips with tier and attribution."""
        cache_store.upsert(
            "01310100",
            paulista_address,
            coordinate=GeoCoordinate(latitude=-23.5613, longitude=-46.6565),
            house_number="1578",
            confidence=ConfidenceTier.HIGH,
            sources=["nominatim", "arcgis", "opencage"],
        )

        entry = cache_store.get("01310-100")

        assert entry is not None
        assert entry.address.postal_code == "01310-100"
        assert entry.address.street == "Avenida Paulista"
        assert entry.coordinate == GeoCoordinate(latitude=-23.5613, longitude=-46.6565)
        assert entry.house_number == "1578"
        assert entry.confidence is ConfidenceTier.HIGH
        assert entry.sources == ("nominatim", "arcgis", "opencage")
        assert entry.cached_at is not None

    def test_address_only_entry(self, cache_store, paulista_address):
        cache_store.upsert("01310-100", paulista_address)

        entry = cache_store.get("01310-100")

        assert entry is not None
        assert entry.has_coordinate is False
        assert entry.confidence is None
        assert entry.sources == ()

    def test_upsert_keeps_one_row_per_postal_code(
        self, cache_store, paulista_address, db_session_factory
    ):
        """Test repeated writes converge to the last write."""
        cache_store.upsert("01310100", paulista_address)
        cache_store.upsert(
            "01310-100",
            paulista_address,
            coordinate=GeoCoordinate(latitude=-23.56, longitude=-46.65),
            confidence=ConfidenceTier.LOW,
            sources=["arcgis"],
        )

        with db_session_factory() as session:
            count = session.execute(
                select(func.count()).select_from(PostalAddressCacheModel)
            ).scalar_one()
        entry = cache_store.get("01310100")

        assert count == 1
        assert entry.coordinate == GeoCoordinate(latitude=-23.56, longitude=-46.65)
        assert entry.confidence is ConfidenceTier.LOW

    def test_upsert_without_house_number_keeps_stored_one(
        self, cache_store, paulista_address
    ):
        cache_store.upsert("01310-100", paulista_address, house_number="1578")
        cache_store.upsert("01310-100", paulista_address)

        assert cache_store.get("01310-100").house_number == "1578"

    def test_upsert_with_new_house_number_replaces_it(
        self, cache_store, paulista_address
    ):
        cache_store.upsert("01310-100", paulista_address, house_number="1578")
        cache_store.upsert("01310-100", paulista_address, house_number="900")

        assert cache_store.get("01310-100").house_number == "900"

    def test_get_returns_entry_with_other_house_number(
        self, cache_store, paulista_address
    ):
        """Test matching is by postal code; the caller checks the number."""
        cache_store.upsert("01310-100", paulista_address, house_number="1578")

        entry = cache_store.get("01310-100", house_number="900")

        assert entry is not None
        assert entry.matches_house_number("900") is False
        assert entry.matches_house_number("1578") is True
        assert entry.matches_house_number(None) is True


class TestAddressCacheStoreInvalidRows:
    """Rows that cannot be trusted are not served as coordinates."""

    def _corrupt(self, db_session_factory, latitude, longitude):
        with db_session_factory() as session:
            session.execute(
                update(PostalAddressCacheModel)
                .where(PostalAddressCacheModel.postal_code == "01310-100")
                .values(latitude=latitude, longitude=longitude)
            )
            session.commit()

    def test_out_of_range_coordinate_becomes_address_only(
        self, cache_store, paulista_address, db_session_factory
    ):
        cache_store.upsert(
            "01310-100",
            paulista_address,
            coordinate=GeoCoordinate(latitude=-23.5613, longitude=-46.6565),
        )
        self._corrupt(db_session_factory, 999.0, -46.6565)

        entry = cache_store.get("01310-100")

        assert entry is not None
        assert entry.has_coordinate is False
        assert entry.address.street == "Avenida Paulista"

    def test_coordinate_outside_municipal_bounds_is_dropped(
        self, cache_store, paulista_address, db_session_factory
    ):
        cache_store.upsert(
            "01310-100",
            paulista_address,
            coordinate=GeoCoordinate(latitude=-23.5613, longitude=-46.6565),
        )
        self._corrupt(db_session_factory, -22.9068, -43.1729)  # Rio de Janeiro

        entry = cache_store.get("01310-100")

        assert entry.coordinate is None

    def test_unparseable_row_is_a_miss(self, cache_store, paulista_address):
        cache_store.upsert("01310-100", paulista_address)

        def _invalid_row(row):
            return GeoCoordinate(latitude=row.latitude or 999, longitude=0)

        with patch.object(AddressCacheStore, "_to_entry", side_effect=_invalid_row):
            assert cache_store.get("01310-100") is None


class TestAddressCacheStoreFailures:
    """Cache faults are logged and swallowed."""

    def _broken_store(self):
        session_factory = MagicMock()
        session_factory.side_effect = OperationalError("SELECT", {}, Exception("down"))
        return AddressCacheStore(session_factory)

    def test_read_failure_is_a_miss(self):
        assert self._broken_store().get("01310-100") is None

    def test_write_failure_does_not_raise(self, paulista_address):
        self._broken_store().upsert(
            "01310-100",
            paulista_address,
            coordinate=GeoCoordinate(latitude=-23.56, longitude=-46.65),
        )
