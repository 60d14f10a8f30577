"""Tests for the command-line interface."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from procura.cli import cli
from procura.core.config import Settings
from procura.core.geocoding.exceptions import InvalidPostalCode, PostalCodeNotFound
from procura.core.geocoding.models import (
    ConfidenceTier,
    GeoCoordinate,
    PostalAddress,
    ResolutionResult,
    ResolutionSource,
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("procura.cli.configure_logging"):
        yield


@pytest.fixture
def mock_orchestrator():
    with patch("procura.cli.ResolutionContext") as mock_context, patch(
        "procura.cli.ResolutionOrchestrator"
    ) as mock_cls:
        orchestrator = MagicMock()
        mock_cls.return_value = orchestrator
        orchestrator.context = mock_context.from_settings.return_value
        yield orchestrator


class TestResolveCommand:
    """Tests for `resolve`."""

    def test_prints_json_result(self, runner, mock_orchestrator):
        mock_orchestrator.resolve.return_value = ResolutionResult(
            coordinate=GeoCoordinate(latitude=-23.5613, longitude=-46.6565),
            confidence=ConfidenceTier.HIGH,
            source=ResolutionSource.CONSENSUS,
            providers=("nominatim", "arcgis", "opencage"),
            address=PostalAddress(postal_code="01310-100", street="Avenida Paulista"),
        )

        result = runner.invoke(cli, ["resolve", "01310-100", "--numero", "1578"])

        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "lat": -23.5613,
            "lng": -46.6565,
            "confidence_tier": "high",
            "source_attribution": ["nominatim", "arcgis", "opencage"],
            "postal_code": "01310-100",
        }
        mock_orchestrator.resolve.assert_called_once_with("01310-100", "1578")
        mock_orchestrator.context.close.assert_called_once()

    def test_not_found_exits_with_error(self, runner, mock_orchestrator):
        mock_orchestrator.resolve.side_effect = PostalCodeNotFound("00000000")

        result = runner.invoke(cli, ["resolve", "00000-000"])

        assert result.exit_code == 1
        assert "Postal code not found" in result.output

    def test_invalid_postal_code_is_usage_error(self, runner, mock_orchestrator):
        mock_orchestrator.resolve.side_effect = InvalidPostalCode("123")

        result = runner.invoke(cli, ["resolve", "123"])

        assert result.exit_code == 2
        assert "Invalid postal code" in result.output


class TestProvidersCommand:
    """Tests for `providers`."""

    def test_lists_activity(self, runner):
        with patch(
            "procura.cli.settings", Settings(OPENCAGE_API_KEY="oc-key", MAPBOX_ACCESS_TOKEN=None)
        ):
            result = runner.invoke(cli, ["providers"])

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "nominatim: active",
            "arcgis: active",
            "opencage: active",
            "mapbox: inactive",
        ]


class TestInitDbCommand:
    """Tests for `init-db`."""

    def test_creates_table(self, runner, tmp_path):
        database = tmp_path / "cache.db"
        with patch("procura.cli.settings", Settings(DATABASE_URL=f"sqlite:///{database}")):
            result = runner.invoke(cli, ["init-db"])

        assert result.exit_code == 0
        assert database.exists()
