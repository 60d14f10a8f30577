"""Test configuration."""

import os
from collections.abc import Generator
from pathlib import Path
from typing import List

import pytest
from pytest import Config

from procura.core.logging import configure_logging

# Load .env.test file for tests when present
try:
    from dotenv import load_dotenv

    project_dir = Path(__file__).parent.parent
    env_test_file = project_dir / ".env.test"
    if env_test_file.exists():
        load_dotenv(env_test_file, override=True)
except ImportError:
    # dotenv not available, skip loading
    pass

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


pytest_plugins: List[str] = [
    "tests.fixtures.db",
    "tests.fixtures.geocoding",
]


@fixture(scope="session", autouse=True)
def testing_environment() -> Generator[None, None, None]:
    """Mark the process as running tests."""
    os.environ["TESTING"] = "true"
    yield


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    # Configure logging for test environment
    configure_logging(testing=True)
    config.addinivalue_line("markers", "integration: mark test as an integration test")
