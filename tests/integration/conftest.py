"""
Pytest configuration for integration tests.

Loads .env once at startup and snapshots the backend settings, since the
unit-test fixtures scrub CHATBRIDGE_* variables from the environment.
"""

import os

import pytest
from dotenv import load_dotenv

from chatbridge.config import get_provider_name, load_provider_config

_LIVE = {}


def pytest_configure(config):
    """Load .env file before tests run."""
    load_dotenv()
    _LIVE["provider"] = get_provider_name()
    _LIVE["config"] = load_provider_config()
    _LIVE["model"] = os.environ.get("CHATBRIDGE_TEST_MODEL", "").strip()


@pytest.fixture
def live_settings():
    """(provider name, ProviderConfig, model) for the configured backend."""
    if not _LIVE.get("model"):
        pytest.skip("CHATBRIDGE_TEST_MODEL not set in .env")
    return _LIVE["provider"], _LIVE["config"], _LIVE["model"]
