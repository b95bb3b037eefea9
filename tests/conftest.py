"""Pytest configuration and shared fixtures for iot-registry-client tests."""

import httpx
import pytest

from iot_registry_client import ClientConfig, RegistryClient
from iot_registry_client.testing import CountingTokenProvider, FakeRegistry, RecordingTelemetry

BASE_URL = "https://api.example.com"


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    """Auto-cleanup: Clear configuration environment variables before each test.

    This prevents test pollution when testing configuration resolution.
    """
    import os

    test_prefixes = ("TEST_", "REGISTRY_")

    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in test_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def tokens():
    return CountingTokenProvider()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def config():
    # No backoff, so retries do not slow the tests down
    return ClientConfig(registry_url=BASE_URL, backoff_factor=0.0, max_retries=3)


@pytest.fixture
async def http_client(registry):
    async with httpx.AsyncClient(base_url=BASE_URL, transport=registry.transport()) as client:
        yield client


@pytest.fixture
def client(config, http_client, tokens, telemetry):
    return RegistryClient(config, http_client=http_client, token_provider=tokens, telemetry=telemetry)
