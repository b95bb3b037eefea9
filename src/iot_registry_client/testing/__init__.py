"""Testing utilities for code using the registry client.

This module provides test doubles that speak the registry's wire protocol, so
code under test runs through the real executor, token cache and facades.

Modules:
    registry: ``FakeRegistry``, an in-memory registry and command API
    tokens: ``CountingTokenProvider``, a token provider recording its calls

Example:
    ```python
    import httpx

    from iot_registry_client import ClientConfig, RegistryClient
    from iot_registry_client.testing import CountingTokenProvider, FakeRegistry


    async def test_create_app():
        registry = FakeRegistry()
        http = httpx.AsyncClient(base_url="https://api.example.com", transport=registry.transport())
        client = RegistryClient(
            ClientConfig(registry_url="https://api.example.com"),
            http_client=http,
            token_provider=CountingTokenProvider(),
        )
        ...
    ```
"""

from iot_registry_client.telemetry import RecordingTelemetry
from iot_registry_client.testing.registry import FakeRegistry, apply_merge_patch
from iot_registry_client.testing.tokens import CountingTokenProvider

__all__ = [
    "CountingTokenProvider",
    "FakeRegistry",
    "RecordingTelemetry",
    "apply_merge_patch",
]
