"""IoT Registry Client - typed, authenticated access to a cloud IoT management API.

This library provides:
- Transparent OAuth2/OpenID Connect token handling with coalesced refreshes
- Optimistic-concurrency safe CRUD and merge-patch on applications and devices
- Commands to devices, one-way or waiting for a response
- Bounded retries of transient failures, with per-attempt telemetry

Example:
    ```python
    from iot_registry_client import Device, RegistryClient

    async with RegistryClient.from_env() as client:
        device = await client.devices.create(Device.new("my-app", "device-1"))
        device.metadata.labels["floor"] = "3"
        device = await client.devices.update(device)
    ```
"""

from iot_registry_client.client import RegistryClient
from iot_registry_client.config import ClientConfig
from iot_registry_client.errors import (
    AuthError,
    ClientError,
    ConfigError,
    ConflictError,
    NotFoundError,
    RegistryError,
    RequestTimeout,
    ServerError,
    TransportError,
)
from iot_registry_client.models import (
    Application,
    Collection,
    Command,
    CommandOutcome,
    CommandResult,
    Device,
    Metadata,
    ResourceEnvelope,
    ResourceRef,
    ScopedMetadata,
)

__version__ = "0.1.0"

__all__ = [
    "Application",
    "AuthError",
    "ClientConfig",
    "ClientError",
    "Collection",
    "Command",
    "CommandOutcome",
    "CommandResult",
    "ConfigError",
    "ConflictError",
    "Device",
    "Metadata",
    "NotFoundError",
    "RegistryClient",
    "RegistryError",
    "RequestTimeout",
    "ResourceEnvelope",
    "ResourceRef",
    "ScopedMetadata",
    "ServerError",
    "TransportError",
    "__version__",
]
