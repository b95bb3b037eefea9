"""Error taxonomy of the registry client."""

from iot_registry_client.errors.exceptions import (
    APIError,
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
from iot_registry_client.errors.handler import Outcome, classify_status, raise_for_status
from iot_registry_client.errors.models import ErrorInformation

__all__ = [
    "APIError",
    "AuthError",
    "ClientError",
    "ConfigError",
    "ConflictError",
    "ErrorInformation",
    "NotFoundError",
    "Outcome",
    "RegistryError",
    "RequestTimeout",
    "ServerError",
    "TransportError",
    "classify_status",
    "raise_for_status",
]
