"""Structured exceptions for registry API errors."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from iot_registry_client.errors.models import ErrorInformation


class RegistryError(Exception):
    """Base exception for all errors raised by the registry client."""

    pass


class APIError(RegistryError):
    """An error reported by the API through an HTTP response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: "httpx.Response | None" = None,
        info: "ErrorInformation | None" = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response
        self.info = info


class AuthError(APIError):
    """Token acquisition failed, or the API rejected a freshly refreshed token.

    Fatal to the call that raised it, not to the client instance.
    """

    pass


class ClientError(APIError):
    """4xx client errors."""

    pass


class NotFoundError(ClientError):
    """404 Not Found."""

    pass


class ConflictError(ClientError):
    """409 Conflict, the resource version did not match."""

    pass


class ServerError(APIError):
    """5xx server errors, after exhausting retries."""

    pass


class TransportError(RegistryError):
    """Network-level failure after exhausting retries."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class RequestTimeout(RegistryError):
    """The caller supplied deadline expired before the call completed."""

    def __init__(self, message: str, timeout: float | None = None):
        super().__init__(message)
        self.timeout = timeout


class ConfigError(RegistryError):
    """Raised when client configuration is missing or invalid.

    Attributes:
        env_var_name: The environment variable that was checked (if any).
    """

    def __init__(self, message: str, env_var_name: str | None = None):
        super().__init__(message)
        self.env_var_name = env_var_name
