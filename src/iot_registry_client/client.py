"""Top level registry client, wiring transport, token cache, executor and facades."""

import logging

import httpx

from iot_registry_client.auth.providers import OpenIDTokenProvider, StaticTokenProvider, TokenProvider
from iot_registry_client.auth.token_cache import TokenCache
from iot_registry_client.config import ClientConfig
from iot_registry_client.resources.command import CommandClient
from iot_registry_client.resources.registry import ApplicationClient, DeviceClient
from iot_registry_client.telemetry import NoopTelemetry, OpenTelemetryHook, Telemetry
from iot_registry_client.transport.executor import RequestExecutor
from iot_registry_client.transport.retry import RetryPolicy

logger = logging.getLogger(__name__)


class RegistryClient:
    """Client for the registry and command APIs.

    One instance is meant to be shared by any number of concurrent tasks. The only
    state it keeps between calls is the cached access token.

    Args:
        config: Client configuration.
        http_client: Transport to use. Its ``base_url`` must point at the API root.
            When omitted, a client is created (and closed) by this instance.
        token_provider: Token source, overriding the one derived from ``config``.
        telemetry: Telemetry sink, overriding the one derived from ``config``.

    Example:
        ```python
        async with RegistryClient.from_env() as client:
            app = await client.applications.get("my-app")
            await client.devices.patch("my-app", "device-1", {"spec": {"core": {"disabled": True}}})
        ```
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        token_provider: TokenProvider | None = None,
        telemetry: Telemetry | None = None,
    ) -> None:
        self.config = config
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=config.registry_url, timeout=httpx.Timeout(config.timeout)
        )

        provider = token_provider or self._default_token_provider()
        self.token_cache = TokenCache(provider, config.token_refresh_margin) if provider else None
        if self.token_cache is None:
            logger.warning("No token provider configured, requests are sent unauthenticated")

        if telemetry is None:
            telemetry = OpenTelemetryHook() if config.telemetry_enabled else NoopTelemetry()

        self.executor = RequestExecutor(
            self._http,
            self.token_cache,
            retry_policy=RetryPolicy(
                max_retries=config.max_retries,
                backoff_factor=config.backoff_factor,
                max_backoff=config.max_backoff,
            ),
            telemetry=telemetry,
            timeout=config.timeout,
        )
        self.applications = ApplicationClient(self.executor)
        self.devices = DeviceClient(self.executor)
        self.commands = CommandClient(self.executor, default_response_timeout=config.command_timeout)

    @classmethod
    def from_env(cls, **overrides) -> "RegistryClient":
        """Create a client configured from the environment, see ``ClientConfig.from_env``."""
        return cls(ClientConfig.from_env(**overrides))

    def _default_token_provider(self) -> TokenProvider | None:
        if self.config.access_token is not None:
            return StaticTokenProvider(self.config.access_token, username=self.config.username)
        if self.config.uses_openid and self.config.client_id is not None:
            return OpenIDTokenProvider(
                issuer_url=self.config.issuer_url,
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
                http_client=self._http,
                scopes=self.config.scopes,
            )
        return None

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
