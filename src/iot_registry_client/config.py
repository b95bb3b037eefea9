"""Client configuration resolved from multiple sources.

Resolution order (highest to lowest priority):
1. Explicitly provided value
2. Environment variable
3. .env file (python-dotenv)
4. Default value

Example:
    ```python
    from iot_registry_client.config import ClientConfig

    # Reads REGISTRY_URL, REGISTRY_ISSUER_URL, REGISTRY_CLIENT_ID, ...
    config = ClientConfig.from_env()

    # Explicit values win over the environment
    config = ClientConfig.from_env(registry_url="https://api.example.com", max_retries=5)
    ```

Security Considerations:
    - Secrets are never logged in full (masked with ***)
    - Only the source of a value is logged (env var name, default, ...)
    - Thread-safe dotenv loading with lock
"""

import logging
import os
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from dotenv import load_dotenv

from iot_registry_client.errors.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "REGISTRY_"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


class ConfigResolver:
    """Resolve configuration values from multiple sources with priority ordering.

    Explicitly provided values take precedence over environment variables, which
    take precedence over .env file values, which take precedence over defaults.
    Values loaded from a .env file end up in ``os.environ``, so they are looked
    up the same way as regular environment variables.
    """

    def __init__(self, dotenv_path: str | None = None, load_dotenv: bool = True):
        """Initialize the resolver.

        Args:
            dotenv_path: Path to .env file. If None, searches parent directories
                for a .env file (default behavior of python-dotenv).
            load_dotenv: Whether to load the .env file at all.
        """
        self._dotenv_loaded = False
        self._dotenv_lock = Lock()
        self._dotenv_path = dotenv_path

        if load_dotenv:
            self._ensure_dotenv_loaded()

    def _ensure_dotenv_loaded(self) -> None:
        if self._dotenv_loaded:
            return

        with self._dotenv_lock:
            if self._dotenv_loaded:
                return

            try:
                load_dotenv(dotenv_path=self._dotenv_path)
                logger.debug("Loaded .env file for configuration")
            except OSError as e:
                logger.warning(f"Failed to load .env file: {e}")
            # Mark as attempted either way
            self._dotenv_loaded = True

    def resolve(
        self,
        *,
        value: Any = None,
        env_var_name: str | None = None,
        default: Any = None,
        required: bool = False,
        secret: bool = False,
    ) -> Any:
        """Resolve a raw value.

        Args:
            value: Explicitly provided value (highest priority).
            env_var_name: Environment variable name to check.
            default: Default value if not found elsewhere.
            required: Raise ConfigError when nothing could be resolved.
            secret: Mask the value in log messages.

        Returns:
            The resolved value, or None if not found and not required.

        Raises:
            ConfigError: If required=True and the value was not found.
        """
        result = None
        source = None

        if value is not None:
            result = value
            source = "explicit parameter"
        elif env_var_name and env_var_name in os.environ:
            result = os.environ[env_var_name]
            source = f"environment variable '{env_var_name}'"
        elif default is not None:
            result = default
            source = "default value"

        if result is not None:
            shown = "***" if secret else result
            logger.debug(f"Resolved configuration from {source}: {shown}")

        if required and result is None:
            error_msg = "Required configuration value not found"
            if env_var_name:
                error_msg += f" (checked env var: {env_var_name})"
            raise ConfigError(error_msg, env_var_name=env_var_name)

        return result

    def resolve_int(self, *, value: int | None = None, env_var_name: str, default: int) -> int:
        raw = self.resolve(value=value, env_var_name=env_var_name, default=default)
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid integer for {env_var_name}: {raw!r}", env_var_name=env_var_name) from None

    def resolve_float(
        self, *, value: float | None = None, env_var_name: str, default: float | None
    ) -> float | None:
        raw = self.resolve(value=value, env_var_name=env_var_name, default=default)
        if raw is None:
            return None
        try:
            return float(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid number for {env_var_name}: {raw!r}", env_var_name=env_var_name) from None

    def resolve_bool(self, *, value: bool | None = None, env_var_name: str, default: bool) -> bool:
        raw = self.resolve(value=value, env_var_name=env_var_name, default=default)
        if isinstance(raw, bool):
            return raw
        normalized = str(raw).strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        raise ConfigError(f"Invalid boolean for {env_var_name}: {raw!r}", env_var_name=env_var_name)


@dataclass
class ClientConfig:
    """Options recognized by the registry client.

    Attributes:
        registry_url: Base URL of the cloud API.
        issuer_url: OpenID Connect issuer, used to discover the token endpoint.
        client_id: OAuth2 client id.
        client_secret: OAuth2 client secret.
        scopes: Scopes requested with each token.
        access_token: Static token (API key or access token), used instead of OIDC when set.
        username: User owning ``access_token``. When set the token is sent as HTTP
            Basic credentials, otherwise as a bearer token.
        token_refresh_margin: Seconds before expiry at which a token is refreshed.
        max_retries: Retries on transient failures, on top of the first attempt.
        backoff_factor: Base of the exponential backoff between retries.
        max_backoff: Upper bound of a single backoff delay, in seconds.
        timeout: Default per-call deadline in seconds, None for no deadline.
        command_timeout: Default time to wait for a device response to a command.
        telemetry_enabled: Report spans and metrics through OpenTelemetry.
    """

    registry_url: str
    issuer_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = field(default=None, repr=False)
    scopes: tuple[str, ...] = ()
    access_token: str | None = field(default=None, repr=False)
    username: str | None = None
    token_refresh_margin: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 0.5
    max_backoff: float = 10.0
    timeout: float | None = 30.0
    command_timeout: float | None = None
    telemetry_enabled: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must not be negative: {self.max_retries}")
        if self.token_refresh_margin < 0:
            raise ConfigError(f"token_refresh_margin must not be negative: {self.token_refresh_margin}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be positive: {self.timeout}")

    @property
    def uses_openid(self) -> bool:
        return self.access_token is None and self.issuer_url is not None

    @classmethod
    def from_env(
        cls,
        *,
        prefix: str = ENV_PREFIX,
        dotenv_path: str | None = None,
        load_dotenv: bool = True,
        **overrides: Any,
    ) -> "ClientConfig":
        """Build a configuration from explicit overrides, the environment and .env.

        Environment variable names are the upper-cased field names with the
        ``prefix`` prepended, except for ``registry_url`` which reads ``<prefix>URL``.
        ``<prefix>SCOPES`` is a space or comma separated list.

        Raises:
            ConfigError: If a value is invalid, the registry URL is missing, or
                neither a static token nor OIDC client credentials are configured.
        """
        unknown = set(overrides) - {f for f in cls.__dataclass_fields__}
        if unknown:
            raise ConfigError(f"Unknown configuration options: {', '.join(sorted(unknown))}")

        resolver = ConfigResolver(dotenv_path=dotenv_path, load_dotenv=load_dotenv)

        def env(name: str) -> str:
            return f"{prefix}{name.upper()}"

        registry_url = resolver.resolve(
            value=overrides.get("registry_url"), env_var_name=f"{prefix}URL", required=True
        )
        access_token = resolver.resolve(
            value=overrides.get("access_token"), env_var_name=env("access_token"), secret=True
        )
        username = resolver.resolve(value=overrides.get("username"), env_var_name=env("username"))
        issuer_url = resolver.resolve(value=overrides.get("issuer_url"), env_var_name=env("issuer_url"))
        client_id = resolver.resolve(value=overrides.get("client_id"), env_var_name=env("client_id"))
        client_secret = resolver.resolve(
            value=overrides.get("client_secret"), env_var_name=env("client_secret"), secret=True
        )

        if access_token is None:
            if issuer_url is None:
                raise ConfigError(
                    f"Either {env('access_token')} or {env('issuer_url')} must be set",
                    env_var_name=env("issuer_url"),
                )
            if client_id is None:
                raise ConfigError(
                    f"Required configuration value not found (checked env var: {env('client_id')})",
                    env_var_name=env("client_id"),
                )

        scopes = resolver.resolve(value=overrides.get("scopes"), env_var_name=env("scopes"), default=())
        if isinstance(scopes, str):
            scopes = tuple(s for s in scopes.replace(",", " ").split() if s)

        return cls(
            registry_url=registry_url,
            issuer_url=issuer_url,
            client_id=client_id,
            client_secret=client_secret,
            scopes=tuple(scopes),
            access_token=access_token,
            username=username,
            token_refresh_margin=resolver.resolve_float(
                value=overrides.get("token_refresh_margin"),
                env_var_name=env("token_refresh_margin"),
                default=cls.token_refresh_margin,
            ),
            max_retries=resolver.resolve_int(
                value=overrides.get("max_retries"), env_var_name=env("max_retries"), default=cls.max_retries
            ),
            backoff_factor=resolver.resolve_float(
                value=overrides.get("backoff_factor"), env_var_name=env("backoff_factor"), default=cls.backoff_factor
            ),
            max_backoff=resolver.resolve_float(
                value=overrides.get("max_backoff"), env_var_name=env("max_backoff"), default=cls.max_backoff
            ),
            timeout=resolver.resolve_float(
                value=overrides.get("timeout"), env_var_name=env("timeout"), default=cls.timeout
            ),
            command_timeout=resolver.resolve_float(
                value=overrides.get("command_timeout"), env_var_name=env("command_timeout"), default=None
            ),
            telemetry_enabled=resolver.resolve_bool(
                value=overrides.get("telemetry_enabled"),
                env_var_name=env("telemetry_enabled"),
                default=cls.telemetry_enabled,
            ),
        )
