"""Authentication components of the registry client.

This module provides:
- Token providers (OpenID Connect client credentials, static tokens)
- A token cache that refreshes transparently and coalesces concurrent refreshes

Example:
    ```python
    from iot_registry_client.auth import StaticTokenProvider, TokenCache

    cache = TokenCache(StaticTokenProvider("my-api-token"))
    credential = await cache.get_valid_token()
    ```
"""

from iot_registry_client.auth.providers import (
    OpenIDTokenProvider,
    StaticTokenProvider,
    TokenProvider,
    TokenResponse,
)
from iot_registry_client.auth.token_cache import Credential, TokenCache

__all__ = [
    "Credential",
    "OpenIDTokenProvider",
    "StaticTokenProvider",
    "TokenCache",
    "TokenProvider",
    "TokenResponse",
]
