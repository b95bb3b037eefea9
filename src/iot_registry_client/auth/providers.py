"""Token providers, the sources a TokenCache obtains bearer tokens from.

A provider performs one token endpoint exchange per call and knows nothing
about caching. Two implementations are available:

- ``OpenIDTokenProvider``: OAuth2 client credentials against an OpenID Connect
  issuer, with refresh token support.
- ``StaticTokenProvider``: a fixed access token or API token that never expires.

Example:
    ```python
    import httpx

    from iot_registry_client.auth import OpenIDTokenProvider, TokenCache

    provider = OpenIDTokenProvider(
        issuer_url="https://sso.example.com/realms/iot",
        client_id="my-service",
        client_secret="...",
        http_client=httpx.AsyncClient(),
    )
    cache = TokenCache(provider)
    ```
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from iot_registry_client.errors.exceptions import AuthError
from iot_registry_client.errors.models import ErrorInformation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenResponse:
    """Result of a token endpoint exchange.

    Attributes:
        access_token: The bearer token.
        expires_in: Lifetime in seconds, None if the token does not expire.
        refresh_token: Token usable for a later refresh grant, if issued.
        username: Send the token as the password of HTTP Basic credentials for
            this user, instead of as a bearer token.
    """

    access_token: str = field(repr=False)
    expires_in: float | None = None
    refresh_token: str | None = field(default=None, repr=False)
    username: str | None = None


class TokenProvider(Protocol):
    """Anything able to exchange credentials for a bearer token."""

    async def fetch_token(self, refresh_token: str | None = None) -> TokenResponse:
        """Fetch a new token, using ``refresh_token`` when one is given.

        Raises:
            AuthError: If the exchange failed for any reason.
        """
        ...


class StaticTokenProvider:
    """Provide a fixed token, for API keys or externally managed access tokens.

    Platform API keys and access tokens belong to a user and are sent as HTTP
    Basic credentials, ``username`` being the user and the token the password.
    Without ``username`` the token is sent as a bearer token.
    """

    def __init__(self, access_token: str, username: str | None = None):
        if not access_token:
            raise ValueError("access_token must not be empty")
        if username is not None and not username:
            raise ValueError("username must not be empty")
        self._access_token = access_token
        self.username = username

    async def fetch_token(self, refresh_token: str | None = None) -> TokenResponse:
        return TokenResponse(access_token=self._access_token, username=self.username)


class OpenIDTokenProvider:
    """Obtain tokens from an OpenID Connect issuer using the client credentials grant.

    The token endpoint is discovered from ``<issuer>/.well-known/openid-configuration``
    on first use, unless ``token_endpoint`` is given explicitly. When a refresh token
    is passed to ``fetch_token`` the refresh grant is tried first; if the issuer
    rejects it, a fresh client credentials grant is performed instead.

    Args:
        issuer_url: The issuer URL.
        client_id: OAuth2 client id.
        client_secret: OAuth2 client secret.
        http_client: Client used for discovery and token requests.
        scopes: Scopes to request.
        token_endpoint: Skip discovery and use this endpoint.
    """

    DISCOVERY_PATH = ".well-known/openid-configuration"

    def __init__(
        self,
        *,
        issuer_url: str,
        client_id: str,
        client_secret: str | None,
        http_client: httpx.AsyncClient,
        scopes: tuple[str, ...] = (),
        token_endpoint: str | None = None,
    ) -> None:
        self.issuer_url = issuer_url.rstrip("/")
        self.client_id = client_id
        self._client_secret = client_secret
        self._http = http_client
        self.scopes = scopes
        self._token_endpoint = token_endpoint

    async def _discover_token_endpoint(self) -> str:
        if self._token_endpoint is not None:
            return self._token_endpoint

        url = f"{self.issuer_url}/{self.DISCOVERY_PATH}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as e:
            raise AuthError(f"Failed to discover OpenID configuration at {url}: {e}") from e

        if not response.is_success:
            raise AuthError(
                f"OpenID discovery failed with HTTP {response.status_code}",
                status_code=response.status_code,
                response=response,
            )

        try:
            endpoint = response.json()["token_endpoint"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(f"Malformed OpenID configuration at {url}") from e

        logger.debug(f"Discovered token endpoint: {endpoint}")
        self._token_endpoint = endpoint
        return endpoint

    async def fetch_token(self, refresh_token: str | None = None) -> TokenResponse:
        if refresh_token is not None:
            try:
                return await self._grant({"grant_type": "refresh_token", "refresh_token": refresh_token})
            except AuthError as e:
                logger.info(f"Refresh grant rejected, requesting a new token: {e}")

        form = {"grant_type": "client_credentials"}
        if self.scopes:
            form["scope"] = " ".join(self.scopes)
        return await self._grant(form)

    async def _grant(self, form: dict[str, str]) -> TokenResponse:
        endpoint = await self._discover_token_endpoint()
        data = {**form, "client_id": self.client_id}
        if self._client_secret is not None:
            data["client_secret"] = self._client_secret

        try:
            response = await self._http.post(endpoint, data=data, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            raise AuthError(f"Token request failed: {e}") from e

        if not response.is_success:
            info = ErrorInformation.from_response(response)
            detail = f": {info}" if info else ""
            raise AuthError(
                f"Token endpoint responded with HTTP {response.status_code}{detail}",
                status_code=response.status_code,
                response=response,
                info=info,
            )

        return self._parse(response)

    @staticmethod
    def _parse(response: httpx.Response) -> TokenResponse:
        try:
            payload: dict[str, Any] = response.json()
            access_token = payload["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError("Malformed token response", status_code=response.status_code, response=response) from e

        if not isinstance(access_token, str) or not access_token:
            raise AuthError("Malformed token response: empty access token", status_code=response.status_code)

        expires_in = payload.get("expires_in")
        try:
            expires_in = float(expires_in) if expires_in is not None else None
        except (TypeError, ValueError) as e:
            raise AuthError(f"Malformed token response: invalid expires_in {expires_in!r}") from e

        return TokenResponse(
            access_token=access_token,
            expires_in=expires_in,
            refresh_token=payload.get("refresh_token"),
        )
