"""Bearer token cache with demand-driven, coalescing refresh.

The cached ``Credential`` is the only mutable state shared between concurrent
callers of a client. It is replaced wholesale by a refresh and never mutated.
At most one refresh is outstanding at any time: callers that find the credential
missing or about to expire while a refresh is in flight await that same refresh
and receive its result, or its ``AuthError``.

There is no background timer, expiry is checked lazily before each use.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from iot_registry_client.auth.providers import TokenProvider, TokenResponse
from iot_registry_client.errors.exceptions import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """A bearer credential and its expiry.

    Attributes:
        access_token: The opaque bearer token.
        expires_at: When the token expires, None if it never does.
        refresh_token: Optional opaque token for the refresh grant.
        username: Set for tokens sent as HTTP Basic credentials.
    """

    access_token: str = field(repr=False)
    expires_at: datetime | None = None
    refresh_token: str | None = field(default=None, repr=False)
    username: str | None = None

    @classmethod
    def from_token_response(cls, token: TokenResponse, now: datetime | None = None) -> "Credential":
        now = now or datetime.now(UTC)
        expires_at = None
        if token.expires_in is not None:
            expires_at = now + timedelta(seconds=token.expires_in)
        return cls(
            access_token=token.access_token,
            expires_at=expires_at,
            refresh_token=token.refresh_token,
            username=token.username,
        )

    @property
    def authorization(self) -> str:
        """Value of the ``Authorization`` header for this credential."""
        if self.username is None:
            return f"Bearer {self.access_token}"
        basic = base64.b64encode(f"{self.username}:{self.access_token}".encode()).decode("ascii")
        return f"Basic {basic}"

    def expires_before(self, margin: timedelta, now: datetime | None = None) -> bool:
        """Check if the credential expires within ``margin`` from now."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        return self.expires_at - now <= margin


class TokenCache:
    """Hold the current credential and refresh it on demand.

    Args:
        provider: Where new tokens come from.
        refresh_margin: Seconds before expiry at which a credential is considered
            stale and gets refreshed.
    """

    def __init__(self, provider: TokenProvider, refresh_margin: float = 30.0) -> None:
        self._provider = provider
        self.refresh_margin = timedelta(seconds=refresh_margin)
        self._credential: Credential | None = None
        self._inflight: asyncio.Future[Credential] | None = None

    @property
    def credential(self) -> Credential | None:
        """The currently cached credential, without validity checks."""
        return self._credential

    def _is_fresh(self, credential: Credential | None) -> bool:
        return credential is not None and not credential.expires_before(self.refresh_margin)

    async def get_valid_token(self) -> Credential:
        """Return a credential that is not within the safety margin of expiring.

        Raises:
            AuthError: If a refresh was needed and failed.
        """
        credential = self._credential
        if self._is_fresh(credential):
            return credential
        return await self._refresh()

    async def force_refresh(self, stale: Credential | None = None) -> Credential:
        """Fetch a new credential and replace the cached one.

        Args:
            stale: The credential the caller found to be rejected. If the cache
                already moved on to a different credential in the meantime, that
                one is returned without another refresh.

        Raises:
            AuthError: If the refresh failed.
        """
        current = self._credential
        if stale is not None and current is not None and current is not stale and self._is_fresh(current):
            return current
        return await self._refresh()

    async def _refresh(self) -> Credential:
        # Single synchronization point: join an in-flight refresh, or start one.
        # Check-and-set happens without awaiting, so it is atomic on the event loop.
        if self._inflight is None:
            loop = asyncio.get_running_loop()
            self._inflight = loop.create_task(self._do_refresh())
            self._inflight.add_done_callback(_consume_exception)
        # Shielded so a cancelled waiter does not cancel the refresh for everybody else
        return await asyncio.shield(self._inflight)

    async def _do_refresh(self) -> Credential:
        try:
            previous = self._credential
            refresh_token = previous.refresh_token if previous else None
            logger.info("Refreshing access token")
            try:
                token = await self._provider.fetch_token(refresh_token)
            except AuthError:
                raise
            except Exception as e:
                raise AuthError(f"Failed to refresh access token: {e}") from e

            credential = Credential.from_token_response(token)
            self._credential = credential
            logger.debug(f"Access token refreshed, expires at {credential.expires_at}")
            return credential
        finally:
            self._inflight = None


def _consume_exception(task: "asyncio.Future[Credential]") -> None:
    # Waiters may all have been cancelled; mark the exception retrieved.
    if not task.cancelled():
        task.exception()
