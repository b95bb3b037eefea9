"""Authenticated request execution with bounded retries.

Each call runs a small state machine:

    ATTEMPTING --2xx/3xx--------------------------------> done
    ATTEMPTING --401, not yet refreshed----------------> RETRY_AFTER_AUTH_REFRESH --> ATTEMPTING
    ATTEMPTING --5xx/429/transport failure, budget left-> RETRY_AFTER_TRANSIENT_FAILURE --> ATTEMPTING
    ATTEMPTING --5xx/429/transport failure, no budget--> EXHAUSTED --> raise
    ATTEMPTING --second 401, 404, 409, other 4xx-------> raise

The auth refresh does not consume the transient retry budget, and it happens at
most once per call. 404 and 409 are domain outcomes and never retried.
"""

import asyncio
import logging
from enum import Enum
from typing import Any

import httpx

from iot_registry_client.auth.token_cache import Credential, TokenCache
from iot_registry_client.errors.exceptions import RequestTimeout, TransportError
from iot_registry_client.errors.handler import Outcome, classify_status, raise_for_status
from iot_registry_client.telemetry import NoopTelemetry, Telemetry
from iot_registry_client.transport.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Sentinel for "use the executor's default timeout", None means no deadline
DEFAULT_TIMEOUT: Any = object()


class AttemptState(Enum):
    ATTEMPTING = "attempting"
    RETRY_AFTER_AUTH_REFRESH = "retry_after_auth_refresh"
    RETRY_AFTER_TRANSIENT_FAILURE = "retry_after_transient_failure"
    EXHAUSTED = "exhausted"


class RequestExecutor:
    """Send requests with a bearer token, refreshing and retrying as needed.

    Args:
        http_client: Transport, with ``base_url`` set to the API root.
        token_cache: Source of bearer tokens. None sends requests unauthenticated.
        retry_policy: Retry bound and backoff for transient failures.
        telemetry: Sink for per-attempt events.
        timeout: Default deadline for a whole call (all attempts), in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_cache: TokenCache | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        telemetry: Telemetry | None = None,
        timeout: float | None = None,
    ) -> None:
        self._http = http_client
        self._token_cache = token_cache
        self.retry_policy = retry_policy or RetryPolicy()
        self.telemetry = telemetry or NoopTelemetry()
        self.timeout = timeout

    async def execute(
        self,
        method: str,
        path: str,
        *,
        operation: str | None = None,
        collection: str | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        token: str | None = None,
        retryable: bool | None = None,
    ) -> httpx.Response:
        """Execute a request and return its successful response.

        Args:
            method: HTTP method.
            path: Path relative to the API root.
            operation: Operation name reported to telemetry (default: method).
            collection: Resource collection reported to telemetry.
            json: JSON body.
            content: Raw body, used when ``json`` is None.
            headers: Extra request headers.
            params: Query parameters.
            timeout: Deadline for the whole call, overriding the default.
            token: Bearer token to use for this call only, bypassing the token cache.
            retryable: Override whether transient failures may be retried.

        Raises:
            AuthError: Token acquisition failed, or the API rejected a refreshed token.
            NotFoundError, ConflictError, ClientError: Non-retryable 4xx responses.
            ServerError: 5xx after exhausting retries.
            TransportError: Network failure after exhausting retries.
            RequestTimeout: The deadline expired.
        """
        method = method.upper()
        deadline = self.timeout if timeout is DEFAULT_TIMEOUT else timeout
        call = self._run(
            method,
            path,
            operation=operation or method.lower(),
            collection=collection,
            json=json,
            content=content,
            headers=headers,
            params=params,
            token=token,
            deadline=deadline,
            retryable=self.retry_policy.is_retryable_method(method) if retryable is None else retryable,
        )
        if deadline is None:
            return await call

        try:
            async with asyncio.timeout(deadline):
                return await call
        except TimeoutError as e:
            raise RequestTimeout(f"{method} {path} did not complete within {deadline}s", timeout=deadline) from e

    async def _run(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        collection: str | None,
        json: Any,
        content: bytes | None,
        headers: dict[str, str] | None,
        params: dict[str, str] | None,
        token: str | None,
        deadline: float | None,
        retryable: bool,
    ) -> httpx.Response:
        can_refresh = token is None and self._token_cache is not None
        state = AttemptState.ATTEMPTING
        auth_refreshed = False
        attempt = 0
        retries = 0

        while state is not AttemptState.EXHAUSTED:
            attempt += 1
            if state is not AttemptState.ATTEMPTING:
                logger.debug(f"{method} {path}: attempt {attempt} after {state.value}")
                state = AttemptState.ATTEMPTING
            credential: Credential | None = None
            if can_refresh:
                credential = await self._token_cache.get_valid_token()

            request_headers = dict(headers or {})
            if token is not None:
                request_headers["Authorization"] = f"Bearer {token}"
            elif credential is not None:
                request_headers["Authorization"] = credential.authorization

            response: httpx.Response | None = None
            failure: httpx.TransportError | None = None

            with self.telemetry.attempt(
                operation=operation,
                collection=collection,
                method=method,
                path=path,
                attempt=attempt,
                headers=request_headers,
            ) as event:
                # Per attempt transport timeout follows the call deadline, not the client default
                request = self._http.build_request(
                    method,
                    path,
                    json=json,
                    content=content,
                    headers=request_headers,
                    params=params,
                    timeout=httpx.Timeout(deadline),
                )
                try:
                    response = await self._http.send(request)
                except httpx.TransportError as e:
                    failure = e
                    event.outcome = Outcome.TRANSPORT_ERROR
                else:
                    event.status_code = response.status_code
                    event.outcome = classify_status(response.status_code)

            if response is not None and response.is_success:
                logger.debug(f"{method} {path} -> {response.status_code} (attempt {attempt})")
                return response

            if response is not None and response.status_code == 401:
                if can_refresh and not auth_refreshed:
                    state = AttemptState.RETRY_AFTER_AUTH_REFRESH
                    auth_refreshed = True
                    logger.info(f"{method} {path} was rejected with 401, refreshing token and retrying")
                    await self._token_cache.force_refresh(stale=credential)
                    continue
                raise_for_status(response)

            transient = failure is not None or self.retry_policy.is_transient_status(response.status_code)
            if not transient:
                raise_for_status(response)

            if not retryable or retries >= self.retry_policy.max_retries:
                state = AttemptState.EXHAUSTED
                continue

            state = AttemptState.RETRY_AFTER_TRANSIENT_FAILURE
            retries += 1
            delay = self.retry_policy.delay_for(retries, response)
            reason = _describe(failure) if failure is not None else response.status_code
            logger.warning(
                f"Request {method} {path} failed with {reason}, "
                f"retrying in {delay}s (attempt {retries}/{self.retry_policy.max_retries})"
            )
            await asyncio.sleep(delay)

        if failure is not None:
            raise TransportError(f"{method} {path} failed: {_describe(failure)}", attempts=attempt) from failure
        raise_for_status(response)


def _describe(error: Exception) -> str:
    # httpx timeouts often carry an empty message
    return str(error) or type(error).__name__
