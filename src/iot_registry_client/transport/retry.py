"""Retry policy for transient failures.

The policy answers three questions for the request executor:

- is a request of this method safe to send again?
- is this response a transient failure?
- how long to wait before the next attempt?

| Condition | Retried | Delay |
|-----------|---------|-------|
| Connection reset, timeout, other transport failure | idempotent methods | exponential backoff |
| 5xx response | idempotent methods | `Retry-After` if present, else exponential backoff |
| 429 response | idempotent methods | `Retry-After` if present, else exponential backoff |
| 401 response | never by this policy, see the executor's auth refresh | - |
| Other 4xx, 409 | never | - |

## Example

```python
from iot_registry_client.transport.retry import RetryPolicy

policy = RetryPolicy(max_retries=3, backoff_factor=0.5, max_backoff=10)
policy.backoff_delay(1)  # 0.5
policy.backoff_delay(3)  # 2.0
```
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts after the first one (default: 3)
        backoff_factor: Multiplier for exponential backoff (default: 0.5)
        max_backoff: Maximum backoff time in seconds (default: 10)
        retry_methods: Methods safe to send again after a transient failure
    """

    # Merge-patch documents are idempotent, so PATCH is safe to repeat
    DEFAULT_RETRY_METHODS = frozenset(["HEAD", "GET", "PUT", "PATCH", "DELETE", "OPTIONS"])

    max_retries: int = 3
    backoff_factor: float = 0.5
    max_backoff: float = 10.0
    retry_methods: frozenset[str] = field(default=DEFAULT_RETRY_METHODS)

    def is_retryable_method(self, method: str) -> bool:
        return method.upper() in self.retry_methods

    @staticmethod
    def is_transient_status(status_code: int) -> bool:
        return status_code == 429 or 500 <= status_code < 600

    def delay_for(self, retry_number: int, response: httpx.Response | None = None) -> float:
        """Delay before retry ``retry_number`` (1-indexed), honouring ``Retry-After``."""
        if response is not None:
            retry_after = self.parse_retry_after(response)
            if retry_after is not None:
                return retry_after
        return self.backoff_delay(retry_number)

    def backoff_delay(self, retry_number: int) -> float:
        """Calculate exponential backoff delay with max_backoff cap.

        Uses formula: min(backoff_factor * (2 ** (retry_number - 1)), max_backoff)

        Args:
            retry_number: Current retry attempt (1-indexed)

        Returns:
            Delay in seconds (capped at max_backoff)
        """
        delay = self.backoff_factor * (2 ** (retry_number - 1))
        return min(delay, self.max_backoff)

    def parse_retry_after(self, response: httpx.Response) -> float | None:
        """Parse Retry-After header from response.

        Supports both formats:
        - Delay-seconds: "120" (integer seconds)
        - HTTP-date: "Wed, 21 Oct 2015 07:28:00 GMT"

        Returns:
            Delay in seconds capped at max_backoff, or None if the header is
            missing or invalid
        """
        retry_after = response.headers.get("Retry-After")
        if not retry_after:
            return None

        try:
            delay = int(retry_after)
            if delay < 0:
                return None
            return float(min(delay, self.max_backoff))
        except ValueError:
            pass

        try:
            retry_date = parsedate_to_datetime(retry_after)
            delay = (retry_date - datetime.now(UTC)).total_seconds()

            # Clock skew
            if delay < 0:
                return None

            return float(min(delay, self.max_backoff))
        except (ValueError, TypeError):
            pass

        return None
