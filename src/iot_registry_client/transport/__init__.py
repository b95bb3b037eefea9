"""Request execution for the registry client.

Modules:
    retry: Retry bound, backoff and Retry-After handling for transient failures
    executor: Authenticated request executor with refresh-on-401 and bounded retries

Example:
    ```python
    import httpx

    from iot_registry_client.transport import RequestExecutor, RetryPolicy

    executor = RequestExecutor(
        httpx.AsyncClient(base_url="https://api.example.com"),
        token_cache,
        retry_policy=RetryPolicy(max_retries=3),
    )
    response = await executor.execute("GET", "api/registry/v1alpha1/apps")
    ```
"""

from iot_registry_client.transport.executor import DEFAULT_TIMEOUT, AttemptState, RequestExecutor
from iot_registry_client.transport.retry import RetryPolicy

__all__ = ["DEFAULT_TIMEOUT", "AttemptState", "RequestExecutor", "RetryPolicy"]
