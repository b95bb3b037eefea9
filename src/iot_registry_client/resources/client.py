"""Generic CRUD and merge-patch operations on one registry collection.

Concurrency is optimistic: ``update`` sends the resource version last observed by
the caller and the server rejects the write with 409 if another writer got there
first. The client never resolves conflicts itself. On ``ConflictError`` the caller
re-reads the resource, reapplies the intended change and tries again.
"""

import json
import logging
from typing import Any, Generic
from urllib.parse import quote

import httpx

from iot_registry_client.errors.exceptions import ServerError
from iot_registry_client.models import E, MergePatch
from iot_registry_client.transport.executor import DEFAULT_TIMEOUT, RequestExecutor

logger = logging.getLogger(__name__)

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


def encode_segment(segment: str) -> str:
    """Percent-encode a single path segment, including any ``/``."""
    return quote(segment, safe="")


class ResourceClient(Generic[E]):
    """Operations on the collection at ``collection_path``, decoding into ``envelope_type``.

    Args:
        executor: Executor used for every request.
        envelope_type: Resource class, e.g. ``Application`` or ``Device``.
        collection_path: Path of the collection relative to the API root.
    """

    def __init__(self, executor: RequestExecutor, envelope_type: type[E], collection_path: str) -> None:
        self._executor = executor
        self.envelope_type = envelope_type
        self.collection_path = collection_path.rstrip("/")

    @property
    def collection(self) -> str:
        return self.envelope_type.collection.value

    def path_for(self, name: str) -> str:
        if not name:
            raise ValueError("Resource name must not be empty")
        return f"{self.collection_path}/{encode_segment(name)}"

    async def _execute(self, method: str, path: str, operation: str, **kwargs: Any) -> httpx.Response:
        return await self._executor.execute(method, path, operation=operation, collection=self.collection, **kwargs)

    def _decode(self, response: httpx.Response) -> E:
        try:
            return self.envelope_type.from_dict(response.json())
        except (ValueError, TypeError) as e:
            raise ServerError(
                f"Malformed {self.collection} resource in response: {e}",
                status_code=response.status_code,
                response=response,
            ) from e

    async def _decode_or_read(self, response: httpx.Response, name: str | None, **kwargs: Any) -> E:
        if response.content:
            return self._decode(response)

        # Some endpoints acknowledge writes without a body, read the result back
        if name:
            return await self.get(name, **kwargs)
        location = response.headers.get("Location")
        if location:
            return self._decode(await self._execute("GET", location, "get", **kwargs))
        raise ServerError(
            f"Server did not return the written {self.collection} resource",
            status_code=response.status_code,
            response=response,
        )

    async def get(self, name: str, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None) -> E:
        """Read a resource.

        Raises:
            NotFoundError: If the resource does not exist.
        """
        response = await self._execute("GET", self.path_for(name), "get", timeout=timeout, token=token)
        return self._decode(response)

    async def list(
        self,
        labels: list[str] | None = None,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        token: str | None = None,
    ) -> list[E]:
        """List resources, optionally filtered by label selectors (``"key=value"``, ``"!key"``, ...)."""
        params = {"labels": ",".join(labels)} if labels else None
        response = await self._execute(
            "GET", self.collection_path, "list", params=params, timeout=timeout, token=token
        )
        try:
            items = response.json()
        except ValueError as e:
            raise ServerError(
                f"Malformed {self.collection} list in response", status_code=response.status_code, response=response
            ) from e
        if isinstance(items, dict):
            # Paged form: {"items": [...]}
            items = items.get("items") or []
        try:
            return [self.envelope_type.from_dict(item) for item in items]
        except (ValueError, TypeError) as e:
            raise ServerError(
                f"Malformed {self.collection} resource in list: {e}",
                status_code=response.status_code,
                response=response,
            ) from e

    async def create(
        self, resource: E, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> E:
        """Create a resource. The server assigns the initial resource version.

        Raises:
            ConflictError: If a resource with the same name already exists.
        """
        response = await self._execute(
            "POST", self.collection_path, "create", json=resource.to_dict(), timeout=timeout, token=token
        )
        logger.debug(f"Created {self.collection} '{resource.name}'")
        return await self._decode_or_read(response, resource.name or None, timeout=timeout, token=token)

    async def update(
        self, resource: E, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> E:
        """Replace a resource with ``resource``, including its last observed resource version.

        Returns:
            The stored resource, carrying the new resource version.

        Raises:
            ConflictError: If the resource version no longer matches the server's.
            NotFoundError: If the resource does not exist.
        """
        response = await self._execute(
            "PUT", self.path_for(resource.name), "update", json=resource.to_dict(), timeout=timeout, token=token
        )
        return await self._decode_or_read(response, resource.name, timeout=timeout, token=token)

    async def patch(
        self,
        name: str,
        patch: MergePatch,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        token: str | None = None,
    ) -> E:
        """Apply a JSON merge-patch document as-is and return the server's merge result.

        Keys present in ``patch`` replace, keys set to None are removed, absent keys
        are left untouched. Include ``{"metadata": {"resourceVersion": ...}}`` to make
        the patch conditional.

        Raises:
            ConflictError: If a resource version in the patch no longer matches.
            NotFoundError: If the resource does not exist.
        """
        if not isinstance(patch, dict):
            raise TypeError(f"A merge-patch document must be a mapping, not {type(patch).__name__}")
        response = await self._execute(
            "PATCH",
            self.path_for(name),
            "patch",
            content=json.dumps(patch).encode("utf-8"),
            headers={"Content-Type": MERGE_PATCH_CONTENT_TYPE},
            timeout=timeout,
            token=token,
        )
        return await self._decode_or_read(response, name, timeout=timeout, token=token)

    async def delete(self, name: str, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None) -> None:
        """Delete a resource.

        Raises:
            NotFoundError: If the resource does not exist, including when it was
                already deleted.
        """
        await self._execute("DELETE", self.path_for(name), "delete", timeout=timeout, token=token)
        logger.debug(f"Deleted {self.collection} '{name}'")
