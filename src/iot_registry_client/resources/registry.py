"""Typed clients for the applications and devices of the device registry."""

import asyncio
import logging

from iot_registry_client.errors.exceptions import NotFoundError
from iot_registry_client.models import Application, Device, MergePatch
from iot_registry_client.resources.client import ResourceClient, encode_segment
from iot_registry_client.transport.executor import DEFAULT_TIMEOUT, RequestExecutor

logger = logging.getLogger(__name__)

REGISTRY_API = "api/registry/v1alpha1"


def registry_path(application: str | None = None, device: str | None = None) -> str:
    """Build a registry path.

    ``registry_path()`` is the application collection, ``registry_path("app")`` one
    application, ``registry_path("app", "")`` its device collection and
    ``registry_path("app", "dev")`` one device.
    """
    segments = [REGISTRY_API, "apps"]
    if application:
        segments.append(encode_segment(application))
        if device is not None:
            segments.append("devices")
            if device:
                segments.append(encode_segment(device))
    elif device is not None:
        raise ValueError("A device path requires an application")
    return "/".join(segments)


class ApplicationClient:
    """Applications of the registry."""

    def __init__(self, executor: RequestExecutor) -> None:
        self._resources = ResourceClient(executor, Application, registry_path())

    async def get(self, name: str, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None) -> Application:
        return await self._resources.get(name, timeout=timeout, token=token)

    async def list(
        self, labels: list[str] | None = None, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> list[Application]:
        return await self._resources.list(labels, timeout=timeout, token=token)

    async def create(
        self, application: Application, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> Application:
        return await self._resources.create(application, timeout=timeout, token=token)

    async def update(
        self, application: Application, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> Application:
        return await self._resources.update(application, timeout=timeout, token=token)

    async def patch(
        self, name: str, patch: MergePatch, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> Application:
        return await self._resources.patch(name, patch, timeout=timeout, token=token)

    async def delete(self, name: str, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None) -> None:
        await self._resources.delete(name, timeout=timeout, token=token)


class DeviceClient:
    """Devices of the registry, always addressed through their application."""

    def __init__(self, executor: RequestExecutor) -> None:
        self._executor = executor

    def _resources(self, application: str) -> ResourceClient[Device]:
        if not application:
            raise ValueError("Devices are addressed through their application")
        return ResourceClient(self._executor, Device, registry_path(application, ""))

    async def get(
        self, application: str, name: str, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> Device:
        return await self._resources(application).get(name, timeout=timeout, token=token)

    async def create(
        self, device: Device, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> Device:
        return await self._resources(device.application).create(device, timeout=timeout, token=token)

    async def update(
        self, device: Device, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> Device:
        return await self._resources(device.application).update(device, timeout=timeout, token=token)

    async def patch(
        self,
        application: str,
        name: str,
        patch: MergePatch,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        token: str | None = None,
    ) -> Device:
        return await self._resources(application).patch(name, patch, timeout=timeout, token=token)

    async def delete(
        self, application: str, name: str, *, timeout: float | None = DEFAULT_TIMEOUT, token: str | None = None
    ) -> None:
        await self._resources(application).delete(name, timeout=timeout, token=token)

    async def get_devices(
        self, application: str, names: list[str], *, timeout: float | None = DEFAULT_TIMEOUT
    ) -> list[Device]:
        """Get several devices concurrently, skipping the ones that do not exist."""

        async def lookup(name: str) -> Device | None:
            try:
                return await self.get(application, name, timeout=timeout)
            except NotFoundError:
                logger.debug(f"Device '{application}/{name}' not found, skipping")
                return None

        found = await asyncio.gather(*(lookup(name) for name in names))
        return [device for device in found if device is not None]

    async def get_device_and_gateways(
        self, application: str, name: str, *, timeout: float | None = DEFAULT_TIMEOUT
    ) -> tuple[Device, list[Device]]:
        """Get a device together with the first level gateways its spec names.

        Raises:
            NotFoundError: If the device itself does not exist. Missing gateways
                are skipped.
        """
        device = await self.get(application, name, timeout=timeout)
        gateways = await self.get_devices(application, device.gateway_names(), timeout=timeout)
        return device, gateways

    async def list(
        self,
        application: str,
        labels: list[str] | None = None,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        token: str | None = None,
    ) -> list[Device]:
        return await self._resources(application).list(labels, timeout=timeout, token=token)
