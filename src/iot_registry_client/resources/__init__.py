"""Resource clients: the generic collection client and its typed facades."""

from iot_registry_client.resources.client import MERGE_PATCH_CONTENT_TYPE, ResourceClient
from iot_registry_client.resources.command import CommandClient, command_path
from iot_registry_client.resources.registry import ApplicationClient, DeviceClient, registry_path

__all__ = [
    "MERGE_PATCH_CONTENT_TYPE",
    "ApplicationClient",
    "CommandClient",
    "DeviceClient",
    "ResourceClient",
    "command_path",
    "registry_path",
]
