"""Client for the command and control API.

A command is a single POST to the device's command endpoint. Without a response
timeout it is one-way: the API accepts it for delivery and the result is
``ACCEPTED``. With a response timeout the API waits for the device's answer, and
the result is either ``RESPONDED`` (carrying the device's payload) or
``NO_RESPONSE``. Not getting an answer is a regular outcome, not an error.
"""

import logging

from iot_registry_client.errors.exceptions import RequestTimeout
from iot_registry_client.models import Command, CommandOutcome, CommandResult, ResourceRef
from iot_registry_client.resources.client import encode_segment
from iot_registry_client.transport.executor import DEFAULT_TIMEOUT, RequestExecutor

logger = logging.getLogger(__name__)

COMMAND_API = "api/command/v1alpha1"

# Added to the response timeout, for the round trip between client and API
RESPONSE_GRACE = 5.0


def command_path(application: str, device: str) -> str:
    return "/".join([COMMAND_API, "apps", encode_segment(application), "devices", encode_segment(device)])


def format_duration(seconds: float) -> str:
    """Format seconds the way the API expects durations (``500ms``, ``5s``)."""
    if seconds < 1 or seconds != int(seconds):
        return f"{int(round(seconds * 1000))}ms"
    return f"{int(seconds)}s"


class CommandClient:
    """Send commands to devices.

    Args:
        executor: Executor used for every request.
        default_response_timeout: Response timeout for commands that do not set one.
    """

    def __init__(self, executor: RequestExecutor, default_response_timeout: float | None = None) -> None:
        self._executor = executor
        self.default_response_timeout = default_response_timeout

    async def send(
        self,
        command: Command,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        token: str | None = None,
    ) -> CommandResult:
        """Send a command.

        Args:
            command: The command to send.
            timeout: Deadline for the call. Defaults to the response timeout plus a
                grace period when waiting for a response, otherwise to the client's
                default timeout.
            token: Bearer token for this call only.

        Raises:
            NotFoundError: If the device does not exist.
            RequestTimeout: If a one-way command did not complete within the deadline.
        """
        response_timeout = command.response_timeout
        if response_timeout is None:
            response_timeout = self.default_response_timeout

        params = {"command": command.channel}
        if response_timeout is not None:
            params["timeout"] = format_duration(response_timeout)
            if timeout is DEFAULT_TIMEOUT:
                timeout = response_timeout + RESPONSE_GRACE

        device = command.device
        try:
            response = await self._executor.execute(
                "POST",
                command_path(device.application, device.name),
                operation="command",
                collection=device.collection.value,
                content=command.payload,
                headers={"Content-Type": command.content_type},
                params=params,
                timeout=timeout,
                token=token,
            )
        except RequestTimeout:
            if response_timeout is None:
                raise
            logger.info(f"No response from device '{device}' to '{command.channel}' within the deadline")
            return CommandResult(outcome=CommandOutcome.NO_RESPONSE)

        if response_timeout is None:
            return CommandResult(outcome=CommandOutcome.ACCEPTED, status_code=response.status_code)

        if response.status_code == 202:
            logger.info(f"No response from device '{device}' to '{command.channel}' within {response_timeout}s")
            return CommandResult(outcome=CommandOutcome.NO_RESPONSE, status_code=response.status_code)

        return CommandResult(
            outcome=CommandOutcome.RESPONDED,
            payload=response.content,
            content_type=response.headers.get("Content-Type"),
            status_code=response.status_code,
        )

    async def publish(
        self,
        application: str,
        device: str,
        channel: str,
        payload: bytes = b"",
        *,
        response_timeout: float | None = None,
        content_type: str = "application/octet-stream",
    ) -> CommandResult:
        """Shortcut for ``send`` addressing the device by names."""
        command = Command(
            device=ResourceRef.device(application, device),
            channel=channel,
            payload=payload,
            response_timeout=response_timeout,
            content_type=content_type,
        )
        return await self.send(command)
