"""Mapping of HTTP responses to exceptions and telemetry outcomes."""

from enum import Enum

import httpx

from iot_registry_client.errors.exceptions import (
    APIError,
    AuthError,
    ClientError,
    ConflictError,
    NotFoundError,
    ServerError,
)
from iot_registry_client.errors.models import ErrorInformation


class Outcome(str, Enum):
    """Outcome of a single HTTP attempt, as reported to telemetry."""

    SUCCESS = "success"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TRANSPORT_ERROR = "transport_error"
    CANCELLED = "cancelled"


def classify_status(status_code: int) -> Outcome:
    """Classify an HTTP status code."""
    if status_code < 400:
        return Outcome.SUCCESS
    if status_code == 401:
        return Outcome.UNAUTHORIZED
    if status_code == 404:
        return Outcome.NOT_FOUND
    if status_code == 409:
        return Outcome.CONFLICT
    if status_code < 500:
        return Outcome.CLIENT_ERROR
    return Outcome.SERVER_ERROR


def raise_for_status(response: httpx.Response) -> None:
    """Raise appropriate exception for HTTP error responses.

    Args:
        response: HTTP response object

    Raises:
        APIError subclass based on status code
    """
    if response.is_success:
        return

    info = ErrorInformation.from_response(response)
    status_code = response.status_code

    exception_map = {
        401: AuthError,
        404: NotFoundError,
        409: ConflictError,
    }

    if status_code in exception_map:
        exc_class = exception_map[status_code]
    elif 400 <= status_code < 500:
        exc_class = ClientError
    elif 500 <= status_code < 600:
        exc_class = ServerError
    else:
        exc_class = APIError

    if info:
        message = f"HTTP {status_code}: {info}"
    else:
        response_text = response.text[:200]
        message = f"HTTP {status_code}: {response_text}" if response_text else f"HTTP {status_code}"

    raise exc_class(
        message,
        status_code=status_code,
        response=response,
        info=info,
    )
