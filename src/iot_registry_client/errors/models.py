"""Error details returned by the registry API."""

from dataclasses import dataclass
from typing import Any

import httpx

# RFC 7807 members, used as a fallback when the body is not the registry's own format
_PROBLEM_FIELDS = frozenset({"type", "title", "status", "detail", "instance"})


@dataclass
class ErrorInformation:
    """Additional error information sent along with a failed response.

    The registry responds with ``{"error": "...", "message": "..."}``. RFC 7807
    problem details are accepted too, with ``title`` mapped to ``error`` and
    ``detail`` mapped to ``message``.
    """

    error: str = ""  # machine processable error type
    message: str = ""  # human readable message
    extensions: dict[str, Any] | None = None

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ErrorInformation | None":
        """Parse error information from an HTTP response.

        Args:
            response: HTTP response object

        Returns:
            ErrorInformation or None if the body carries no usable detail
        """
        try:
            data = response.json()
        except (ValueError, TypeError, AttributeError):
            return None

        if not isinstance(data, dict):
            return None

        if "error" in data or "message" in data:
            extensions = {k: v for k, v in data.items() if k not in ("error", "message")}
            return cls(
                error=str(data.get("error") or ""),
                message=str(data.get("message") or ""),
                extensions=extensions or None,
            )

        if any(field in data for field in _PROBLEM_FIELDS):
            extensions = {k: v for k, v in data.items() if k not in _PROBLEM_FIELDS}
            return cls(
                error=str(data.get("title") or data.get("type") or ""),
                message=str(data.get("detail") or ""),
                extensions=extensions or None,
            )

        return None

    def __str__(self) -> str:
        if not self.error:
            return self.message
        if not self.message:
            return self.error
        return f"{self.error}: {self.message}"
