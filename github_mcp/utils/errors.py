"""Exception classes and upstream error classification."""
import json
from typing import Optional

from ..github.models import ErrorInfo

MAX_ERROR_MESSAGE_CHARS = 1000


class MCPError(Exception):
    """Base exception for MCP-related errors."""

    pass


class InvalidParamsError(MCPError):
    """Tool or method parameters failed to decode."""

    pass


class ToolNotFoundError(MCPError):
    """Requested tool is not in the catalogue."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ConfigError(MCPError):
    """Required configuration is missing or invalid."""

    pass


_STATUS_CODES = {
    400: ("bad_request", False),
    401: ("unauthorized", False),
    403: ("forbidden", False),
    404: ("not_found", False),
    409: ("conflict", False),
    429: ("rate_limited", True),
}


def _error_message(status: int, body: Optional[str]) -> str:
    """Prefer GitHub's JSON ``message`` field, else the raw body."""
    text = (body or "").strip()
    if text.startswith("{"):
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            text = payload["message"]
    if not text:
        text = f"HTTP {status}"
    return text[:MAX_ERROR_MESSAGE_CHARS]


def classify_status(status: int, body: Optional[str] = None) -> ErrorInfo:
    """Map a non-2xx HTTP status to an ErrorInfo.

    Args:
        status: HTTP status code of the final response
        body: Response body text, used for the message

    Returns:
        ErrorInfo whose ``retriable`` flag depends only on ``status``
    """
    if status in _STATUS_CODES:
        code, retriable = _STATUS_CODES[status]
    elif 500 <= status <= 599:
        code, retriable = "upstream_error", True
    else:
        code, retriable = "server_error", False
    return ErrorInfo(code=code, message=_error_message(status, body), retriable=retriable)


def classify_transport_error(exc: Exception) -> ErrorInfo:
    """Connect/read failures with no HTTP status."""
    return ErrorInfo(
        code="upstream_error",
        message=str(exc) or exc.__class__.__name__,
        retriable=True,
    )


def classify_decode_error(exc: Exception) -> ErrorInfo:
    """A 2xx body that does not match the expected shape."""
    return ErrorInfo(
        code="server_error",
        message=f"Failed to decode response: {exc}"[:MAX_ERROR_MESSAGE_CHARS],
        retriable=False,
    )
