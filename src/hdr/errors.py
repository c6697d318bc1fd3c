"""Application-level exception types for the HDR SDK."""

from __future__ import annotations


class HdrError(Exception):
    """Base exception for the HDR SDK."""


class ConfigurationError(HdrError):
    """Raised when settings cannot produce a usable endpoint."""


class ValidationError(HdrError):
    """Raised when an action or inbound frame does not match its schema."""

    def __init__(self, message: str, *, tool: str | None = None) -> None:
        self.tool = tool
        self.message = message
        prefix = f"tool {tool!r}: " if tool else ""
        super().__init__(f"{prefix}{message}")


class NotConnectedError(HdrError):
    """Raised when the channel is used before it is open or after it closed."""


class HandshakeTimeoutError(HdrError):
    """Raised when machine metadata does not arrive within the bounded wait."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"machine metadata not received within {timeout}s")


class ChannelError(HdrError):
    """Raised for transport-level failures of the computer channel."""


class ChannelClosedError(ChannelError):
    """Raised when the channel closes while an exchange is pending."""

    def __init__(self, code: int | None = None, reason: str = "") -> None:
        self.code = code
        self.reason = reason
        detail = f"code={code}" if code is not None else "code=-"
        if reason:
            detail = f"{detail} reason={reason}"
        super().__init__(f"channel closed ({detail})")


class SideChannelUnavailableError(HdrError):
    """Raised when an MCP operation is attempted before the side channel exists."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"MCP client not connected; call Computer.connect_mcp() before {operation}()")


class ApiError(HdrError):
    """Raised when an HTTP endpoint on the machine host answers with an error status."""

    def __init__(self, status: int, reason: str, body: str = "") -> None:
        self.status = status
        self.reason = reason
        self.body = body
        message = f"HTTP error: {status} {reason}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)
