# src/memory_bridge/errors.py
"""
Exception hierarchy for the memory bridge.

Transport failures (spawn, handshake, timeout, remote error) propagate out of
the client; callers are expected to catch ``MemoryBridgeError`` and degrade.
"""
from typing import Any, Optional


class MemoryBridgeError(Exception):
    """Base class for every error raised by the bridge."""


class NotConnectedError(MemoryBridgeError):
    """Raised when a request is dispatched without a writable stdin."""

    def __init__(self, message: str = "MCP process not connected"):
        super().__init__(message)


class SpawnError(MemoryBridgeError):
    """The memory server process could not be started."""

    def __init__(self, command: str, cause: BaseException):
        self.command = command
        self.cause = cause
        super().__init__(f"Failed to spawn MCP server '{command}': {cause}")


class HandshakeError(MemoryBridgeError):
    """The ``initialize`` exchange was answered with an error."""


class RequestTimeoutError(MemoryBridgeError, TimeoutError):
    """No response arrived for a request within its timeout."""

    def __init__(self, method: str, request_id: str, timeout: float):
        self.method = method
        self.request_id = request_id
        self.timeout = timeout
        super().__init__(f"MCP request timeout: {method} ({timeout:g}s)")


class RemoteError(MemoryBridgeError):
    """The server answered a request with a JSON-RPC error object."""

    def __init__(self, code: Optional[int], message: str, data: Optional[Any] = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

    @classmethod
    def from_error_object(cls, error: Any) -> "RemoteError":
        if not isinstance(error, dict):
            return cls(None, str(error))
        return cls(
            code=error.get("code"),
            message=str(error.get("message", "Unknown error")),
            data=error.get("data"),
        )


class SubprocessStderr(MemoryBridgeError):
    """Non-fatal stderr output from the server, handed to error observers."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"MCP stderr: {text}")
