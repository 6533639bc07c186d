"""Bridge between a host plugin runtime and a memory MCP server."""
__version__ = "1.0.0"

from memory_bridge.config import MemoryMcpConfig
from memory_bridge.errors import (
    HandshakeError,
    MemoryBridgeError,
    NotConnectedError,
    RemoteError,
    RequestTimeoutError,
    SpawnError,
    SubprocessStderr,
)
from memory_bridge.memory_client import MemoryMcpClient
from memory_bridge.models import MemoryCategory, MemoryEntry, MemoryType

__all__ = [
    "HandshakeError",
    "MemoryBridgeError",
    "MemoryCategory",
    "MemoryEntry",
    "MemoryMcpClient",
    "MemoryMcpConfig",
    "MemoryType",
    "NotConnectedError",
    "RemoteError",
    "RequestTimeoutError",
    "SpawnError",
    "SubprocessStderr",
    "__version__",
]
