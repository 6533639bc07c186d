"""Line-delimited JSON-RPC over a child process's stdio."""
from memory_bridge.mcp_library.client import JsonRpcClient, DEFAULT_REQUEST_TIMEOUT
from memory_bridge.mcp_library.core import JsonRpcRequest, JsonRpcResponse, JsonRpcNotification
from memory_bridge.mcp_library.mcp_client import MCPClient, ProtocolVersion
from memory_bridge.mcp_library.transport import JsonRpcTransport, SubprocessTransport, spawn_subprocess

__all__ = [
    "DEFAULT_REQUEST_TIMEOUT",
    "JsonRpcClient",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "JsonRpcTransport",
    "MCPClient",
    "ProtocolVersion",
    "SubprocessTransport",
    "spawn_subprocess",
]
