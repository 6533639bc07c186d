import structlog
from typing import Dict, Any, Optional
from enum import Enum

from memory_bridge.errors import HandshakeError, RemoteError
from memory_bridge.mcp_library.client import JsonRpcClient, DEFAULT_REQUEST_TIMEOUT
from memory_bridge.mcp_library.transport import JsonRpcTransport

logger = structlog.get_logger()


class ProtocolVersion(Enum):
    """Known MCP protocol versions."""
    V0_1_0 = "0.1.0"


class MCPClient(JsonRpcClient):
    """An MCP-specific JSON-RPC client."""
    def __init__(self, transport: JsonRpcTransport,
                 protocol_version: ProtocolVersion = ProtocolVersion.V0_1_0,
                 client_info: Optional[Dict[str, str]] = None,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        super().__init__(transport, request_timeout=request_timeout)
        self.protocol_version = protocol_version
        self.client_info = client_info or {"name": "mcp-client", "version": "0.1.0"}
        self.server_info: Optional[Dict[str, Any]] = None

    async def initialize(self) -> Dict[str, Any]:
        """Performs the initialize handshake.

        Raises:
            HandshakeError: the server answered with an error.
            RequestTimeoutError: the server did not answer in time.
        """
        params = {
            "protocolVersion": self.protocol_version.value,
            "capabilities": {},
            "clientInfo": self.client_info
        }
        try:
            result = await self.request("initialize", params)
        except RemoteError as e:
            raise HandshakeError(f"MCP initialize failed: {e.message}") from e
        if not isinstance(result, dict):
            result = {}
        self.server_info = result.get("serverInfo")
        logger.info("MCP session initialized", server_info=self.server_info)
        await self.notify("notifications/initialized")
        return result

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        """Calls a tool on the server."""
        params = {"name": tool_name, "arguments": arguments}
        return await self.request("tools/call", params)
