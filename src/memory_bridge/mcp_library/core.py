import json
import uuid
from typing import Dict, Any, Optional
from dataclasses import dataclass, field

JSONRPC_VERSION = "2.0"


def new_request_id() -> str:
    """Returns a fresh correlation id for an outbound request."""
    return str(uuid.uuid4())


@dataclass
class JsonRpcRequest:
    """Represents a JSON-RPC 2.0 Request (or a notification when id is None)."""
    method: str
    params: Optional[Dict[str, Any]] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
        if self.id is not None:
            d["id"] = self.id
        d["method"] = self.method
        if self.params is not None:
            d["params"] = self.params
        return d

    def to_line(self) -> bytes:
        """Serializes the request as one newline-terminated JSON line."""
        return (json.dumps(self.to_dict(), separators=(",", ":")) + "\n").encode("utf-8")


@dataclass
class JsonRpcResponse:
    """Represents a JSON-RPC 2.0 Response."""
    id: Optional[str]
    result: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JsonRpcResponse':
        return cls(
            result=data.get("result"),
            error=data.get("error"),
            id=data.get("id")
        )

    def is_error(self) -> bool:
        return self.error is not None


@dataclass
class JsonRpcNotification:
    """A server-initiated message with a method and no id."""
    method: str
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JsonRpcNotification':
        params = data.get("params")
        return cls(method=str(data["method"]), params=params if isinstance(params, dict) else {})
