import asyncio
import inspect
import json
import structlog
from typing import Dict, Any, Optional, List, Callable, Set, Union

from memory_bridge.errors import NotConnectedError, RemoteError, RequestTimeoutError
from memory_bridge.mcp_library.core import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    new_request_id,
)
from memory_bridge.mcp_library.transport import JsonRpcTransport

logger = structlog.get_logger()

DEFAULT_REQUEST_TIMEOUT = 30.0

# Strong references to handler tasks until they finish.
_handler_tasks: Set[asyncio.Task] = set()


def invoke_handler(handler: Callable, *args: Any) -> None:
    """Calls an observer without waiting on it; failures are only logged."""
    try:
        outcome = handler(*args)
    except Exception as e:
        logger.error("Handler failed", handler=getattr(handler, "__name__", repr(handler)), error=str(e))
        return
    if inspect.isawaitable(outcome):
        task = asyncio.ensure_future(outcome)
        _handler_tasks.add(task)
        task.add_done_callback(_finish_handler_task)


def _finish_handler_task(task: asyncio.Task) -> None:
    _handler_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error("Async handler failed", error=str(task.exception()))


class JsonRpcClient:
    """A generic JSON-RPC 2.0 client over a line-delimited byte stream.

    Outbound requests are written as single JSON lines. Inbound bytes are fed
    to ``handle_data`` chunk by chunk, reassembled into lines, and matched to
    pending requests by id.
    """
    def __init__(self, transport: JsonRpcTransport, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.transport = transport
        self.request_timeout = request_timeout
        self._pending_requests: Dict[str, asyncio.Future] = {}
        self._buffer = b""
        self._reader_task: Optional[asyncio.Task] = None
        self._notification_handlers: Dict[str, List[Callable]] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending_requests)

    @property
    def buffered(self) -> bytes:
        """Bytes received after the last newline."""
        return self._buffer

    async def start(self):
        """Starts the client's response reader task."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    async def stop(self):
        """Stops the client and cleans up resources."""
        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None
        await self.transport.close()

    def abandon_pending(self) -> None:
        """Forgets every pending request without resolving it.

        Callers still waiting will hit their own timeout.
        """
        if self._pending_requests:
            logger.info("Abandoning pending requests", count=len(self._pending_requests))
        self._pending_requests.clear()

    async def _read_loop(self):
        """Continuously reads chunks from the transport and processes them."""
        while True:
            try:
                chunk = await self.transport.receive()
                if not chunk:
                    logger.info("Transport connection closed.", unterminated_bytes=len(self._buffer))
                    break
                self.handle_data(chunk)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in read loop", error=str(e), exc_info=True)
                break

    def handle_data(self, data: Union[bytes, str]) -> None:
        """Appends a chunk to the buffer and processes every complete line.

        The segment after the last newline (possibly empty) is kept for the
        next chunk.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buffer += data
        *lines, self._buffer = self._buffer.split(b"\n")
        for line in lines:
            self._handle_line(line)

    def _handle_line(self, raw: bytes) -> None:
        text = raw.decode("utf-8", errors="replace").strip()
        if not text:
            return
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Received invalid JSON", line=text[:200])
            return
        if not isinstance(data, dict):
            logger.warning("Received non-object JSON-RPC message", line=text[:200])
            return

        if "method" in data:
            if data.get("id") is None:
                self._handle_notification(data)
            else:
                logger.debug("Ignoring server request", method=data.get("method"), request_id=data.get("id"))
        elif "id" in data:
            self._handle_response(data)

    def _handle_response(self, data: Dict[str, Any]):
        response = JsonRpcResponse.from_dict(data)
        try:
            future = self._pending_requests.pop(response.id, None)
        except TypeError:
            # unhashable id
            future = None
        if future is None:
            logger.debug("Dropping response for unknown request", request_id=response.id)
            return
        if future.done():
            return
        if response.is_error():
            future.set_exception(RemoteError.from_error_object(response.error))
        else:
            future.set_result(response.result)

    def _handle_notification(self, data: Dict[str, Any]):
        notification = JsonRpcNotification.from_dict(data)
        for handler in self._notification_handlers.get(notification.method, []):
            invoke_handler(handler, notification.params)

    def on_notification(self, method: str, handler: Callable):
        """Registers a handler for a specific notification method."""
        self._notification_handlers.setdefault(method, []).append(handler)

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None,
                      timeout: Optional[float] = None) -> Any:
        """Sends a request and waits for its response or its timeout."""
        if not self.transport.is_writable:
            raise NotConnectedError()
        timeout = self.request_timeout if timeout is None else timeout
        req = JsonRpcRequest(method=method, params=params, id=new_request_id())

        future = asyncio.get_running_loop().create_future()
        self._pending_requests[req.id] = future

        try:
            await self.transport.send(req.to_line())
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Request timed out", method=method, request_id=req.id, timeout=timeout)
            raise RequestTimeoutError(method, req.id, timeout) from None
        finally:
            if self._pending_requests.get(req.id) is future:
                del self._pending_requests[req.id]

    async def notify(self, method: str, params: Optional[Dict[str, Any]] = None):
        """Sends a notification without waiting for a response."""
        notif = JsonRpcRequest(method=method, params=params)
        await self.transport.send(notif.to_line())
