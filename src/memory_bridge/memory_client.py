# src/memory_bridge/memory_client.py
"""
Client for the memory MCP server.

Owns one child process, performs the MCP handshake on first use, and maps the
memory_* tools onto ``MemoryEntry`` values.
"""
import asyncio
import os
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from memory_bridge import __version__
from memory_bridge.config import MemoryMcpConfig
from memory_bridge.errors import NotConnectedError, SpawnError, SubprocessStderr
from memory_bridge.mcp_library.client import invoke_handler
from memory_bridge.mcp_library.mcp_client import MCPClient, ProtocolVersion
from memory_bridge.mcp_library.transport import SubprocessTransport, spawn_subprocess
from memory_bridge.models.enums import MemoryCategory, coerce_category, map_category_to_type
from memory_bridge.models.memory_models import MemoryEntry, utc_now_iso

logger = structlog.get_logger()

CLIENT_INFO = {"name": "memory-mcp-bridge", "version": __version__}

# Seconds disconnect() waits for a killed process to be reaped.
DISCONNECT_GRACE = 5.0

Spawn = Callable[[str, List[str], Optional[Dict[str, str]]], Awaitable[Any]]
ErrorHandler = Callable[[BaseException], Any]
CloseHandler = Callable[[Optional[int]], Any]


def _details(result: Any) -> Dict[str, Any]:
    """Returns the ``details`` object of a tool result, or an empty dict."""
    if isinstance(result, dict) and isinstance(result.get("details"), dict):
        return result["details"]
    return {}


def _records(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class MemoryMcpClient:
    """Talks to the memory MCP server over its stdio.

    ``connect`` is idempotent and concurrent callers share one attempt.
    Observers registered with ``on_error`` and ``on_close`` receive stderr
    output, spawn failures and process exit codes; they never affect requests.
    """

    def __init__(self, config: MemoryMcpConfig, spawn: Optional[Spawn] = None):
        self.config = config
        self._spawn = spawn or spawn_subprocess
        self._process: Optional[Any] = None
        self._session: Optional[MCPClient] = None
        self._init_task: Optional[asyncio.Task] = None
        # Advanced by disconnect(); an attempt from an older generation must not install its process.
        self._generation = 0
        self._stderr_task: Optional[asyncio.Task] = None
        self._exit_task: Optional[asyncio.Task] = None
        self._error_handlers: List[ErrorHandler] = []
        self._close_handlers: List[CloseHandler] = []
        self.initialized = False

    # ========================================================================
    # Observers
    # ========================================================================

    def on_error(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    def on_close(self, handler: CloseHandler) -> None:
        self._close_handlers.append(handler)

    def _emit_error(self, error: BaseException) -> None:
        for handler in list(self._error_handlers):
            invoke_handler(handler, error)

    def _emit_close(self, code: Optional[int]) -> None:
        for handler in list(self._close_handlers):
            invoke_handler(handler, code)

    # ========================================================================
    # Connection lifecycle
    # ========================================================================

    @property
    def session(self) -> Optional[MCPClient]:
        return self._session

    async def connect(self) -> None:
        """Spawns the server and performs the handshake, once."""
        if self.initialized:
            return
        if self._init_task is None:
            task = asyncio.ensure_future(self._do_connect(self._generation))
            task.add_done_callback(self._connect_finished)
            self._init_task = task
        # Shielded so one caller's cancellation does not abort the shared attempt.
        await asyncio.shield(self._init_task)

    def _connect_finished(self, task: asyncio.Task) -> None:
        if self._init_task is task:
            self._init_task = None
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter went away.
            task.exception()

    async def _do_connect(self, generation: int) -> None:
        await self._release_stale_connection()

        command = self.config.mcp_command
        args = list(self.config.mcp_args)
        env = {**os.environ, **self.config.mcp_env}
        logger.info("Spawning MCP server", command=command, args=args)
        try:
            process = await self._spawn(command, args, env)
        except OSError as e:
            error = SpawnError(command, e)
            logger.error("MCP server failed to start", command=command, error=str(e))
            self._emit_error(error)
            raise error from e

        transport = SubprocessTransport(process)
        if generation != self._generation:
            logger.info("Killing MCP process spawned by an abandoned connect", pid=getattr(process, "pid", None))
            transport.kill()
            raise NotConnectedError("MCP client disconnected during spawn")
        session = MCPClient(
            transport,
            protocol_version=ProtocolVersion.V0_1_0,
            client_info=dict(CLIENT_INFO),
            request_timeout=self.config.request_timeout,
        )
        self._process = process
        self._session = session
        await session.start()
        self._stderr_task = asyncio.create_task(self._pump_stderr(transport))
        self._exit_task = asyncio.create_task(self._watch_exit(process, transport))

        try:
            await session.initialize()
        except BaseException as e:
            logger.warning("MCP handshake failed", error=str(e) or type(e).__name__)
            if self._session is session:
                await self._teardown()
            raise
        if generation != self._generation or self._session is not session:
            raise NotConnectedError("MCP client disconnected during handshake")
        self.initialized = True
        logger.info("Memory MCP client connected", command=command, pid=getattr(process, "pid", None))

    async def _release_stale_connection(self) -> None:
        """Drops the state of a process that exited on its own."""
        if self._session is None:
            return
        logger.debug("Releasing exited MCP process before reconnecting")
        await self._teardown()

    async def _pump_stderr(self, transport: SubprocessTransport) -> None:
        while True:
            try:
                chunk = await transport.receive_stderr()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.debug("Stopped reading MCP stderr", error=str(e))
                break
            if not chunk:
                break
            text = chunk.decode("utf-8", errors="replace")
            logger.warning("MCP server stderr", output=text.rstrip())
            self._emit_error(SubprocessStderr(text))

    async def _watch_exit(self, process: Any, transport: SubprocessTransport) -> None:
        code = await transport.wait()
        if self._process is process:
            self.initialized = False
        logger.info("MCP process closed", code=code)
        self._emit_close(code)

    async def _teardown(self) -> None:
        process, session = self._process, self._session
        stderr_task, exit_task = self._stderr_task, self._exit_task
        self._process = None
        self._session = None
        self._stderr_task = None
        self._exit_task = None
        self.initialized = False

        if session is not None:
            session.abandon_pending()
            await session.stop()
        if stderr_task is not None:
            stderr_task.cancel()
        if exit_task is not None and not exit_task.done():
            done, _ = await asyncio.wait({exit_task}, timeout=DISCONNECT_GRACE)
            if not done:
                logger.warning("MCP process did not exit after kill", pid=getattr(process, "pid", None))
                exit_task.cancel()

    async def disconnect(self) -> None:
        """Kills the server and forgets pending requests. Safe when not connected."""
        # An in-flight connect() is abandoned and kills whatever it spawns.
        self._generation += 1
        self._init_task = None
        if self._session is None:
            self.initialized = False
            return
        await self._teardown()
        logger.info("Memory MCP client disconnected")

    # ========================================================================
    # Tool calls
    # ========================================================================

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        """Call an MCP tool, connecting first if needed."""
        await self.connect()
        session = self._session
        if session is None:
            raise NotConnectedError()
        return await session.call_tool(name, arguments)

    async def store(
        self,
        content: str,
        category: MemoryCategory = MemoryCategory.OTHER,
        importance: float = 0.7,
        tags: Sequence[str] = (),
    ) -> MemoryEntry:
        """Store a memory; the category is also added as a tag for filtering."""
        category = coerce_category(category)
        memory_type = map_category_to_type(category).value
        all_tags = [*tags, category.value]

        result = await self.call_tool("memory_store", {
            "content": content,
            "type": memory_type,
            "importance": importance,
            "tags": all_tags,
        })

        memory_id = _details(result).get("id")
        return MemoryEntry(
            id=str(memory_id) if memory_id else str(uuid.uuid4()),
            content=content,
            type=memory_type,
            category=category,
            importance=importance,
            tags=all_tags,
            created_at=utc_now_iso(),
        )

    async def search(self, query: str, limit: int = 5, min_score: float = 0.3) -> List[MemoryEntry]:
        """Search memories, dropping results that score below ``min_score``."""
        result = await self.call_tool("memory_search", {
            "query": query,
            "limit": limit,
            "tier": "all",
        })
        entries = [MemoryEntry.from_server(raw, with_score=True)
                   for raw in _records(_details(result).get("results"))]
        return [entry for entry in entries if (entry.score or 0) >= min_score]

    async def delete(self, memory_id: str) -> bool:
        await self.call_tool("memory_delete", {"memory_id": memory_id})
        return True

    async def list(self, type: Optional[str] = None, limit: int = 20) -> List[MemoryEntry]:
        """List memories, optionally restricted to one server type."""
        arguments: Dict[str, Any] = {"limit": limit}
        if type is not None:
            arguments["type"] = type
        result = await self.call_tool("memory_list", arguments)
        return [MemoryEntry.from_server(raw) for raw in _records(_details(result).get("memories"))]

    async def stats(self) -> Dict[str, Any]:
        result = await self.call_tool("memory_stats", {})
        return _details(result)
