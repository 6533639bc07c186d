import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import structlog

from memory_bridge.errors import NotConnectedError

logger = structlog.get_logger()

READ_CHUNK_SIZE = 64 * 1024


async def spawn_subprocess(command: str, args: List[str],
                           env: Optional[Dict[str, str]] = None) -> asyncio.subprocess.Process:
    """Starts the server with all three stdio streams piped."""
    return await asyncio.create_subprocess_exec(
        command, *args,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )


class JsonRpcTransport(ABC):
    """Abstract base class for a JSON-RPC transport layer."""
    @abstractmethod
    async def send(self, data: bytes) -> None:
        """Sends data to the server."""
        pass

    @abstractmethod
    async def receive(self) -> bytes:
        """Receives the next chunk from the server, b"" at end of stream."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Closes the transport connection."""
        pass

    @property
    @abstractmethod
    def is_writable(self) -> bool:
        """True while send() can reach the server."""
        pass


class SubprocessTransport(JsonRpcTransport):
    """Implements the transport layer over a subprocess stdin/stdout."""
    def __init__(self, process: Any):
        if process.stdin is None or process.stdout is None:
            raise ValueError("Process must have stdin and stdout pipes.")
        self.process = process
        self._closed = False

    @property
    def is_writable(self) -> bool:
        if self._closed or self.process.stdin is None:
            return False
        return not self.process.stdin.is_closing()

    async def send(self, data: bytes) -> None:
        if not self.is_writable:
            raise NotConnectedError()
        try:
            # One write per message keeps lines from interleaving.
            self.process.stdin.write(data)
            await self.process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise NotConnectedError(f"MCP process not connected: {e}") from e

    async def receive(self) -> bytes:
        return await self.process.stdout.read(READ_CHUNK_SIZE)

    async def receive_stderr(self) -> bytes:
        if self.process.stderr is None:
            return b""
        return await self.process.stderr.read(READ_CHUNK_SIZE)

    async def wait(self) -> Optional[int]:
        return await self.process.wait()

    def kill(self) -> None:
        if self.process.returncode is not None:
            return
        try:
            self.process.kill()
        except ProcessLookupError:
            logger.debug("Process already gone", pid=getattr(self.process, "pid", None))

    async def close(self) -> None:
        self._closed = True
        self.kill()
