# tests/conftest.py

import pytest

from memory_bridge.config import MemoryMcpConfig
from memory_bridge.memory_client import MemoryMcpClient
from tests.fakes import FakeMemoryServer, TEST_TIMEOUT


@pytest.fixture
def server():
    return FakeMemoryServer()


@pytest.fixture
def config():
    return MemoryMcpConfig(mcp_command="memory-mcp", mcp_args=["--stdio"], request_timeout=TEST_TIMEOUT)


@pytest.fixture
async def client(config, server):
    memory_client = MemoryMcpClient(config, spawn=server.spawn)
    yield memory_client
    await memory_client.disconnect()
