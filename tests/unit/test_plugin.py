# tests/unit/test_plugin.py
"""
Unit tests for MemoryBridgePlugin with the MCP client mocked out.
"""
from unittest.mock import AsyncMock, MagicMock, call

import pytest

from memory_bridge.config import MemoryMcpConfig
from memory_bridge.errors import NotConnectedError, RequestTimeoutError
from memory_bridge.models.enums import MemoryCategory
from memory_bridge.models.memory_models import MemoryEntry, MemoryStoreInput
from memory_bridge.plugin.bridge import MemoryBridgePlugin
from memory_bridge.plugin.registry import build_metadata, get_available_tools


def _entry(memory_id="m-1", content="Prefers tea over coffee", category=MemoryCategory.PREFERENCE, score=0.5):
    return MemoryEntry(id=memory_id, content=content, category=category, score=score)


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.search = AsyncMock(return_value=[])
    client.store = AsyncMock(return_value=_entry(memory_id="new-id"))
    client.delete = AsyncMock(return_value=True)
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    return client


@pytest.fixture
def plugin(mock_client):
    return MemoryBridgePlugin(MemoryMcpConfig(), client=mock_client)


class TestRegistration:

    def test_observers_are_registered(self, plugin, mock_client):
        mock_client.on_error.assert_called_once()
        mock_client.on_close.assert_called_once()

    def test_tool_definitions(self):
        definitions = {d["name"]: d for d in MemoryBridgePlugin.get_tool_definitions()}

        assert set(definitions) == {"memory_recall", "memory_store", "memory_forget"}
        recall = definitions["memory_recall"]
        assert recall["label"] == "Memory Recall"
        assert "query" in recall["parameters"]["properties"]
        assert recall["parameters"]["required"] == ["query"]
        assert "memoryId" in definitions["memory_forget"]["parameters"]["properties"]

    def test_metadata_has_description_and_parameters_only(self):
        metadata = build_metadata("Search memories", MemoryStoreInput)
        assert set(metadata) == {"description", "parameters"}
        assert metadata["parameters"] == MemoryStoreInput.model_json_schema()
        assert build_metadata("No input") == {"description": "No input"}

    def test_registry_records_handler_methods(self):
        tools = get_available_tools()
        assert tools["memory_store"]["method_name"] == "memory_store"
        assert tools["memory_store"]["input_schema"] is MemoryStoreInput

    @pytest.mark.asyncio
    async def test_execute_tool_validates_input(self, plugin, mock_client):
        with pytest.raises(ValueError, match="Invalid input for memory_store"):
            await plugin.execute_tool("memory_store", {"text": "x", "importance": 3})
        mock_client.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_execute_unknown_tool(self, plugin):
        with pytest.raises(ValueError, match="Tool not found"):
            await plugin.execute_tool("memory_teleport", {})

    @pytest.mark.asyncio
    async def test_execute_tool_dispatches(self, plugin, mock_client):
        result = await plugin.execute_tool("memory_forget", {"memoryId": "m-9"})

        mock_client.delete.assert_awaited_once_with("m-9")
        assert result["details"] == {"action": "deleted", "id": "m-9"}


class TestMemoryRecall:

    @pytest.mark.asyncio
    async def test_formats_results(self, plugin, mock_client):
        mock_client.search.return_value = [_entry(score=0.5)]

        result = await plugin.execute_tool("memory_recall", {"query": "drinks"})

        mock_client.search.assert_awaited_once_with("drinks", 5, 0.3)
        assert result["content"][0]["text"] == "Found 1 memories:\n\n1. [preference] Prefers tea over coffee (50%)"
        assert result["details"]["count"] == 1
        assert result["details"]["memories"][0] == {
            "id": "m-1",
            "text": "Prefers tea over coffee",
            "category": "preference",
            "importance": 0.5,
            "score": 0.5,
        }

    @pytest.mark.asyncio
    async def test_no_results(self, plugin):
        result = await plugin.execute_tool("memory_recall", {"query": "drinks", "limit": 2})
        assert result["content"][0]["text"] == "No relevant memories found."
        assert result["details"] == {"count": 0}

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, plugin, mock_client):
        mock_client.search.side_effect = RequestTimeoutError("tools/call", "id-1", 30)

        result = await plugin.execute_tool("memory_recall", {"query": "drinks"})

        assert result["content"][0]["text"] == "Memory recall failed. MCP server may be unavailable."
        assert "timeout" in result["details"]["error"]


class TestMemoryStore:

    @pytest.mark.asyncio
    async def test_stores_new_memory(self, plugin, mock_client):
        result = await plugin.execute_tool(
            "memory_store", {"text": "We deploy on Fridays", "category": "decision", "importance": 0.8}
        )

        mock_client.search.assert_awaited_once_with("We deploy on Fridays", 1, 0.95)
        mock_client.store.assert_awaited_once_with("We deploy on Fridays", MemoryCategory.DECISION, 0.8)
        assert result["content"][0]["text"] == 'Stored: "We deploy on Fridays..."'
        assert result["details"] == {"action": "created", "id": "new-id"}

    @pytest.mark.asyncio
    async def test_duplicate_is_not_stored(self, plugin, mock_client):
        mock_client.search.return_value = [_entry(memory_id="old", content="We deploy on Fridays", score=0.99)]

        result = await plugin.execute_tool("memory_store", {"text": "We deploy on Fridays"})

        mock_client.store.assert_not_called()
        assert result["details"] == {"action": "duplicate", "existingId": "old", "existingText": "We deploy on Fridays"}

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, plugin, mock_client):
        mock_client.search.side_effect = NotConnectedError()
        result = await plugin.execute_tool("memory_store", {"text": "We deploy on Fridays"})
        assert result["content"][0]["text"] == "Memory store failed. MCP server may be unavailable."
        assert result["details"]["error"] == "MCP process not connected"


class TestMemoryForget:

    @pytest.mark.asyncio
    async def test_single_confident_match_is_deleted(self, plugin, mock_client):
        mock_client.search.return_value = [_entry(score=0.93)]

        result = await plugin.execute_tool("memory_forget", {"query": "tea"})

        mock_client.search.assert_awaited_once_with("tea", 5, 0.7)
        mock_client.delete.assert_awaited_once_with("m-1")
        assert result["content"][0]["text"] == 'Forgotten: "Prefers tea over coffee"'

    @pytest.mark.asyncio
    async def test_several_matches_return_candidates(self, plugin, mock_client):
        mock_client.search.return_value = [
            _entry(memory_id="aaaaaaaa-1111", score=0.8),
            _entry(memory_id="bbbbbbbb-2222", content="Prefers green tea", score=0.75),
        ]

        result = await plugin.execute_tool("memory_forget", {"query": "tea"})

        mock_client.delete.assert_not_called()
        assert result["details"]["action"] == "candidates"
        assert len(result["details"]["candidates"]) == 2
        assert "[aaaaaaaa] Prefers tea over coffee..." in result["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_single_weak_match_is_not_deleted(self, plugin, mock_client):
        mock_client.search.return_value = [_entry(score=0.8)]
        result = await plugin.execute_tool("memory_forget", {"query": "tea"})
        mock_client.delete.assert_not_called()
        assert result["details"]["action"] == "candidates"

    @pytest.mark.asyncio
    async def test_no_match(self, plugin):
        result = await plugin.execute_tool("memory_forget", {"query": "tea"})
        assert result["details"] == {"found": 0}

    @pytest.mark.asyncio
    async def test_missing_parameters(self, plugin):
        result = await plugin.execute_tool("memory_forget", {})
        assert result["content"][0]["text"] == "Provide query or memoryId."
        assert result["details"] == {"error": "missing_param"}

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, plugin, mock_client):
        mock_client.delete.side_effect = NotConnectedError()
        result = await plugin.execute_tool("memory_forget", {"memoryId": "m-1"})
        assert result["content"][0]["text"] == "Memory forget failed."


class TestAutoRecall:

    @pytest.mark.asyncio
    async def test_prepends_relevant_memories(self, plugin, mock_client):
        mock_client.search.return_value = [_entry(), _entry(memory_id="m-2", content="Uses vim", category=MemoryCategory.OTHER)]

        result = await plugin.before_agent_start("What should I drink?")

        mock_client.search.assert_awaited_once_with("What should I drink?", 5, 0.3)
        assert result == {
            "prependContext": (
                "<relevant-memories>\n"
                "The following memories may be relevant to this conversation:\n"
                "- [preference] Prefers tea over coffee\n"
                "- [other] Uses vim\n"
                "</relevant-memories>"
            )
        }

    @pytest.mark.asyncio
    async def test_short_or_missing_prompt_is_skipped(self, plugin, mock_client):
        assert await plugin.before_agent_start("hey") is None
        assert await plugin.before_agent_start(None) is None
        mock_client.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled(self, mock_client):
        plugin = MemoryBridgePlugin(MemoryMcpConfig(autoRecall=False), client=mock_client)
        assert await plugin.before_agent_start("What should I drink?") is None
        mock_client.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, plugin, mock_client):
        mock_client.search.side_effect = NotConnectedError()
        assert await plugin.before_agent_start("What should I drink?") is None


class TestAutoCapture:

    @pytest.mark.asyncio
    async def test_captures_notable_messages(self, plugin, mock_client):
        messages = [
            {"role": "user", "content": "I prefer dark mode in every editor"},
            {"role": "assistant", "content": [{"type": "text", "text": "Sure."}]},
            {"role": "system", "content": "Always remember the system prompt"},
        ]

        stored = await plugin.agent_end(True, messages)

        assert stored == 1
        mock_client.store.assert_awaited_once_with(
            "I prefer dark mode in every editor", MemoryCategory.PREFERENCE, 0.7
        )

    @pytest.mark.asyncio
    async def test_at_most_three_per_run_and_duplicates_skipped(self, plugin, mock_client):
        texts = [f"Remember item number {n} for later" for n in range(5)]
        mock_client.search.side_effect = [[_entry(score=0.99)], [], [], []]

        stored = await plugin.agent_end(True, [{"role": "user", "content": t} for t in texts])

        assert stored == 2
        assert mock_client.search.await_count == 3
        assert mock_client.store.await_args_list == [
            call(texts[1], MemoryCategory.OTHER, 0.7),
            call(texts[2], MemoryCategory.OTHER, 0.7),
        ]

    @pytest.mark.asyncio
    async def test_failed_run_or_disabled_capture_stores_nothing(self, mock_client):
        messages = [{"role": "user", "content": "I prefer dark mode in every editor"}]
        plugin = MemoryBridgePlugin(MemoryMcpConfig(), client=mock_client)
        assert await plugin.agent_end(False, messages) == 0

        disabled = MemoryBridgePlugin(MemoryMcpConfig(autoCapture=False), client=mock_client)
        assert await disabled.agent_end(True, messages) == 0
        mock_client.store.assert_not_called()

    @pytest.mark.asyncio
    async def test_capture_failure_is_swallowed(self, plugin, mock_client):
        mock_client.search.side_effect = NotConnectedError()
        assert await plugin.agent_end(True, [{"role": "user", "content": "I prefer dark mode in every editor"}]) == 0


class TestService:

    @pytest.mark.asyncio
    async def test_start_connects(self, plugin, mock_client):
        await plugin.start()
        mock_client.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_survives_connect_failure(self, plugin, mock_client):
        mock_client.connect.side_effect = NotConnectedError()
        await plugin.start()

    @pytest.mark.asyncio
    async def test_stop_disconnects(self, plugin, mock_client):
        await plugin.stop()
        mock_client.disconnect.assert_awaited_once()
