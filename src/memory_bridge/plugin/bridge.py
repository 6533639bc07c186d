# src/memory_bridge/plugin/bridge.py
"""
Host-facing side of the bridge: tools, lifecycle hooks and service hooks.

Every method here catches client failures and turns them into a safe result,
so a missing or broken memory server never takes the host down.
"""
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from memory_bridge.config import MemoryMcpConfig
from memory_bridge.memory_client import MemoryMcpClient
from memory_bridge.models.memory_models import (
    MemoryForgetInput,
    MemoryRecallInput,
    MemoryStoreInput,
)
from memory_bridge.plugin.capture import detect_category, extract_message_texts, should_capture
from memory_bridge.plugin.registry import get_tool_definitions, register_tool, TOOL_REGISTRY

logger = structlog.get_logger()

PLUGIN_ID = "memory-mcp-bridge"

DUPLICATE_MIN_SCORE = 0.95
FORGET_MIN_SCORE = 0.7
FORGET_AUTO_DELETE_SCORE = 0.9
MAX_CAPTURES_PER_RUN = 3
MIN_PROMPT_LENGTH = 5


def _text_result(text: str, **details: Any) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "details": details}


class MemoryBridgePlugin:
    """Connects a host application to the memory MCP server."""

    id = PLUGIN_ID
    name = "Memory (MCP Bridge)"
    description = "Memory MCP integration with tiered storage"
    kind = "memory"

    def __init__(self, config: Optional[MemoryMcpConfig] = None, client: Optional[MemoryMcpClient] = None):
        self.config = config or MemoryMcpConfig()
        self.client = client or MemoryMcpClient(self.config)
        self.client.on_error(self._log_client_error)
        self.client.on_close(self._log_client_close)
        logger.info("Plugin registered", plugin=PLUGIN_ID, command=self.config.mcp_command)

    def _log_client_error(self, error: BaseException) -> None:
        logger.warning("Memory MCP client error", plugin=PLUGIN_ID, error=str(error))

    def _log_client_close(self, code: Optional[int]) -> None:
        logger.info("MCP process closed", plugin=PLUGIN_ID, code=code)

    # ========================================================================
    # Tools
    # ========================================================================

    @staticmethod
    def get_tool_definitions() -> List[Dict[str, Any]]:
        return get_tool_definitions()

    async def execute_tool(self, name: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Validates ``params`` against the tool's schema and runs it."""
        tool_info = TOOL_REGISTRY.get(name)
        if not tool_info:
            raise ValueError(f"Tool not found in registry: {name}")
        try:
            validated = tool_info["input_schema"].model_validate(params)
        except ValidationError as e:
            logger.error("Input validation failed", tool=name, error=str(e))
            raise ValueError(f"Invalid input for {name}: {e}") from e
        method = getattr(self, tool_info["method_name"])
        return await method(validated)

    @register_tool(
        name="memory_recall",
        label="Memory Recall",
        description=(
            "Search through long-term memories. Use when you need context about user "
            "preferences, past decisions, or previously discussed topics."
        ),
        input_schema=MemoryRecallInput,
    )
    async def memory_recall(self, params: MemoryRecallInput) -> Dict[str, Any]:
        try:
            results = await self.client.search(params.query, params.limit, self.config.recall_min_score)
        except Exception as e:
            logger.warning("memory_recall failed", error=str(e))
            return _text_result("Memory recall failed. MCP server may be unavailable.", error=str(e))

        if not results:
            return _text_result("No relevant memories found.", count=0)

        lines = "\n".join(
            f"{i}. [{r.category.value}] {r.content} ({(r.score or 0) * 100:.0f}%)"
            for i, r in enumerate(results, start=1)
        )
        memories = [
            {
                "id": r.id,
                "text": r.content,
                "category": r.category.value,
                "importance": r.importance,
                "score": r.score,
            }
            for r in results
        ]
        return _text_result(f"Found {len(results)} memories:\n\n{lines}", count=len(results), memories=memories)

    @register_tool(
        name="memory_store",
        label="Memory Store",
        description="Save important information in long-term memory. Use for preferences, facts, decisions.",
        input_schema=MemoryStoreInput,
    )
    async def memory_store(self, params: MemoryStoreInput) -> Dict[str, Any]:
        try:
            existing = await self.client.search(params.text, 1, DUPLICATE_MIN_SCORE)
            if existing:
                return _text_result(
                    f'Similar memory already exists: "{existing[0].content}"',
                    action="duplicate",
                    existingId=existing[0].id,
                    existingText=existing[0].content,
                )
            entry = await self.client.store(params.text, params.category, params.importance)
        except Exception as e:
            logger.warning("memory_store failed", error=str(e))
            return _text_result("Memory store failed. MCP server may be unavailable.", error=str(e))

        return _text_result(f'Stored: "{params.text[:100]}..."', action="created", id=entry.id)

    @register_tool(
        name="memory_forget",
        label="Memory Forget",
        description="Delete specific memories. GDPR-compliant.",
        input_schema=MemoryForgetInput,
    )
    async def memory_forget(self, params: MemoryForgetInput) -> Dict[str, Any]:
        try:
            if params.memory_id:
                await self.client.delete(params.memory_id)
                return _text_result(f"Memory {params.memory_id} forgotten.", action="deleted", id=params.memory_id)

            if params.query:
                results = await self.client.search(params.query, 5, FORGET_MIN_SCORE)
                if not results:
                    return _text_result("No matching memories found.", found=0)

                if len(results) == 1 and (results[0].score or 0) > FORGET_AUTO_DELETE_SCORE:
                    await self.client.delete(results[0].id)
                    return _text_result(f'Forgotten: "{results[0].content}"', action="deleted", id=results[0].id)

                listing = "\n".join(f"- [{r.id[:8]}] {r.content[:60]}..." for r in results)
                candidates = [
                    {"id": r.id, "text": r.content, "category": r.category.value, "score": r.score}
                    for r in results
                ]
                return _text_result(
                    f"Found {len(results)} candidates. Specify memoryId:\n{listing}",
                    action="candidates",
                    candidates=candidates,
                )
        except Exception as e:
            logger.warning("memory_forget failed", error=str(e))
            return _text_result("Memory forget failed.", error=str(e))

        return _text_result("Provide query or memoryId.", error="missing_param")

    # ========================================================================
    # Lifecycle hooks
    # ========================================================================

    async def before_agent_start(self, prompt: Optional[str]) -> Optional[Dict[str, str]]:
        """Auto-recall: returns context to prepend, or None."""
        if not self.config.auto_recall:
            return None
        if not prompt or len(prompt) < MIN_PROMPT_LENGTH:
            return None
        try:
            results = await self.client.search(prompt, self.config.recall_limit, self.config.recall_min_score)
        except Exception as e:
            logger.warning("Recall failed", plugin=PLUGIN_ID, error=str(e))
            return None
        if not results:
            return None

        memory_context = "\n".join(f"- [{r.category.value}] {r.content}" for r in results)
        logger.info("Injecting memories into context", plugin=PLUGIN_ID, count=len(results))
        return {
            "prependContext": (
                "<relevant-memories>\n"
                "The following memories may be relevant to this conversation:\n"
                f"{memory_context}\n"
                "</relevant-memories>"
            )
        }

    async def agent_end(self, success: bool, messages: Optional[List[Any]]) -> int:
        """Auto-capture: stores notable user/assistant text, returns how many."""
        if not self.config.auto_capture:
            return 0
        if not success or not messages:
            return 0

        stored = 0
        try:
            to_capture = [text for text in extract_message_texts(messages) if text and should_capture(text)]
            for text in to_capture[:MAX_CAPTURES_PER_RUN]:
                existing = await self.client.search(text, 1, DUPLICATE_MIN_SCORE)
                if existing:
                    continue
                await self.client.store(text, detect_category(text), 0.7)
                stored += 1
        except Exception as e:
            logger.warning("Capture failed", plugin=PLUGIN_ID, error=str(e))

        if stored:
            logger.info("Auto-captured memories", plugin=PLUGIN_ID, count=stored)
        return stored

    # ========================================================================
    # Service
    # ========================================================================

    async def start(self) -> None:
        try:
            await self.client.connect()
            logger.info("Plugin initialized", plugin=PLUGIN_ID, command=self.config.mcp_command)
        except Exception as e:
            logger.warning("Failed to connect", plugin=PLUGIN_ID, error=str(e))

    async def stop(self) -> None:
        await self.client.disconnect()
        logger.info("Plugin stopped", plugin=PLUGIN_ID)
