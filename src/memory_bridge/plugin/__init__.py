# src/memory_bridge/plugin/__init__.py
from .bridge import MemoryBridgePlugin, PLUGIN_ID
from .capture import detect_category, extract_message_texts, should_capture
from .registry import get_available_tools, get_tool_definitions

__all__ = [
    "MemoryBridgePlugin",
    "PLUGIN_ID",
    "detect_category",
    "extract_message_texts",
    "get_available_tools",
    "get_tool_definitions",
    "should_capture",
]
