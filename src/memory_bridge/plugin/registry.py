# src/memory_bridge/plugin/registry.py
"""
Registry of the tools the bridge exposes to the host.
"""
from typing import Any, Callable, Dict, List, Optional, Type

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()

# Global registry for all host-facing tools
TOOL_REGISTRY: Dict[str, Dict[str, Any]] = {}


def build_metadata(
    description: str,
    input_schema_class: Optional[Type[BaseModel]] = None,
) -> Dict[str, Any]:
    """
    Build standard tool metadata from a Pydantic input schema.

    Returns:
        Metadata dict with ``description`` and a JSON schema under ``parameters``
    """
    metadata: Dict[str, Any] = {"description": description}

    if input_schema_class:
        metadata["parameters"] = input_schema_class.model_json_schema()

    return metadata


def register_tool(name: str, label: str, description: str, input_schema: Type[BaseModel]):
    """
    Decorator that registers a plugin method as a host tool.

    Example:
        @register_tool(
            name="memory_recall",
            label="Memory Recall",
            description="Search through long-term memories.",
            input_schema=MemoryRecallInput,
        )
        async def memory_recall(self, params: MemoryRecallInput) -> Dict[str, Any]:
            ...
    """
    def decorator(func: Callable) -> Callable:
        TOOL_REGISTRY[name] = {
            "name": name,
            "label": label,
            "method_name": func.__name__,
            "input_schema": input_schema,
            "metadata": build_metadata(description, input_schema),
        }
        logger.debug("Tool registered", name=name, method=func.__name__)
        return func

    return decorator


def get_available_tools() -> Dict[str, Dict[str, Any]]:
    """Return all registered tools with their metadata."""
    return TOOL_REGISTRY.copy()


def get_tool_definitions() -> List[Dict[str, Any]]:
    """Tool declarations in the shape hosts register them."""
    return [
        {"name": info["name"], "label": info["label"], **info["metadata"]}
        for info in TOOL_REGISTRY.values()
    ]
