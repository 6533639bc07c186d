# src/memory_bridge/models/memory_models.py
"""
Data models for memories and for the arguments of the host-facing tools.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import MemoryCategory, MemoryType, map_type_to_category

DEFAULT_IMPORTANCE = 0.5


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _coerce_float(value: Any, default: float) -> float:
    """Numeric coercion that falls back on missing, invalid or zero values."""
    if isinstance(value, bool):
        return float(value) or default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number == 0:
        return default
    return number


def _coerce_str(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


class MemoryEntry(BaseModel):
    """A single memory as seen by the host."""
    id: str = Field(..., description="Server-side memory id")
    content: str = Field(..., description="Remembered text")
    type: str = Field(MemoryType.NOTE.value, description="Server memory type")
    category: MemoryCategory = Field(MemoryCategory.OTHER, description="Host category")
    importance: float = Field(DEFAULT_IMPORTANCE, description="Importance 0-1")
    tags: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    score: Optional[float] = Field(None, description="Similarity score from a search")

    @classmethod
    def from_server(cls, raw: Dict[str, Any], with_score: bool = False) -> "MemoryEntry":
        """Build an entry from a loosely shaped server record.

        Missing fields get safe defaults instead of failing validation.
        """
        memory_type = _coerce_str(raw.get("type"), MemoryType.NOTE.value)
        tags = raw.get("tags")
        entry = cls(
            id=_coerce_str(raw.get("id"), ""),
            content=_coerce_str(raw.get("content") or raw.get("text"), ""),
            type=memory_type,
            category=map_type_to_category(memory_type),
            importance=_coerce_float(raw.get("importance"), DEFAULT_IMPORTANCE),
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            created_at=_coerce_str(raw.get("created_at"), utc_now_iso()),
        )
        if with_score:
            entry.score = _coerce_float(raw.get("score"), 0.0)
        return entry


# ==============================================================================
# TOOL INPUTS
# ==============================================================================

class MemoryRecallInput(BaseModel):
    """Arguments of the memory_recall tool."""
    query: str = Field(..., description="Search query")
    limit: int = Field(5, description="Max results (default: 5)", ge=1)


class MemoryStoreInput(BaseModel):
    """Arguments of the memory_store tool."""
    text: str = Field(..., description="Information to remember")
    importance: float = Field(0.7, description="Importance 0-1 (default: 0.7)", ge=0, le=1)
    category: MemoryCategory = Field(MemoryCategory.OTHER, description="Memory category")


class MemoryForgetInput(BaseModel):
    """Arguments of the memory_forget tool."""
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = Field(None, description="Search to find memory")
    memory_id: Optional[str] = Field(None, alias="memoryId", description="Specific memory ID")
