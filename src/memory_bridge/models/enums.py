# src/memory_bridge/models/enums.py
"""
Category vocabulary shared by the plugin and the memory server.
Categories are what the host sees; types are what the server stores.
"""
from enum import Enum
from typing import Dict, Union


class MemoryCategory(str, Enum):
    """Categories exposed to the host application."""
    PREFERENCE = "preference"
    DECISION = "decision"
    ENTITY = "entity"
    FACT = "fact"
    OTHER = "other"


class MemoryType(str, Enum):
    """Memory types understood by the memory server."""
    PREFERENCE = "preference"
    DECISION = "decision"
    REFERENCE = "reference"
    NOTE = "note"


CATEGORY_MAPPING: Dict[MemoryCategory, MemoryType] = {
    MemoryCategory.PREFERENCE: MemoryType.PREFERENCE,
    MemoryCategory.DECISION: MemoryType.DECISION,
    MemoryCategory.ENTITY: MemoryType.REFERENCE,
    MemoryCategory.FACT: MemoryType.REFERENCE,
    MemoryCategory.OTHER: MemoryType.NOTE,
}

MEMORY_CATEGORIES = [category.value for category in MemoryCategory]


def coerce_category(category: Union[MemoryCategory, str]) -> MemoryCategory:
    """Unknown categories become OTHER."""
    try:
        return MemoryCategory(category)
    except ValueError:
        return MemoryCategory.OTHER


def map_category_to_type(category: Union[MemoryCategory, str]) -> MemoryType:
    """Map a host category to the server type; unknown categories become notes."""
    return CATEGORY_MAPPING[coerce_category(category)]


def map_type_to_category(memory_type: str) -> MemoryCategory:
    """Reverse map a server type to the closest host category."""
    if memory_type == MemoryType.PREFERENCE.value:
        return MemoryCategory.PREFERENCE
    if memory_type == MemoryType.DECISION.value:
        return MemoryCategory.DECISION
    if memory_type == MemoryType.REFERENCE.value:
        return MemoryCategory.ENTITY
    return MemoryCategory.OTHER
