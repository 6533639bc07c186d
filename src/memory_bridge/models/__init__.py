# src/memory_bridge/models/__init__.py
from .enums import (
    CATEGORY_MAPPING,
    MEMORY_CATEGORIES,
    MemoryCategory,
    MemoryType,
    coerce_category,
    map_category_to_type,
    map_type_to_category,
)
from .memory_models import (
    MemoryEntry,
    MemoryForgetInput,
    MemoryRecallInput,
    MemoryStoreInput,
)

__all__ = [
    "CATEGORY_MAPPING",
    "MEMORY_CATEGORIES",
    "MemoryCategory",
    "MemoryEntry",
    "MemoryForgetInput",
    "MemoryRecallInput",
    "MemoryStoreInput",
    "MemoryType",
    "coerce_category",
    "map_category_to_type",
    "map_type_to_category",
]
