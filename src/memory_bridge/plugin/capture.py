# src/memory_bridge/plugin/capture.py
"""
Rule-based filter deciding which conversation text is worth remembering.
Patterns cover English and Czech phrasing.
"""
import re
from typing import Any, Iterable, List

from memory_bridge.models.enums import MemoryCategory

MIN_CAPTURE_LENGTH = 10
MAX_CAPTURE_LENGTH = 500
MAX_EMOJIS = 3

MEMORY_TRIGGERS = [
    re.compile(r"zapamatuj si|pamatuj|remember", re.IGNORECASE),
    re.compile(r"preferuji|radši|nechci|prefer", re.IGNORECASE),
    re.compile(r"rozhodli jsme|budeme používat", re.IGNORECASE),
    re.compile(r"\+\d{10,}"),
    re.compile(r"[\w.-]+@[\w.-]+\.\w+"),
    re.compile(r"můj\s+\w+\s+je|je\s+můj", re.IGNORECASE),
    re.compile(r"my\s+\w+\s+is|is\s+my", re.IGNORECASE),
    re.compile(r"i (like|prefer|hate|love|want|need)", re.IGNORECASE),
    re.compile(r"always|never|important", re.IGNORECASE),
]

_EMOJI = re.compile("[\U0001F300-\U0001F9FF]")

_PREFERENCE = re.compile(r"prefer|radši|like|love|hate|want", re.IGNORECASE)
_DECISION = re.compile(r"rozhodli|decided|will use|budeme", re.IGNORECASE)
_ENTITY = re.compile(r"\+\d{10,}|@[\w.-]+\.\w+|is called|jmenuje se", re.IGNORECASE)
_FACT = re.compile(r"is|are|has|have|je|má|jsou", re.IGNORECASE)

RECALL_BLOCK_TAG = "<relevant-memories>"


def should_capture(text: str) -> bool:
    if len(text) < MIN_CAPTURE_LENGTH or len(text) > MAX_CAPTURE_LENGTH:
        return False
    # Our own injected recall block
    if RECALL_BLOCK_TAG in text:
        return False
    # System-generated markup
    if text.startswith("<") and "</" in text:
        return False
    # Agent summaries with markdown lists
    if "**" in text and "\n-" in text:
        return False
    if len(_EMOJI.findall(text)) > MAX_EMOJIS:
        return False
    return any(pattern.search(text) for pattern in MEMORY_TRIGGERS)


def detect_category(text: str) -> MemoryCategory:
    lower = text.lower()
    if _PREFERENCE.search(lower):
        return MemoryCategory.PREFERENCE
    if _DECISION.search(lower):
        return MemoryCategory.DECISION
    if _ENTITY.search(lower):
        return MemoryCategory.ENTITY
    if _FACT.search(lower):
        return MemoryCategory.FACT
    return MemoryCategory.OTHER


def extract_message_texts(messages: Iterable[Any]) -> List[str]:
    """Collects plain text from user and assistant messages.

    Content may be a string or a list of content blocks; only ``text``
    blocks are used.
    """
    texts: List[str] = []
    for message in messages:
        if not isinstance(message, dict):
            continue
        if message.get("role") not in ("user", "assistant"):
            continue
        content = message.get("content")
        if isinstance(content, str):
            texts.append(content)
            continue
        if isinstance(content, list):
            for block in content:
                if (
                    isinstance(block, dict)
                    and block.get("type") == "text"
                    and isinstance(block.get("text"), str)
                ):
                    texts.append(block["text"])
    return texts
