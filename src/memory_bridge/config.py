# src/memory_bridge/config.py
"""
Configuration for connecting the host to the memory MCP server.

Accepted sources: a plugin config mapping (camelCase keys), a YAML file, or
environment variables (a .env file is honoured via python-dotenv).
"""
import os
import shlex
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from memory_bridge.mcp_library.client import DEFAULT_REQUEST_TIMEOUT

logger = structlog.get_logger()


def resolve_default_mcp_command() -> str:
    return str(Path.home() / ".claude-code-pp" / "bin" / "memory-mcp")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return _is_number(value) and float(value).is_integer() and value >= 1


def _is_score(value: Any) -> bool:
    return _is_number(value) and 0 <= value <= 1


def _is_positive_number(value: Any) -> bool:
    return _is_number(value) and value > 0


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _is_dict(value: Any) -> bool:
    return isinstance(value, dict)


# Known keys (camelCase) -> (field name, type and range check)
_KNOWN_KEYS: Dict[str, tuple] = {
    "mcpCommand": ("mcp_command", lambda v: isinstance(v, str)),
    "mcpArgs": ("mcp_args", _is_list),
    "mcpEnv": ("mcp_env", _is_dict),
    "autoRecall": ("auto_recall", lambda v: True),
    "autoCapture": ("auto_capture", lambda v: True),
    "recallLimit": ("recall_limit", _is_positive_int),
    "recallMinScore": ("recall_min_score", _is_score),
    "requestTimeout": ("request_timeout", _is_positive_number),
}
_FIELD_TO_KEY = {field_name: key for key, (field_name, _) in _KNOWN_KEYS.items()}

# Normalisers applied after the type check
_NORMALISE: Dict[str, Callable[[Any], Any]] = {
    "mcpArgs": lambda v: [str(arg) for arg in v],
    "mcpEnv": lambda v: {str(k): str(val) for k, val in v.items()},
    # Only an explicit false switches the hooks off.
    "autoRecall": lambda v: v is not False,
    "autoCapture": lambda v: v is not False,
    "recallLimit": int,
}


class MemoryMcpConfig(BaseModel):
    """Settings for the memory MCP bridge."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    mcp_command: str = Field(default_factory=resolve_default_mcp_command, alias="mcpCommand",
                             description="Path to the Memory MCP server wrapper script")
    mcp_args: List[str] = Field(default_factory=list, alias="mcpArgs",
                                description="Arguments to pass to the MCP command")
    mcp_env: Dict[str, str] = Field(default_factory=dict, alias="mcpEnv",
                                    description="Extra environment for the MCP process")
    auto_recall: bool = Field(True, alias="autoRecall",
                              description="Automatically inject relevant memories into context")
    auto_capture: bool = Field(True, alias="autoCapture",
                               description="Automatically capture important information from conversations")
    recall_limit: int = Field(5, alias="recallLimit", ge=1,
                              description="Maximum number of memories to recall per query")
    recall_min_score: float = Field(0.3, alias="recallMinScore", ge=0, le=1,
                                    description="Minimum similarity score for memory recall (0-1)")
    request_timeout: float = Field(DEFAULT_REQUEST_TIMEOUT, alias="requestTimeout", gt=0,
                                   description="Seconds to wait for each MCP response")

    @model_validator(mode="before")
    @classmethod
    def _lenient_values(cls, data: Any) -> Any:
        """Rejects unknown keys and drops mistyped or out-of-range known ones so defaults apply."""
        if not isinstance(data, dict):
            return data
        unknown = [key for key in data if key not in _KNOWN_KEYS and key not in _FIELD_TO_KEY]
        if unknown:
            raise ValueError(f"memory-mcp config has unknown keys: {', '.join(unknown)}")

        cleaned: Dict[str, Any] = {}
        for key, value in data.items():
            camel = _FIELD_TO_KEY.get(key, key)
            field_name, check = _KNOWN_KEYS[camel]
            if not check(value):
                logger.warning("Ignoring invalid config value", key=key, value_type=type(value).__name__)
                continue
            normalise = _NORMALISE.get(camel)
            cleaned[field_name] = normalise(value) if normalise else value
        return cleaned

    @classmethod
    def parse(cls, value: Any) -> "MemoryMcpConfig":
        """Parse a plugin config value; anything but a mapping yields defaults."""
        if not isinstance(value, Mapping):
            return cls()
        return cls.model_validate(dict(value))

    @classmethod
    def from_yaml(cls, config_path: str) -> "MemoryMcpConfig":
        """Load configuration from YAML file."""
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        logger.info("Loaded config file", path=config_path)
        return cls.parse(data)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "MemoryMcpConfig":
        """Build configuration from MEMORY_MCP_* environment variables."""
        load_dotenv(env_file)
        values: Dict[str, Any] = {}
        command = os.getenv("MEMORY_MCP_COMMAND")
        if command:
            values["mcpCommand"] = command
        args = os.getenv("MEMORY_MCP_ARGS")
        if args:
            values["mcpArgs"] = shlex.split(args)
        timeout = os.getenv("MEMORY_MCP_REQUEST_TIMEOUT")
        if timeout:
            values["requestTimeout"] = float(timeout)
        limit = os.getenv("MEMORY_MCP_RECALL_LIMIT")
        if limit:
            values["recallLimit"] = int(limit)
        min_score = os.getenv("MEMORY_MCP_RECALL_MIN_SCORE")
        if min_score:
            values["recallMinScore"] = float(min_score)
        return cls.parse(values)
