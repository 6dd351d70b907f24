"""Behavioral configuration entries stored in the data store."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ConfigValueType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    STRUCTURED = "structured"


class ConfigKey(str, Enum):
    """Keys the orchestrator reads. All optional."""
    BUSINESS_CONTEXT = "business_context"
    PERSONALITY = "personality"
    FLOW_RULES = "flow_rules"
    RESTRICTIONS = "restrictions"
    REGISTRATION_REQUIRED_MESSAGE = "registration_required_message"
    ERROR_MESSAGE = "error_message"
    MAX_HISTORY_TURNS = "max_history_turns"


class ConfigEntry(BaseModel):
    """Raw key/value row; ``value`` is decoded by ``value_type`` in the ConfigCache."""
    key: str
    value: Any = None
    value_type: ConfigValueType = ConfigValueType.STRING
    description: Optional[str] = None
