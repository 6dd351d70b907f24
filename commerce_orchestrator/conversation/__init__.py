from commerce_orchestrator.conversation.config_cache import ConfigCache
from commerce_orchestrator.conversation.session_store import SessionStore
from commerce_orchestrator.conversation.turn_state import (
    TurnState,
    TurnStateMachine,
    TurnTrigger,
)

__all__ = [
    "ConfigCache",
    "SessionStore",
    "TurnStateMachine",
    "TurnState",
    "TurnTrigger",
]
