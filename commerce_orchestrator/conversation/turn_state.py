"""
Finite state machine for one conversation turn.

A turn starts with the system prompt being sent to the model, alternates
between awaiting the model and dispatching requested tools, and ends in
FINAL (model produced text) or FAILED (an error, or too many tool rounds).

Usage:
    sm = TurnStateMachine()
    sm.transition(TurnTrigger.PROMPT_SENT)
    sm.transition(TurnTrigger.TOOLS_REQUESTED)
    assert sm.current_state == TurnState.TOOL_DISPATCH
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    START = "start"
    AWAITING_MODEL = "awaiting_model"
    TOOL_DISPATCH = "tool_dispatch"
    FINAL = "final"
    FAILED = "failed"


class TurnTrigger(str, Enum):
    """Events that move a turn between states."""
    PROMPT_SENT = "prompt_sent"
    TOOLS_REQUESTED = "tools_requested"
    TOOL_RESULTS_SENT = "tool_results_sent"
    TEXT_PRODUCED = "text_produced"
    ERROR = "error"


@dataclass
class Transition:
    from_state: TurnState
    to_state: TurnState
    trigger: TurnTrigger


@dataclass
class StateEntry:
    """Recorded visit to a state."""
    state: TurnState
    entered_at: datetime
    trigger: Optional[TurnTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class TurnStateMachine:
    """
    Explicit transition table for a single turn.

    ``rounds`` counts completed tool-dispatch rounds, i.e. how many times
    tool results were sent back to the model.
    """

    TRANSITIONS: list[Transition] = [
        Transition(TurnState.START, TurnState.AWAITING_MODEL, TurnTrigger.PROMPT_SENT),
        Transition(TurnState.START, TurnState.FAILED, TurnTrigger.ERROR),

        Transition(TurnState.AWAITING_MODEL, TurnState.TOOL_DISPATCH, TurnTrigger.TOOLS_REQUESTED),
        Transition(TurnState.AWAITING_MODEL, TurnState.FINAL, TurnTrigger.TEXT_PRODUCED),
        Transition(TurnState.AWAITING_MODEL, TurnState.FAILED, TurnTrigger.ERROR),

        Transition(TurnState.TOOL_DISPATCH, TurnState.AWAITING_MODEL, TurnTrigger.TOOL_RESULTS_SENT),
        Transition(TurnState.TOOL_DISPATCH, TurnState.FAILED, TurnTrigger.ERROR),
    ]

    TERMINAL_STATES = frozenset({TurnState.FINAL, TurnState.FAILED})

    def __init__(self) -> None:
        self._current_state = TurnState.START
        self._history: list[StateEntry] = [
            StateEntry(state=TurnState.START, entered_at=datetime.now(timezone.utc))
        ]
        self._rounds = 0

    @property
    def current_state(self) -> TurnState:
        return self._current_state

    @property
    def rounds(self) -> int:
        return self._rounds

    def transition(self, trigger: TurnTrigger) -> TurnState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no transition exists for the trigger.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                if trigger == TurnTrigger.TOOL_RESULTS_SENT:
                    self._rounds += 1

                logger.debug(
                    "Turn transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def fail(self) -> TurnState:
        """Move to FAILED from any non-terminal state; no-op once terminal."""
        if self.is_terminal():
            return self._current_state
        return self.transition(TurnTrigger.ERROR)

    def get_valid_triggers(self) -> list[TurnTrigger]:
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in self.TERMINAL_STATES
