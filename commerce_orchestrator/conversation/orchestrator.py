"""
Conversation orchestrator: runs one inbound message through the model/tool loop.

Flow of ``handle_message``:
    resolve session -> fetch history -> log user message -> run turn
    -> persist context -> log assistant reply -> return reply text

The turn itself (``run_turn``) sends the system prompt and the user
message to the model, dispatches every tool the model requests in order,
feeds the results back, and repeats until the model answers with text.
Any failure inside the loop ends the turn with the fallback message;
cart changes made by tools that completed before the failure are kept.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping, Optional

from commerce_orchestrator.config import AppConfig
from commerce_orchestrator.conversation.config_cache import ConfigCache, integer, text
from commerce_orchestrator.conversation.session_store import SessionStore
from commerce_orchestrator.conversation.turn_state import TurnStateMachine, TurnTrigger
from commerce_orchestrator.llm.client import LLMClient, ModelResponse, StopKind
from commerce_orchestrator.logging_context import session_scope
from commerce_orchestrator.prompts.prompt_builder import DEFAULT_HISTORY_TURNS, PromptBuilder
from commerce_orchestrator.prompts.system_prompts import default_fallback_message
from commerce_orchestrator.schemas.config_schema import ConfigKey
from commerce_orchestrator.schemas.session_schema import (
    ConversationMessage,
    MessageRole,
    Session,
    SessionContext,
)
from commerce_orchestrator.store.base import DataStore
from commerce_orchestrator.tools.dispatcher import ToolDispatcher
from commerce_orchestrator.tools.registry import TOOL_DEFINITIONS

logger = logging.getLogger(__name__)


class ToolRoundLimitExceeded(Exception):
    """Raised when the model keeps requesting tools past the per-turn cap."""


@dataclass
class TurnResult:
    """Outcome of one turn."""
    reply: str
    context: SessionContext
    state_trace: list[str] = field(default_factory=list)
    rounds: int = 0
    failed: bool = False


def _tool_result_block(tool_use_id: str, result: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": json.dumps(result, default=str),
    }


class ConversationOrchestrator:
    """
    Entry point for inbound messages.

    Owns the config cache, session store, prompt builder and tool
    dispatcher for one data store and model client.
    """

    def __init__(
        self,
        store: DataStore,
        llm: LLMClient,
        settings: AppConfig,
        config_cache: Optional[ConfigCache] = None,
        dispatcher: Optional[ToolDispatcher] = None,
    ) -> None:
        self._settings = settings
        self._llm = llm
        self.config_cache = config_cache or ConfigCache(
            store, ttl_seconds=settings.orchestrator.config_cache_ttl_sec
        )
        self.sessions = SessionStore(store)
        self.prompts = PromptBuilder(settings.business)
        self.dispatcher = dispatcher or ToolDispatcher(store, self.config_cache, settings)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}

    def fallback_message(self, config: Mapping[str, Any]) -> str:
        return text(config, ConfigKey.ERROR_MESSAGE, default_fallback_message(self._settings.business))

    async def reload_config(self) -> Mapping[str, Any]:
        return await self.config_cache.force_reload()

    # ------------------------------------------------------------------ #
    # Turn loop
    # ------------------------------------------------------------------ #

    async def run_turn(
        self,
        user_text: str,
        session: Session,
        history: list[ConversationMessage],
        config: Mapping[str, Any],
    ) -> TurnResult:
        """
        Run the model/tool loop for one user message.

        Never raises for model, store or tool failures: they produce a
        failed ``TurnResult`` carrying the fallback message. ``session``
        is updated in place by tools that change the cart.
        """
        sm = TurnStateMachine()
        max_rounds = self._settings.orchestrator.max_tool_rounds

        try:
            system_prompt = self.prompts.build(session, history, config)
            messages: list[dict[str, Any]] = [{"role": "user", "content": user_text}]

            sm.transition(TurnTrigger.PROMPT_SENT)
            response = await self._llm.complete(system_prompt, TOOL_DEFINITIONS, messages)

            while response.stop == StopKind.TOOL_REQUESTED:
                if sm.rounds >= max_rounds:
                    raise ToolRoundLimitExceeded(
                        f"Model still requesting tools after {max_rounds} round(s)"
                    )
                sm.transition(TurnTrigger.TOOLS_REQUESTED)
                results = await self._dispatch_all(response, session)

                messages.append({"role": "assistant", "content": response.assistant_content})
                messages.append({"role": "user", "content": results})

                sm.transition(TurnTrigger.TOOL_RESULTS_SENT)
                logger.info("Tool round %d complete, calling model again", sm.rounds)
                response = await self._llm.complete(system_prompt, TOOL_DEFINITIONS, messages)

            sm.transition(TurnTrigger.TEXT_PRODUCED)
        except Exception:
            logger.exception("Turn failed in state %s", sm.current_state.value)
            sm.fail()
            return TurnResult(
                reply=self.fallback_message(config),
                context=session.context,
                state_trace=sm.get_state_trace(),
                rounds=sm.rounds,
                failed=True,
            )

        reply = "\n\n".join(segment for segment in response.text_segments if segment)
        logger.info("Turn complete: %s", " -> ".join(sm.get_state_trace()))
        return TurnResult(
            reply=reply,
            context=session.context,
            state_trace=sm.get_state_trace(),
            rounds=sm.rounds,
        )

    async def _dispatch_all(self, response: ModelResponse, session: Session) -> list[dict[str, Any]]:
        """Dispatch each requested tool in order, pairing results with invocation ids."""
        blocks = []
        for invocation in response.tool_invocations:
            result = await self.dispatcher.dispatch(invocation.name, invocation.input, session)
            logger.debug("Tool %s success=%s", invocation.name, result.get("success"))
            blocks.append(_tool_result_block(invocation.id, result))
        return blocks

    # ------------------------------------------------------------------ #
    # Inbound message entry point
    # ------------------------------------------------------------------ #

    async def handle_message(self, channel_identity: str, text_in: str) -> str:
        """
        Process one inbound message end to end and return the reply text.

        Always returns a reply: the model's answer or the fallback message.
        Turns for the same channel identity run one at a time.
        """
        with session_scope(channel_identity):
            async with self._identity_lock(channel_identity):
                return await self._process(channel_identity, text_in)

    @asynccontextmanager
    async def _identity_lock(self, channel_identity: str) -> AsyncIterator[None]:
        """Hold the per-identity lock; the entry is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(channel_identity, asyncio.Lock())
        self._lock_holders[channel_identity] = self._lock_holders.get(channel_identity, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[channel_identity] -= 1
            if not self._lock_holders[channel_identity]:
                del self._lock_holders[channel_identity]
                del self._locks[channel_identity]

    async def _process(self, channel_identity: str, text_in: str) -> str:
        config = await self.config_cache.get()

        try:
            session = await self.sessions.resolve_or_create_session(channel_identity)
        except Exception:
            logger.exception("Could not resolve session")
            return self.fallback_message(config)

        customer_id = session.customer.id if session.customer else None
        history_turns = min(
            integer(config, ConfigKey.MAX_HISTORY_TURNS, DEFAULT_HISTORY_TURNS),
            self._settings.orchestrator.history_fetch_limit,
        )
        history = await self.sessions.fetch_history(session.id, history_turns)
        await self.sessions.append_message(
            session.id, channel_identity, customer_id, MessageRole.USER, text_in
        )

        result = await self.run_turn(text_in, session, history, config)

        try:
            await self.sessions.persist_context(session.id, result.context)
        except Exception:
            logger.exception("Failed to persist context for session %s", session.id)

        await self.sessions.append_message(
            session.id, channel_identity, customer_id, MessageRole.ASSISTANT, result.reply
        )
        return result.reply
