"""
Model adapter for the orchestration loop.

``LLMClient`` is the narrow surface the orchestrator depends on: one
call that takes the system prompt, tool definitions and running message
history and returns a ``ModelResponse``. ``AnthropicLLM`` implements it
over the Anthropic Messages API.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

import anthropic

from commerce_orchestrator.config import ModelConfig

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when the model service call fails."""


class StopKind(str, Enum):
    FINAL = "final"
    TOOL_REQUESTED = "tool_requested"


@dataclass
class ToolInvocation:
    """One tool call requested by the model."""
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelResponse:
    """
    Normalized model reply.

    ``assistant_content`` holds the reply's content blocks in message
    form so the orchestrator can append them to the history before
    sending tool results back.
    """
    stop: StopKind
    text_segments: list[str] = field(default_factory=list)
    tool_invocations: list[ToolInvocation] = field(default_factory=list)
    assistant_content: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def final(cls, *segments: str) -> "ModelResponse":
        return cls(
            stop=StopKind.FINAL,
            text_segments=list(segments),
            assistant_content=[{"type": "text", "text": s} for s in segments],
        )

    @classmethod
    def tool_request(cls, *invocations: ToolInvocation, text: Optional[str] = None) -> "ModelResponse":
        content: list[dict[str, Any]] = [{"type": "text", "text": text}] if text else []
        content.extend(
            {"type": "tool_use", "id": inv.id, "name": inv.name, "input": inv.input}
            for inv in invocations
        )
        return cls(
            stop=StopKind.TOOL_REQUESTED,
            text_segments=[text] if text else [],
            tool_invocations=list(invocations),
            assistant_content=content,
        )


class LLMClient(Protocol):
    async def complete(
        self,
        system_prompt: str,
        tools: list[dict[str, Any]],
        messages: list[dict[str, Any]],
    ) -> ModelResponse: ...


def _parse_response(message: Any) -> ModelResponse:
    texts: list[str] = []
    invocations: list[ToolInvocation] = []
    content: list[dict[str, Any]] = []

    for block in message.content:
        if block.type == "text":
            texts.append(block.text)
            content.append({"type": "text", "text": block.text})
        elif block.type == "tool_use":
            tool_input = dict(block.input or {})
            invocations.append(ToolInvocation(id=block.id, name=block.name, input=tool_input))
            content.append({
                "type": "tool_use", "id": block.id, "name": block.name, "input": tool_input,
            })

    stop = StopKind.TOOL_REQUESTED if message.stop_reason == "tool_use" else StopKind.FINAL
    return ModelResponse(
        stop=stop,
        text_segments=texts,
        tool_invocations=invocations,
        assistant_content=content,
    )


class AnthropicLLM:
    """``LLMClient`` over ``anthropic.AsyncAnthropic``."""

    def __init__(self, config: ModelConfig, client: Optional[anthropic.AsyncAnthropic] = None) -> None:
        if not config.api_key and client is None:
            logger.warning("ANTHROPIC_API_KEY not set; model calls will fail.")
        self._config = config
        self._client = client or anthropic.AsyncAnthropic(
            api_key=config.api_key or None,
            timeout=config.request_timeout_sec,
        )

    async def complete(
        self,
        system_prompt: str,
        tools: list[dict[str, Any]],
        messages: list[dict[str, Any]],
    ) -> ModelResponse:
        try:
            message = await self._client.messages.create(
                model=self._config.llm_model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.llm_temperature,
                system=system_prompt,
                tools=tools,
                messages=messages,
            )
        except anthropic.APIError as exc:
            raise LLMError(f"Model call failed: {exc}") from exc

        response = _parse_response(message)
        logger.debug(
            "Model stop=%s (%s) with %d tool call(s)",
            response.stop.value, message.stop_reason, len(response.tool_invocations),
        )
        return response

    async def aclose(self) -> None:
        await self._client.close()
