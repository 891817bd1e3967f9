"""Core agent runtime: the model/tool conversation loop."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ama_agent.errors import ConversationCancelled, ModelTransportError
from ama_agent.llm.base import LLMProvider
from ama_agent.models import LLMResponse, Message
from ama_agent.tools.dispatcher import Guard, ToolDispatcher
from ama_agent.tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)


class ConversationState(str, enum.Enum):
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOLS = "awaiting_tools"
    DONE = "done"


@dataclass(slots=True)
class ConversationResult:
    """Final reply plus the full history that produced it."""

    reply: str
    history: list[Message]
    state: ConversationState
    model_calls: int
    stop_reason: str


class ConversationOrchestrator:
    """Drives model calls and tool dispatch until the model stops asking for tools."""

    def __init__(
        self,
        llm: LLMProvider,
        tool_registry: ToolRegistry,
        dispatcher: ToolDispatcher,
        request_timeout_seconds: float,
        max_output_tokens: int | None = None,
    ) -> None:
        self._llm = llm
        self._tool_registry = tool_registry
        self._dispatcher = dispatcher
        self._request_timeout_seconds = request_timeout_seconds
        self._max_output_tokens = max_output_tokens

    async def run(
        self,
        history: Sequence[Message],
        *,
        system: str | None = None,
        guards: Mapping[str, Guard] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ConversationResult:
        """Run the tool-use loop over a copy of ``history`` until DONE.

        Tool failures are returned to the model as ``is_error`` results.
        ModelTransportError and ProtocolError from the model call propagate;
        ConversationCancelled is raised once ``cancel`` is set.
        """

        if not any(message.role == "user" for message in history):
            raise ValueError("Conversation history must contain at least one user message")

        messages = list(history)
        tools = self._tool_registry.list_tool_specs()
        model_calls = 0

        while True:
            _check_cancelled(cancel, messages)
            response = await self._call_model(messages, tools, system)
            model_calls += 1

            tool_uses = response.tool_uses
            if response.stop_reason != "tool_use" or not tool_uses:
                if response.stop_reason == "tool_use":
                    LOGGER.warning("Model stopped for tool_use without any tool calls")
                if response.content:
                    messages.append(Message(role="assistant", content=tuple(response.content)))
                return ConversationResult(
                    reply=response.text,
                    history=messages,
                    state=ConversationState.DONE,
                    model_calls=model_calls,
                    stop_reason=response.stop_reason,
                )

            messages.append(Message(role="assistant", content=tuple(response.content)))
            LOGGER.info("Dispatching %d tool call(s): %s", len(tool_uses), [tu.name for tu in tool_uses])

            _check_cancelled(cancel, messages)
            results = await self._dispatcher.invoke_all(tool_uses, guards=guards)
            messages.append(Message(role="user", content=tuple(results)))

    async def _call_model(
        self,
        messages: list[Message],
        tools: list[dict],
        system: str | None,
    ) -> LLMResponse:
        try:
            return await asyncio.wait_for(
                self._llm.generate(messages, tools=tools, system=system, max_tokens=self._max_output_tokens),
                timeout=self._request_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ModelTransportError(
                f"Model request timed out after {self._request_timeout_seconds}s"
            ) from exc


def _check_cancelled(cancel: asyncio.Event | None, messages: list[Message]) -> None:
    if cancel is not None and cancel.is_set():
        raise ConversationCancelled(list(messages))
