"""Concurrent dispatch of model-requested tool calls to the MCP endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from ama_agent.errors import ProtocolError, RpcTimeoutError, ToolArgumentError, TransportError
from ama_agent.models import ToolCallOutcome, ToolResultBlock, ToolUseBlock

if TYPE_CHECKING:
    from ama_agent.db import Database
    from ama_agent.mcp.client import JsonRpcClient
    from ama_agent.tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

TIMED_OUT = "timed out"
_LOG_LIMIT = 200

# A guard inspects validated arguments and raises ToolArgumentError to block the call.
Guard = Callable[[dict[str, Any]], None]


class ToolDispatcher:
    """Executes tool calls with a bounded wait and normalized outcomes."""

    def __init__(
        self,
        rpc: JsonRpcClient,
        registry: ToolRegistry,
        timeout_seconds: float = 60.0,
        db: Database | None = None,
    ) -> None:
        self._rpc = rpc
        self._registry = registry
        self._timeout_seconds = timeout_seconds
        self._db = db

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
        guard: Guard | None = None,
    ) -> ToolCallOutcome:
        """Run one tool call. Never raises for a per-call failure."""

        timeout = self._timeout_seconds if timeout is None else timeout
        LOGGER.info("Executing tool %s args=%s", name, _truncate(arguments))

        try:
            validated = self._registry.validate(name, arguments)
            if guard is not None:
                guard(validated)
        except ToolArgumentError as exc:
            return self._finish(name, arguments, ToolCallOutcome(success=False, error=str(exc)))

        try:
            result = await asyncio.wait_for(self._rpc.call_tool(name, validated), timeout=timeout)
        except (asyncio.TimeoutError, RpcTimeoutError):
            outcome = ToolCallOutcome(success=False, error=TIMED_OUT)
        except (TransportError, ProtocolError) as exc:
            outcome = ToolCallOutcome(success=False, error=str(exc))
        else:
            outcome = ToolCallOutcome(success=True, payload=result)
        return self._finish(name, validated, outcome)

    async def invoke_all(
        self,
        tool_uses: Sequence[ToolUseBlock],
        guards: Mapping[str, Guard] | None = None,
    ) -> list[ToolResultBlock]:
        """Dispatch one turn's tool calls concurrently; one result per call."""

        guards = guards or {}
        outcomes = await asyncio.gather(
            *(self.invoke(tu.name, tu.input, guard=guards.get(tu.name)) for tu in tool_uses)
        )
        return [outcome.to_result_block(tu.id) for tu, outcome in zip(tool_uses, outcomes)]

    def _finish(self, name: str, arguments: dict[str, Any], outcome: ToolCallOutcome) -> ToolCallOutcome:
        if outcome.success:
            LOGGER.info("Tool %s result: %s", name, _truncate(outcome.payload))
        else:
            LOGGER.warning("Tool %s failed: %s", name, outcome.error)
        if self._db is not None:
            output = outcome.payload if outcome.success else {"error": outcome.error}
            self._db.log_tool_execution(name, arguments, output, succeeded=outcome.success)
        return outcome


def _truncate(value: Any, limit: int = _LOG_LIMIT) -> str:
    try:
        text = json.dumps(value)
    except (TypeError, ValueError):
        text = repr(value)
    return text if len(text) <= limit else f"{text[:limit]}..."
