"""Tests for ToolDispatcher."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

import pytest

from ama_agent.db import Database
from ama_agent.errors import RpcError, ToolArgumentError, TransportError
from ama_agent.models import ToolDescriptor, ToolUseBlock
from ama_agent.tools.dispatcher import TIMED_OUT, ToolDispatcher
from ama_agent.tools.registry import ToolRegistry

OPEN_SCHEMA = {"type": "object", "properties": {}}


class FakeRpc:
    """Stands in for JsonRpcClient; behaviour keyed by tool name."""

    def __init__(self, delays: dict[str, float] | None = None, errors: dict[str, Exception] | None = None) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._delays = delays or {}
        self._errors = errors or {}

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        self.calls.append((name, arguments))
        await asyncio.sleep(self._delays.get(name, 0))
        if name in self._errors:
            raise self._errors[name]
        return {"tool": name, "echo": arguments}


def _registry(*names: str) -> ToolRegistry:
    return ToolRegistry(ToolDescriptor(name=n, description="", input_schema=OPEN_SCHEMA) for n in names)


@pytest.mark.asyncio
async def test_invoke_returns_payload_unchanged():
    dispatcher = ToolDispatcher(FakeRpc(), _registry("get_chain_stats"))

    outcome = await dispatcher.invoke("get_chain_stats", {})

    assert outcome.success is True
    assert outcome.payload == {"tool": "get_chain_stats", "echo": {}}
    assert outcome.error is None


@pytest.mark.asyncio
async def test_rpc_error_envelope_becomes_failed_outcome():
    rpc = FakeRpc(errors={"get_transaction": RpcError("Transaction not found", code=-32000)})
    dispatcher = ToolDispatcher(rpc, _registry("get_transaction"))

    outcome = await dispatcher.invoke("get_transaction", {"hash": "nope"})

    assert outcome.success is False
    assert outcome.error == "Transaction not found"


@pytest.mark.asyncio
async def test_transport_error_becomes_failed_outcome():
    rpc = FakeRpc(errors={"get_nodes": TransportError("connection refused")})
    dispatcher = ToolDispatcher(rpc, _registry("get_nodes"))

    outcome = await dispatcher.invoke("get_nodes", {})

    assert outcome.success is False
    assert "connection refused" in outcome.error


@pytest.mark.asyncio
async def test_timeout_returns_within_bound():
    rpc = FakeRpc(delays={"get_richlist": 5.0})
    dispatcher = ToolDispatcher(rpc, _registry("get_richlist"))

    started = time.monotonic()
    outcome = await dispatcher.invoke("get_richlist", {}, timeout=0.05)
    elapsed = time.monotonic() - started

    assert outcome.success is False
    assert outcome.error == TIMED_OUT
    assert elapsed < 1.0


@pytest.mark.asyncio
async def test_unknown_tool_is_not_sent():
    rpc = FakeRpc()
    dispatcher = ToolDispatcher(rpc, _registry("get_chain_stats"))

    outcome = await dispatcher.invoke("format_disk", {})

    assert outcome.success is False
    assert "Unknown tool" in outcome.error
    assert rpc.calls == []


@pytest.mark.asyncio
async def test_guard_blocks_call():
    rpc = FakeRpc()
    dispatcher = ToolDispatcher(rpc, _registry("submit_transaction"))

    def guard(arguments: dict[str, Any]) -> None:
        raise ToolArgumentError("not signed yet")

    outcome = await dispatcher.invoke("submit_transaction", {"transaction": "abcd"}, guard=guard)

    assert outcome.success is False
    assert outcome.error == "not signed yet"
    assert rpc.calls == []


@pytest.mark.asyncio
async def test_malformed_schema_becomes_failed_outcome():
    rpc = FakeRpc()
    broken = ToolDescriptor(name="get_nodes", description="", input_schema={"type": "object", "properties": ["x"]})
    dispatcher = ToolDispatcher(rpc, ToolRegistry([broken]))

    outcome = await dispatcher.invoke("get_nodes", {})

    assert outcome.success is False
    assert "malformed properties" in outcome.error
    assert rpc.calls == []


@pytest.mark.asyncio
async def test_invoke_all_survives_tool_with_malformed_schema():
    rpc = FakeRpc()
    broken = ToolDescriptor(name="broken", description="", input_schema={"type": "object", "required": "x"})
    healthy = ToolDescriptor(name="get_chain_stats", description="", input_schema=OPEN_SCHEMA)
    dispatcher = ToolDispatcher(rpc, ToolRegistry([broken, healthy]))
    uses = [ToolUseBlock(id="t1", name="broken", input={}), ToolUseBlock(id="t2", name="get_chain_stats", input={})]

    results = await dispatcher.invoke_all(uses)

    assert results[0].is_error is True
    assert results[1].is_error is False
    assert rpc.calls == [("get_chain_stats", {})]


@pytest.mark.asyncio
async def test_invoke_all_correlates_results_and_runs_concurrently():
    rpc = FakeRpc(delays={"a": 0.3, "b": 0.3, "c": 0.3})
    dispatcher = ToolDispatcher(rpc, _registry("a", "b", "c"))
    uses = [
        ToolUseBlock(id="toolu_1", name="a", input={"n": 1}),
        ToolUseBlock(id="toolu_2", name="b", input={"n": 2}),
        ToolUseBlock(id="toolu_3", name="c", input={"n": 3}),
    ]

    started = time.monotonic()
    results = await dispatcher.invoke_all(uses)
    elapsed = time.monotonic() - started

    assert [r.tool_use_id for r in results] == ["toolu_1", "toolu_2", "toolu_3"]
    assert [json.loads(r.content)["tool"] for r in results] == ["a", "b", "c"]
    assert elapsed < 0.8


@pytest.mark.asyncio
async def test_invoke_all_keeps_batch_going_when_one_call_times_out():
    rpc = FakeRpc(delays={"slow": 5.0})
    dispatcher = ToolDispatcher(rpc, _registry("slow", "fast"), timeout_seconds=0.05)
    uses = [ToolUseBlock(id="t1", name="slow", input={}), ToolUseBlock(id="t2", name="fast", input={})]

    results = await dispatcher.invoke_all(uses)

    assert results[0].is_error is True
    assert json.loads(results[0].content) == {"error": TIMED_OUT}
    assert results[1].is_error is False


@pytest.mark.asyncio
async def test_executions_are_recorded_when_database_configured(tmp_path):
    db = Database(tmp_path / "agent.db")
    db.initialize()
    rpc = FakeRpc(errors={"bad": TransportError("down")})
    dispatcher = ToolDispatcher(rpc, _registry("good", "bad"), db=db)

    await dispatcher.invoke("good", {"x": 1})
    await dispatcher.invoke("bad", {})

    executions = db.list_tool_executions()
    assert [(e["tool_name"], e["succeeded"]) for e in executions] == [("bad", False), ("good", True)]
    assert executions[0]["output"] == {"error": "down"}
    assert executions[1]["input"] == {"x": 1}
