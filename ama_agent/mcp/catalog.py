"""Tool catalog adapter.

The MCP endpoint describes each tool's input with ``inputSchema``; the model
interface expects ``input_schema``. Everything else is kept verbatim.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from ama_agent.errors import ProtocolError, SchemaError
from ama_agent.models import ToolDescriptor

if TYPE_CHECKING:
    from ama_agent.mcp.client import JsonRpcClient

LOGGER = logging.getLogger(__name__)

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


def normalize_tool(raw: Mapping[str, Any]) -> ToolDescriptor:
    """Convert one protocol descriptor into a ToolDescriptor."""

    if not isinstance(raw, Mapping):
        raise SchemaError(f"Tool descriptor must be an object, got {type(raw).__name__}")
    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise SchemaError(f"Tool descriptor is missing a name: {dict(raw)!r}")

    schema = raw.get("inputSchema")
    if schema is None:
        schema = raw.get("input_schema")
    if schema is None:
        schema = dict(_EMPTY_SCHEMA)
    if not isinstance(schema, Mapping):
        raise SchemaError(f"Tool {name!r} has a non-object input schema")
    if not isinstance(schema.get("properties") or {}, Mapping):
        raise SchemaError(f"Tool {name!r} input schema properties must be an object")
    required = schema.get("required") or []
    if not isinstance(required, list) or not all(isinstance(item, str) for item in required):
        raise SchemaError(f"Tool {name!r} input schema required must be a list of names")

    return ToolDescriptor(name=name, description=raw.get("description") or "", input_schema=dict(schema))


def normalize_tools(raws: Iterable[Mapping[str, Any]]) -> list[ToolDescriptor]:
    tools = [normalize_tool(raw) for raw in raws]
    seen: set[str] = set()
    for tool in tools:
        if tool.name in seen:
            raise SchemaError(f"Duplicate tool name in catalog: {tool.name}")
        seen.add(tool.name)
    return tools


async def load_catalog(client: JsonRpcClient) -> list[ToolDescriptor]:
    """Fetch ``tools/list`` from the endpoint and normalize the result."""

    LOGGER.info("Fetching tools from MCP server %s", client.url)
    result = await client.list_tools()
    raws = result.get("tools") if isinstance(result, dict) else None
    if not isinstance(raws, list):
        raise ProtocolError("tools/list result has no tools list")
    tools = normalize_tools(raws)
    LOGGER.info("Loaded %d tools from MCP", len(tools))
    return tools
