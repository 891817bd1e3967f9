from unittest.mock import AsyncMock, MagicMock

import pytest

from ama_agent.errors import ProtocolError, SchemaError
from ama_agent.mcp.catalog import load_catalog, normalize_tool, normalize_tools

BALANCE_TOOL = {
    "name": "get_account_balance",
    "description": "Queries the balance of an account across all supported assets",
    "inputSchema": {
        "type": "object",
        "properties": {"address": {"type": "string"}},
        "required": ["address"],
    },
}


def test_normalize_renames_only_the_schema_field():
    tool = normalize_tool(BALANCE_TOOL)

    assert tool.name == BALANCE_TOOL["name"]
    assert tool.description == BALANCE_TOOL["description"]
    assert tool.input_schema == BALANCE_TOOL["inputSchema"]
    assert tool.to_model_schema() == {
        "name": BALANCE_TOOL["name"],
        "description": BALANCE_TOOL["description"],
        "input_schema": BALANCE_TOOL["inputSchema"],
    }


def test_round_trip_preserves_descriptor():
    assert normalize_tool(BALANCE_TOOL).to_rpc() == BALANCE_TOOL


def test_missing_name_raises_schema_error():
    with pytest.raises(SchemaError):
        normalize_tool({"description": "nameless", "inputSchema": {}})


def test_non_mapping_descriptor_raises_schema_error():
    with pytest.raises(SchemaError):
        normalize_tool(["get_chain_stats"])  # type: ignore[arg-type]


def test_missing_schema_defaults_to_empty_object():
    tool = normalize_tool({"name": "get_chain_stats", "description": "stats"})
    assert tool.input_schema == {"type": "object", "properties": {}}


@pytest.mark.parametrize(
    "schema",
    [
        {"type": "object", "properties": ["address"]},
        {"type": "object", "properties": {}, "required": "address"},
        {"type": "object", "properties": {}, "required": [{"name": "address"}]},
    ],
)
def test_malformed_schema_shape_raises_schema_error(schema):
    with pytest.raises(SchemaError):
        normalize_tool({"name": "get_account_balance", "inputSchema": schema})


def test_duplicate_names_are_rejected():
    with pytest.raises(SchemaError):
        normalize_tools([BALANCE_TOOL, BALANCE_TOOL])


@pytest.mark.asyncio
async def test_load_catalog_normalizes_tools_list():
    client = MagicMock()
    client.url = "https://mcp.example/rpc"
    client.list_tools = AsyncMock(
        return_value={"tools": [BALANCE_TOOL, {"name": "get_chain_stats", "description": "", "inputSchema": {}}]}
    )

    tools = await load_catalog(client)

    assert [t.name for t in tools] == ["get_account_balance", "get_chain_stats"]


@pytest.mark.asyncio
async def test_load_catalog_without_tools_raises_protocol_error():
    client = MagicMock()
    client.url = "https://mcp.example/rpc"
    client.list_tools = AsyncMock(return_value={"items": []})

    with pytest.raises(ProtocolError):
        await load_catalog(client)
