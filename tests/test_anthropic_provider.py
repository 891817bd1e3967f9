"""Tests for AnthropicProvider."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ama_agent.config import Settings
from ama_agent.errors import ModelTransportError, ProtocolError
from ama_agent.llm.anthropic import AnthropicProvider
from ama_agent.models import Message, TextBlock, ToolUseBlock


def _settings(**overrides: object) -> Settings:
    return Settings(ANTHROPIC_API_KEY="test-key", ANTHROPIC_MODEL="claude-test", **overrides)


def _mock_response(data: dict, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    resp.raise_for_status = MagicMock()
    return resp


def _mock_client(**post_kwargs: object) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.post = AsyncMock(**post_kwargs)
    return mock_client


TOOL_USE_RESPONSE = {
    "id": "msg_1",
    "stop_reason": "tool_use",
    "content": [
        {"type": "text", "text": "Let me check."},
        {"type": "tool_use", "id": "toolu_1", "name": "get_chain_stats", "input": {}},
    ],
}


@pytest.mark.asyncio
async def test_generate_parses_content_blocks():
    mock_client = _mock_client(return_value=_mock_response(TOOL_USE_RESPONSE))

    with patch("ama_agent.llm.anthropic.httpx.AsyncClient", return_value=mock_client):
        response = await AnthropicProvider(_settings()).generate([Message(role="user", content="stats?")])

    assert response.stop_reason == "tool_use"
    assert response.content == [
        TextBlock("Let me check."),
        ToolUseBlock(id="toolu_1", name="get_chain_stats", input={}),
    ]
    assert response.text == "Let me check."


@pytest.mark.asyncio
async def test_generate_sends_tools_system_and_headers():
    mock_client = _mock_client(return_value=_mock_response({"stop_reason": "end_turn", "content": []}))
    tools = [{"name": "get_chain_stats", "description": "", "input_schema": {"type": "object"}}]

    with patch("ama_agent.llm.anthropic.httpx.AsyncClient", return_value=mock_client):
        await AnthropicProvider(_settings()).generate(
            [Message(role="user", content="hi")], tools=tools, system="policy", max_tokens=512
        )

    call = mock_client.post.call_args
    assert call.args[0] == "/v1/messages"
    assert call.kwargs["headers"]["x-api-key"] == "test-key"
    assert call.kwargs["json"] == {
        "model": "claude-test",
        "max_tokens": 512,
        "messages": [{"role": "user", "content": "hi"}],
        "tools": tools,
        "system": "policy",
    }


@pytest.mark.asyncio
async def test_connection_error_maps_to_model_transport_error():
    mock_client = _mock_client(side_effect=httpx.ConnectError("unreachable"))

    with patch("ama_agent.llm.anthropic.httpx.AsyncClient", return_value=mock_client):
        with pytest.raises(ModelTransportError):
            await AnthropicProvider(_settings()).generate([Message(role="user", content="hi")])


@pytest.mark.asyncio
async def test_http_status_error_maps_to_model_transport_error():
    resp = _mock_response({}, status_code=500)
    resp.raise_for_status.side_effect = httpx.HTTPStatusError("500", request=MagicMock(), response=MagicMock())
    mock_client = _mock_client(return_value=resp)

    with patch("ama_agent.llm.anthropic.httpx.AsyncClient", return_value=mock_client):
        with pytest.raises(ModelTransportError):
            await AnthropicProvider(_settings()).generate([Message(role="user", content="hi")])
    assert mock_client.post.call_count == 1


@pytest.mark.asyncio
async def test_rate_limit_is_retried_up_to_configured_limit():
    limited = _mock_response({}, status_code=429)
    ok = _mock_response({"stop_reason": "end_turn", "content": [{"type": "text", "text": "done"}]})
    mock_client = _mock_client(side_effect=[limited, ok])

    with (
        patch("ama_agent.llm.anthropic.httpx.AsyncClient", return_value=mock_client),
        patch("ama_agent.llm.anthropic.asyncio.sleep", new=AsyncMock()) as sleep,
    ):
        response = await AnthropicProvider(_settings(LLM_MAX_RETRIES=1)).generate(
            [Message(role="user", content="hi")]
        )

    assert response.text == "done"
    assert mock_client.post.call_count == 2
    sleep.assert_awaited_once()


@pytest.mark.asyncio
async def test_malformed_response_raises_protocol_error():
    mock_client = _mock_client(return_value=_mock_response({"stop_reason": "end_turn"}))

    with patch("ama_agent.llm.anthropic.httpx.AsyncClient", return_value=mock_client):
        with pytest.raises(ProtocolError):
            await AnthropicProvider(_settings()).generate([Message(role="user", content="hi")])
