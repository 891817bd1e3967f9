"""Anthropic Messages API implementation of LLMProvider."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from ama_agent.config import Settings
from ama_agent.errors import ModelTransportError, ProtocolError
from ama_agent.llm.base import LLMProvider
from ama_agent.models import LLMResponse, Message, block_from_api

_LOGGER = logging.getLogger(__name__)

_RETRY_BACKOFF_SECONDS = [5, 15, 45]


class AnthropicProvider(LLMProvider):
    """LLM provider using the Anthropic ``/v1/messages`` endpoint."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def generate(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        payload: dict[str, Any] = {
            "model": self._settings.anthropic_model,
            "max_tokens": max_tokens or self._settings.max_output_tokens,
            "messages": [message.to_api() for message in messages],
        }
        if tools:
            payload["tools"] = tools
        if system:
            payload["system"] = system

        max_retries = self._settings.llm_max_retries
        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        try:
            async with httpx.AsyncClient(base_url=self._settings.anthropic_base_url, timeout=timeout) as client:
                for attempt in range(max_retries + 1):
                    response = await client.post(
                        "/v1/messages",
                        headers={
                            "x-api-key": self._settings.anthropic_api_key,
                            "anthropic-version": self._settings.anthropic_version,
                            "Content-Type": "application/json",
                        },
                        json=payload,
                    )
                    if response.status_code == 429 and attempt < max_retries:
                        wait = _RETRY_BACKOFF_SECONDS[min(attempt, len(_RETRY_BACKOFF_SECONDS) - 1)]
                        _LOGGER.warning(
                            "Anthropic rate limited (429), retrying in %ds (attempt %d/%d)",
                            wait,
                            attempt + 1,
                            max_retries,
                        )
                        await asyncio.sleep(wait)
                        continue
                    response.raise_for_status()
                    break
        except httpx.HTTPError as exc:
            raise ModelTransportError(f"Model request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError("Model response is not JSON") from exc
        return _parse_response(data)


def _parse_response(data: Any) -> LLMResponse:
    if not isinstance(data, dict) or not isinstance(data.get("content"), list):
        raise ProtocolError("Model response has no content list")
    try:
        content = [block_from_api(block) for block in data["content"]]
    except (KeyError, TypeError, AttributeError) as exc:
        raise ProtocolError(f"Malformed content block in model response: {exc}") from exc

    stop_reason = data.get("stop_reason") or "end_turn"
    response = LLMResponse(stop_reason=stop_reason, content=content, raw=data)
    _LOGGER.info(
        "LLM response: stop_reason=%r text=%r tool_uses=%r",
        stop_reason,
        response.text[:200],
        [tu.name for tu in response.tool_uses],
    )
    return response
