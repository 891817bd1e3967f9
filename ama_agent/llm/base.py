"""LLM provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from ama_agent.models import LLMResponse, Message


class LLMProvider(ABC):
    """Abstract model provider used by the conversation orchestrator."""

    @abstractmethod
    async def generate(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a model response.

        Raises:
            ModelTransportError: the model service could not be reached.
            ProtocolError: the service answered with a malformed response.
        """
