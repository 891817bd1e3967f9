"""Core domain models used across layers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Remote tool normalized for the model interface."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_model_schema(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "input_schema": self.input_schema}

    def to_rpc(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


@dataclass(frozen=True, slots=True)
class TextBlock:
    text: str

    def to_api(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True, slots=True)
class ToolUseBlock:
    """Tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any]

    def to_api(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True, slots=True)
class ToolResultBlock:
    """Result of one tool invocation, correlated by ``tool_use_id``."""

    tool_use_id: str
    content: str
    is_error: bool = False

    def to_api(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "tool_result", "tool_use_id": self.tool_use_id, "content": self.content}
        if self.is_error:
            data["is_error"] = True
        return data


@dataclass(frozen=True, slots=True)
class RawBlock:
    """Any other block type returned by the model, passed back verbatim."""

    data: dict[str, Any]

    def to_api(self) -> dict[str, Any]:
        return dict(self.data)


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock, RawBlock]


def block_from_api(data: dict[str, Any]) -> ContentBlock:
    """Parse one wire-format content block."""

    block_type = data.get("type")
    if block_type == "text":
        return TextBlock(text=data.get("text", ""))
    if block_type == "tool_use":
        return ToolUseBlock(id=data["id"], name=data["name"], input=data.get("input") or {})
    if block_type == "tool_result":
        content = data.get("content", "")
        if not isinstance(content, str):
            content = json.dumps(content)
        return ToolResultBlock(
            tool_use_id=data["tool_use_id"],
            content=content,
            is_error=bool(data.get("is_error", False)),
        )
    return RawBlock(data=dict(data))


@dataclass(frozen=True, slots=True)
class Message:
    """One entry of the append-only conversation history."""

    role: str
    content: str | tuple[ContentBlock, ...]

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        if isinstance(self.content, str):
            return (TextBlock(self.content),)
        return self.content

    def to_api(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [block.to_api() for block in self.content]}


@dataclass(slots=True)
class ToolCallOutcome:
    """Normalized result of a single remote tool call."""

    success: bool
    payload: Any = None
    error: str | None = None

    def to_result_block(self, tool_use_id: str) -> ToolResultBlock:
        if self.success:
            return ToolResultBlock(tool_use_id=tool_use_id, content=json.dumps(self.payload))
        return ToolResultBlock(
            tool_use_id=tool_use_id,
            content=json.dumps({"error": self.error}),
            is_error=True,
        )


@dataclass(slots=True)
class LLMResponse:
    """Result from a model generation request."""

    stop_reason: str
    content: list[ContentBlock] = field(default_factory=list)
    raw: dict[str, Any] | None = None

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    @property
    def text(self) -> str:
        """Text of the last text block, or an empty string when there is none."""

        texts = [block.text for block in self.content if isinstance(block, TextBlock)]
        return texts[-1] if texts else ""


@dataclass(frozen=True, slots=True)
class UnsignedTransaction:
    """Build-phase artifacts awaiting an external signature."""

    signing_payload: str
    blob: str


@dataclass(slots=True)
class PendingTransfer:
    """Caller-held state between the build and submit phases."""

    history: list[Message]
    unsigned: UnsignedTransaction
    signer: str
    network: str
    reply: str = ""


@dataclass(slots=True)
class TransferResult:
    """Outcome of the submit phase."""

    reply: str
    history: list[Message]
    submission: Any = None
