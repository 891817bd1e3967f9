"""Registry of discovered remote tools and their argument validation."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional

from pydantic import ConfigDict, Field, ValidationError, create_model

from ama_agent.errors import SchemaError, ToolArgumentError
from ama_agent.models import ToolDescriptor


class ToolRegistry:
    """Read-only view of one session's tool catalog."""

    def __init__(self, tools: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDescriptor) -> None:
        if tool.name in self._tools:
            raise SchemaError(f"Duplicate tool name in catalog: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def list_tool_specs(self) -> list[dict[str, Any]]:
        return [tool.to_model_schema() for tool in self._tools.values()]

    def validate(self, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Check ``arguments`` against the tool's declared input schema."""

        tool = self._tools.get(tool_name)
        if tool is None:
            raise ToolArgumentError(f"Unknown tool: {tool_name}")
        if not isinstance(arguments, dict):
            raise ToolArgumentError(f"Arguments for {tool_name} must be an object")
        return _validate_json_schema(tool.input_schema, arguments)


def _validate_json_schema(schema: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    props = schema.get("properties") or {}
    required = schema.get("required") or []
    if not isinstance(props, dict):
        raise ToolArgumentError("Tool input schema has malformed properties")
    if not isinstance(required, list) or not all(isinstance(name, str) for name in required):
        raise ToolArgumentError("Tool input schema has a malformed required list")
    required = set(required)
    fields: dict[str, tuple[Any, Any]] = {}
    # Fields are aliased so property names never clash with BaseModel attributes.
    for index, (name, config) in enumerate(props.items()):
        typ = _python_type(config.get("type") if isinstance(config, dict) else None)
        if name in required:
            fields[f"field_{index}"] = (typ, Field(..., alias=name))
        else:
            fields[f"field_{index}"] = (Optional[typ], Field(None, alias=name))

    model = create_model("ToolInputModel", __config__=ConfigDict(extra="allow"), **fields)
    try:
        value = model(**payload)
    except ValidationError as exc:
        raise ToolArgumentError(f"Invalid input for tool: {exc}") from exc
    return value.model_dump(by_alias=True, exclude_none=True)


def _python_type(schema_type: Any) -> Any:
    mapping: dict[str, Any] = {
        "string": str,
        "integer": int,
        "number": float,
        "boolean": bool,
        "object": dict,
        "array": list,
    }
    if not isinstance(schema_type, str):
        return Any
    return mapping.get(schema_type, Any)
