"""Exception hierarchy for ama-agent.

    AgentError
    ├── TransportError
    │   └── ModelTransportError
    ├── RpcTimeoutError
    ├── ProtocolError
    │   └── RpcError(code, data)
    ├── SchemaError
    ├── DecodeError
    ├── ToolArgumentError
    ├── TransactionNotFound
    └── ConversationCancelled(history)
"""

from __future__ import annotations

from typing import Any


class AgentError(Exception):
    """Base exception for all ama-agent errors."""


class TransportError(AgentError):
    """Endpoint unreachable or answered with a non-2xx status."""


class ModelTransportError(TransportError):
    """The model service could not be reached. Fatal to the current flow."""


class RpcTimeoutError(AgentError):
    """Bounded wait exceeded while talking to the RPC endpoint."""


class ProtocolError(AgentError):
    """Malformed envelope: not JSON, or neither result nor error present."""


class RpcError(ProtocolError):
    """Well-formed JSON-RPC error envelope returned by the endpoint."""

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        self.code = code
        self.data = data
        super().__init__(message)


class SchemaError(AgentError):
    """Tool descriptor missing required fields."""


class DecodeError(AgentError):
    """Malformed hex or Base58 input."""


class ToolArgumentError(AgentError):
    """Tool arguments rejected before dispatch."""


class TransactionNotFound(AgentError):
    """No unsigned transaction could be extracted after the build phase."""


class ConversationCancelled(AgentError):
    """The caller cancelled the conversation. Carries the history so far."""

    def __init__(self, history: list[Any]) -> None:
        self.history = history
        super().__init__("Conversation cancelled by caller")
