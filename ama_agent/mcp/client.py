"""JSON-RPC 2.0 client for the MCP tool endpoint."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from ama_agent.errors import ProtocolError, RpcError, RpcTimeoutError, TransportError

LOGGER = logging.getLogger(__name__)


class JsonRpcClient:
    """Posts JSON-RPC requests to a single HTTP endpoint."""

    def __init__(self, url: str, timeout_seconds: float = 30.0) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._ids = itertools.count(1)

    @property
    def url(self) -> str:
        return self._url

    def next_id(self) -> int:
        return next(self._ids)

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send one request and return its ``result`` member."""

        request_id = self.next_id()
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}

        timeout = httpx.Timeout(self._timeout_seconds)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(
                    self._url,
                    headers={"Content-Type": "application/json", "Accept": "application/json"},
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            raise RpcTimeoutError(f"RPC request {method} timed out ({self._url})") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"RPC request {method} failed ({self._url}): {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise TransportError(f"RPC request {method} failed with HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError(f"RPC response to {method} is not JSON") from exc

        return _unwrap(data, method, request_id)

    async def list_tools(self) -> Any:
        return await self.request("tools/list", {})

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        return await self.request("tools/call", {"name": name, "arguments": arguments})


def _unwrap(data: Any, method: str, request_id: int) -> Any:
    if not isinstance(data, dict):
        raise ProtocolError(f"RPC response to {method} is not an object")
    if data.get("id") not in (None, request_id):
        LOGGER.warning("RPC response id %r does not match request id %d", data.get("id"), request_id)
    if "error" in data and data["error"] is not None:
        error = data["error"]
        if not isinstance(error, dict):
            raise RpcError(str(error))
        raise RpcError(
            str(error.get("message") or "RPC error"),
            code=error.get("code"),
            data=error.get("data"),
        )
    if "result" not in data:
        raise ProtocolError(f"RPC response to {method} has neither result nor error")
    return data["result"]
