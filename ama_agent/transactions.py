"""Two-phase transfer protocol: build and sign, then submit.

The coordinator never signs. ``build`` returns a PendingTransfer the caller
holds while a wallet signs ``unsigned.signing_payload``; ``submit`` resumes
the conversation with the signature. Tool-call shapes are validated by guards
independently of the policy prompt given to the model.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from ama_agent.agent_runtime import ConversationOrchestrator
from ama_agent.errors import ToolArgumentError, TransactionNotFound
from ama_agent.models import (
    Message,
    PendingTransfer,
    ToolResultBlock,
    ToolUseBlock,
    TransferResult,
    UnsignedTransaction,
)
from ama_agent.prompts import CREATE_TRANSACTION_TOOL, SUBMIT_MESSAGE, SUBMIT_TRANSACTION_TOOL, TRANSFER_POLICY
from ama_agent.tools.dispatcher import Guard

LOGGER = logging.getLogger(__name__)

NETWORKS = ("testnet", "mainnet")
AMA_DECIMALS = 9

_CREATE_KEYS = {"signer", "contract", "function", "args"}
_SUBMIT_KEYS = {"transaction", "signature", "network"}
_BASE_UNITS = re.compile(r"[0-9]+")
_MAINNET = re.compile(r"\bmain[\s-]?net\b", re.IGNORECASE)

SignPayload = Callable[[str], Union[str, Awaitable[str]]]


def to_base_units(amount: str | int | Decimal, decimals: int = AMA_DECIMALS) -> str:
    """Convert a token amount such as ``"10"`` or ``"0.5"`` to a base-unit string."""

    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Amount must be positive: {amount!r}")
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount!r} has more than {decimals} decimal places")
    return str(int(scaled))


def detect_network(request: str, default: str = "testnet") -> str:
    return "mainnet" if _MAINNET.search(request) else default


def validate_create_transaction_args(arguments: dict[str, Any], signer: str | None = None) -> None:
    """Raise ToolArgumentError unless ``arguments`` is an exact Coin.transfer call."""

    if set(arguments) != _CREATE_KEYS:
        raise ToolArgumentError(
            f"create_transaction takes exactly {sorted(_CREATE_KEYS)}, got {sorted(arguments)}"
        )
    if not isinstance(arguments["signer"], str) or not arguments["signer"]:
        raise ToolArgumentError("signer must be a non-empty address")
    if signer is not None and arguments["signer"] != signer:
        raise ToolArgumentError(f"signer must be the wallet address {signer}")
    if arguments["contract"] != "Coin":
        raise ToolArgumentError('contract must be "Coin"')
    if arguments["function"] != "transfer":
        raise ToolArgumentError('function must be "transfer"')

    args = arguments["args"]
    if not isinstance(args, list) or len(args) != 3:
        raise ToolArgumentError("args must be [{b58: recipient}, amount, symbol]")
    recipient, amount, symbol = args
    if (
        not isinstance(recipient, dict)
        or set(recipient) != {"b58"}
        or not isinstance(recipient["b58"], str)
        or not recipient["b58"]
    ):
        raise ToolArgumentError('args[0] must be {"b58": "<recipient address>"}')
    if not isinstance(amount, str) or not _BASE_UNITS.fullmatch(amount) or int(amount) == 0:
        raise ToolArgumentError("args[1] must be a positive decimal string of base units")
    if not isinstance(symbol, str) or not symbol:
        raise ToolArgumentError("args[2] must be a token symbol")


def validate_submit_args(arguments: dict[str, Any], blob: str, signature: str, network: str) -> None:
    """Raise ToolArgumentError unless the call submits exactly the signed blob."""

    if not blob or not signature:
        raise ToolArgumentError("submit_transaction requires both a blob and a signature")
    if set(arguments) != _SUBMIT_KEYS:
        raise ToolArgumentError(
            f"submit_transaction takes exactly {sorted(_SUBMIT_KEYS)}, got {sorted(arguments)}"
        )
    if arguments["transaction"] != blob:
        raise ToolArgumentError("transaction does not match the signed blob")
    if not arguments["signature"] or arguments["signature"] != signature:
        raise ToolArgumentError("signature does not match the wallet signature")
    if arguments["network"] not in NETWORKS:
        raise ToolArgumentError(f"network must be one of {NETWORKS}")
    if arguments["network"] != network:
        raise ToolArgumentError(f"network must be {network}")


def find_unsigned_transaction(payload: Any) -> UnsignedTransaction | None:
    """Depth-first search for an object carrying ``signing_payload`` and ``blob``.

    MCP results usually wrap tool output as JSON text inside content items,
    so JSON-looking strings are decoded and searched too.
    """

    if isinstance(payload, dict):
        signing_payload = payload.get("signing_payload")
        blob = payload.get("blob")
        if isinstance(signing_payload, str) and isinstance(blob, str) and signing_payload and blob:
            return UnsignedTransaction(signing_payload=signing_payload, blob=blob)
        children = list(payload.values())
    elif isinstance(payload, list):
        children = payload
    elif isinstance(payload, str) and payload.lstrip()[:1] in ("{", "["):
        try:
            return find_unsigned_transaction(json.loads(payload))
        except ValueError:
            return None
    else:
        return None

    for child in children:
        found = find_unsigned_transaction(child)
        if found is not None:
            return found
    return None


def extract_unsigned_transaction(messages: Sequence[Message]) -> UnsignedTransaction:
    """First unsigned transaction among successful create_transaction results."""

    for block in _tool_results(messages, CREATE_TRANSACTION_TOOL):
        found = find_unsigned_transaction(_decode_content(block.content))
        if found is not None:
            return found
    raise TransactionNotFound("No create_transaction result carried a signing_payload and blob")


class TransferCoordinator:
    """Runs the build and submit phases of a token transfer."""

    def __init__(self, orchestrator: ConversationOrchestrator, default_network: str = "testnet") -> None:
        if default_network not in NETWORKS:
            raise ValueError(f"Unknown network: {default_network}")
        self._orchestrator = orchestrator
        self._default_network = default_network

    async def build(
        self,
        request: str,
        signer: str,
        *,
        network: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> PendingTransfer:
        """Phase 1: have the model create the unsigned transaction.

        Raises:
            TransactionNotFound: no signing_payload/blob pair was produced.
        """

        if not signer:
            raise ValueError("A signer address is required")
        network = network or detect_network(request, self._default_network)
        if network not in NETWORKS:
            raise ValueError(f"Unknown network: {network}")

        history = [Message(role="user", content=request)]
        guards: dict[str, Guard] = {
            CREATE_TRANSACTION_TOOL: lambda args: validate_create_transaction_args(args, signer),
            SUBMIT_TRANSACTION_TOOL: _reject("submit_transaction is not allowed before the wallet has signed"),
        }
        result = await self._orchestrator.run(
            history,
            system=TRANSFER_POLICY.format(signer=signer),
            guards=guards,
            cancel=cancel,
        )
        unsigned = extract_unsigned_transaction(result.history[len(history):])
        LOGGER.info("Unsigned transaction ready: signing_payload=%s", unsigned.signing_payload[:64])
        return PendingTransfer(
            history=result.history,
            unsigned=unsigned,
            signer=signer,
            network=network,
            reply=result.reply,
        )

    async def submit(
        self,
        pending: PendingTransfer,
        signature: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> TransferResult:
        """Phase 2: hand the blob and signature back to the model for broadcast."""

        if not signature or not signature.strip():
            raise ValueError("A signature is required before submission")
        if not pending.unsigned.blob:
            raise ValueError("Pending transfer has no transaction blob")
        signature = signature.strip()
        blob = pending.unsigned.blob
        network = pending.network

        start = len(pending.history)
        history = [
            *pending.history,
            Message(role="user", content=SUBMIT_MESSAGE.format(blob=blob, signature=signature, network=network)),
        ]
        guards: dict[str, Guard] = {
            SUBMIT_TRANSACTION_TOOL: lambda args: validate_submit_args(args, blob, signature, network),
            CREATE_TRANSACTION_TOOL: _reject("create_transaction is not allowed while submitting"),
        }
        result = await self._orchestrator.run(
            history,
            system=TRANSFER_POLICY.format(signer=pending.signer),
            guards=guards,
            cancel=cancel,
        )

        submission = None
        for block in _tool_results(result.history[start:], SUBMIT_TRANSACTION_TOOL):
            submission = _decode_content(block.content)
        if submission is None:
            LOGGER.warning("Submit phase finished without a successful submit_transaction call")
        return TransferResult(reply=result.reply, history=result.history, submission=submission)

    async def transfer(
        self,
        request: str,
        signer: str,
        sign_payload: SignPayload,
        *,
        network: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> TransferResult:
        """Build, obtain a signature from ``sign_payload``, then submit."""

        pending = await self.build(request, signer, network=network, cancel=cancel)
        signature = sign_payload(pending.unsigned.signing_payload)
        if inspect.isawaitable(signature):
            signature = await signature
        return await self.submit(pending, signature, cancel=cancel)


def _reject(reason: str) -> Guard:
    def guard(arguments: dict[str, Any]) -> None:
        raise ToolArgumentError(reason)

    return guard


def _tool_results(messages: Sequence[Message], tool_name: str) -> list[ToolResultBlock]:
    """Successful results of ``tool_name`` calls, in history order."""

    names = {
        block.id: block.name
        for message in messages
        for block in message.blocks
        if isinstance(block, ToolUseBlock)
    }
    return [
        block
        for message in messages
        if message.role == "user"
        for block in message.blocks
        if isinstance(block, ToolResultBlock)
        and not block.is_error
        and names.get(block.tool_use_id) == tool_name
    ]


def _decode_content(content: str) -> Any:
    try:
        return json.loads(content)
    except ValueError:
        return content
