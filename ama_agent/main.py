"""Application entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from ama_agent.agent_runtime import ConversationOrchestrator
from ama_agent.config import Settings, load_settings
from ama_agent.db import Database
from ama_agent.errors import AgentError
from ama_agent.llm.anthropic import AnthropicProvider
from ama_agent.mcp.catalog import load_catalog
from ama_agent.mcp.client import JsonRpcClient
from ama_agent.models import Message, PendingTransfer
from ama_agent.signing import derive_public_key, sign
from ama_agent.tools.dispatcher import ToolDispatcher
from ama_agent.tools.registry import ToolRegistry
from ama_agent.transactions import TransferCoordinator, to_base_units

logging.basicConfig(level=logging.INFO)
LOGGER = logging.getLogger(__name__)


def _open_database(settings: Settings) -> Database | None:
    if settings.database_path is None:
        return None
    db = Database(settings.database_path)
    db.initialize()
    return db


async def _build_orchestrator(settings: Settings) -> ConversationOrchestrator:
    rpc = JsonRpcClient(settings.mcp_rpc_url, timeout_seconds=settings.tool_timeout_seconds)
    db = _open_database(settings)
    tools = await load_catalog(rpc)
    if db is not None:
        db.save_tool_catalog(settings.mcp_rpc_url, tools)
    registry = ToolRegistry(tools)
    return ConversationOrchestrator(
        llm=AnthropicProvider(settings),
        tool_registry=registry,
        dispatcher=ToolDispatcher(rpc, registry, timeout_seconds=settings.tool_timeout_seconds, db=db),
        request_timeout_seconds=settings.request_timeout_seconds,
        max_output_tokens=settings.max_output_tokens,
    )


async def list_tools(settings: Settings) -> None:
    rpc = JsonRpcClient(settings.mcp_rpc_url, timeout_seconds=settings.tool_timeout_seconds)
    tools = await load_catalog(rpc)
    db = _open_database(settings)
    if db is not None:
        db.save_tool_catalog(settings.mcp_rpc_url, tools)
    for tool in tools:
        print(f"{tool.name}: {tool.description}")


async def ask(settings: Settings, prompt: str) -> None:
    orchestrator = await _build_orchestrator(settings)
    print(f"User: {prompt}")
    result = await orchestrator.run([Message(role="user", content=prompt)])
    print(f"Agent: {result.reply}")


async def _obtain_signature(settings: Settings, pending: PendingTransfer) -> str:
    if settings.ama_secret_key:
        LOGGER.info("Signing with local wallet key %s", derive_public_key(settings.ama_secret_key)[:12])
        return sign(pending.unsigned.signing_payload, settings.ama_secret_key)
    print(f"Signing payload: {pending.unsigned.signing_payload}")
    return (await asyncio.to_thread(input, "Signature: ")).strip()


async def transfer(settings: Settings, recipient: str, amount: str, token: str, mainnet: bool) -> None:
    signer = settings.ama_wallet_address
    if not signer:
        raise ValueError("AMA_WALLET_ADDRESS is required for transfers")
    base_units = to_base_units(amount)
    network = "mainnet" if mainnet else settings.amadeus_network
    request = (
        f"Send {amount} {token} ({base_units} base units) from {signer} to {recipient} on {network}."
    )

    coordinator = TransferCoordinator(await _build_orchestrator(settings), default_network=settings.amadeus_network)
    print(f"User: {request}")
    pending = await coordinator.build(request, signer, network=network)
    print(f"Agent: {pending.reply}")

    signature = await _obtain_signature(settings, pending)
    result = await coordinator.submit(pending, signature)
    print(f"Agent: {result.reply}")
    if result.submission is None:
        raise AgentError("The transaction was not submitted")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ama-agent", description="Amadeus blockchain agent")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("tools", help="List tools exposed by the MCP endpoint")

    ask_parser = sub.add_parser("ask", help="Run one agent conversation")
    ask_parser.add_argument("prompt")

    claim_parser = sub.add_parser("claim", help="Claim testnet AMA for an address")
    claim_parser.add_argument("address", nargs="?", default=None)

    transfer_parser = sub.add_parser("transfer", help="Build, sign and submit a token transfer")
    transfer_parser.add_argument("--to", dest="recipient", required=True)
    transfer_parser.add_argument("--amount", required=True, help="Amount in whole tokens, e.g. 10 or 0.5")
    transfer_parser.add_argument("--token", default="AMA")
    transfer_parser.add_argument("--mainnet", action="store_true")

    sign_parser = sub.add_parser("sign", help="Sign a hex payload with AMA_SECRET_KEY")
    sign_parser.add_argument("payload")
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> None:
    if args.command == "tools":
        await list_tools(settings)
    elif args.command == "ask":
        await ask(settings, args.prompt)
    elif args.command == "claim":
        address = args.address or settings.ama_wallet_address
        if not address:
            raise ValueError("An address or AMA_WALLET_ADDRESS is required")
        await ask(settings, f"claim testnet AMA for {address}")
    elif args.command == "transfer":
        await transfer(settings, args.recipient, args.amount, args.token, args.mainnet)
    elif args.command == "sign":
        if not settings.ama_secret_key:
            raise ValueError("AMA_SECRET_KEY is required for signing")
        print(sign(args.payload, settings.ama_secret_key))


def main(argv: list[str] | None = None) -> int:
    """Synchronous wrapper for asyncio entrypoint."""

    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
        asyncio.run(run(args, settings))
    except (AgentError, ValueError) as exc:
        LOGGER.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
