"""Application configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    anthropic_api_key: str = Field(..., alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-5-20250929", alias="ANTHROPIC_MODEL")
    anthropic_base_url: str = Field(default="https://api.anthropic.com", alias="ANTHROPIC_BASE_URL")
    anthropic_version: str = Field(default="2023-06-01", alias="ANTHROPIC_VERSION")
    max_output_tokens: int = Field(default=2048, alias="MAX_OUTPUT_TOKENS")
    # Retries apply to HTTP 429 only; transport failures are never retried.
    llm_max_retries: int = Field(default=0, alias="LLM_MAX_RETRIES")
    mcp_rpc_url: str = Field(default="https://mcp.ama.one/rpc", alias="MCP_RPC_URL")
    ama_wallet_address: str = Field(default="", alias="AMA_WALLET_ADDRESS")
    ama_secret_key: str = Field(default="", alias="AMA_SECRET_KEY")
    amadeus_network: Literal["testnet", "mainnet"] = Field(default="testnet", alias="AMADEUS_NETWORK")
    tool_timeout_seconds: float = Field(default=60.0, alias="TOOL_TIMEOUT_SECONDS")
    request_timeout_seconds: float = Field(default=120.0, alias="REQUEST_TIMEOUT_SECONDS")
    database_path: Path | None = Field(default=None, alias="DATABASE_PATH")


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()
