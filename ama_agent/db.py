"""SQLite persistence for tool catalog snapshots and tool execution logs."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from ama_agent.models import ToolDescriptor

SCHEMA_VERSION = 1


class Database:
    """Small SQLite wrapper with explicit schema management."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create or migrate schema."""

        with self._connect() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                self._create_schema(conn)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row["version"] != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {row['version']} (expected {SCHEMA_VERSION})"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS tool_catalogs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source TEXT NOT NULL,
                tools_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tool_executions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tool_name TEXT NOT NULL,
                input_json TEXT NOT NULL,
                output_json TEXT NOT NULL,
                succeeded INTEGER NOT NULL,
                created_at TEXT NOT NULL
            );
            """
        )

    def save_tool_catalog(self, source: str, tools: list[ToolDescriptor]) -> int:
        """Store a snapshot of a discovered catalog. Returns the snapshot id."""

        tools_json = json.dumps([tool.to_rpc() for tool in tools])
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO tool_catalogs(source, tools_json, created_at) VALUES (?, ?, ?)",
                (source, tools_json, _utc_now_iso()),
            )
            return int(cur.lastrowid)

    def get_tool_catalog(self, source: str) -> list[dict[str, Any]] | None:
        """Latest catalog snapshot for ``source`` in protocol shape."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT tools_json FROM tool_catalogs WHERE source = ? ORDER BY id DESC LIMIT 1",
                (source,),
            ).fetchone()
        return json.loads(row["tools_json"]) if row else None

    def log_tool_execution(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        tool_output: Any,
        succeeded: bool,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tool_executions(tool_name, input_json, output_json, succeeded, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    tool_name,
                    json.dumps(tool_input),
                    json.dumps(tool_output),
                    int(succeeded),
                    _utc_now_iso(),
                ),
            )

    def list_tool_executions(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT tool_name, input_json, output_json, succeeded, created_at
                FROM tool_executions
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            {
                "tool_name": row["tool_name"],
                "input": json.loads(row["input_json"]),
                "output": json.loads(row["output_json"]),
                "succeeded": bool(row["succeeded"]),
                "created_at": row["created_at"],
            }
            for row in rows
        ]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
