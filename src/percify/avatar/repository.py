"""SQLite key-value storage for persisted agent state."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from .models import AgentState

logger = logging.getLogger(__name__)


class StateRepository:
    """Durable key-value store holding one serialized AgentState per key.

    Values are opaque JSON documents. Loading never validates them; that is
    left to AgentState.restore.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the repository with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the agent_state table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS agent_state (
                key         TEXT PRIMARY KEY,
                state       TEXT NOT NULL,
                updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        conn.commit()

    def load(self, key: str) -> Any | None:
        """Load the raw state stored under a key.

        Args:
            key: The profile key.

        Returns:
            The decoded JSON value, or None if missing or undecodable.
        """
        conn = self._get_connection()
        row = conn.execute(
            "SELECT state FROM agent_state WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None

        try:
            return json.loads(row["state"])
        except json.JSONDecodeError as e:
            logger.warning(f"Stored state for '{key}' is not valid JSON: {e}")
            return None

    def save(self, key: str, state: AgentState) -> None:
        """Replace the state stored under a key.

        Args:
            key: The profile key.
            state: The full state to persist.
        """
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO agent_state (key, state)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                state = excluded.state,
                updated_at = datetime('now')
            """,
            (key, json.dumps(state.to_dict(), ensure_ascii=False)),
        )
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
