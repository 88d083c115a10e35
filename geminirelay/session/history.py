"""SQLite-backed conversation history and per-user language preference."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from loguru import logger

HISTORY_WINDOW = 20
DEFAULT_LANGUAGE = "en"

Role = Literal["user", "model"]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    jid TEXT PRIMARY KEY,
    lang TEXT NOT NULL DEFAULT 'en'
);
CREATE TABLE IF NOT EXISTS conversation_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    jid TEXT NOT NULL,
    role TEXT NOT NULL,
    message TEXT NOT NULL,
    user_name TEXT,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_history_jid ON conversation_history (jid, timestamp, id);
"""


@dataclass(frozen=True)
class Turn:
    """One stored message of a conversation."""

    role: Role
    text: str
    author_name: str | None = None
    created_at: str | None = None


class HistoryStore:
    """
    Append-only conversation log keyed by conversation key.

    Writes and reads never raise into the caller: failures are logged and
    degrade to a dropped write or an empty history. Only schema creation is
    fatal. Calls block on SQLite; async code runs them with ``asyncio.to_thread``.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        logger.info(f"Database connection opened: {self.db_path}")

    def init_schema(self) -> None:
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        logger.info("Database schema initialized")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def append(self, key: str, role: Role, text: str, author_name: str | None = None) -> None:
        """Record one turn. Blank text is never stored."""
        if role not in ("user", "model"):
            logger.warning(f"Refusing to store turn with unknown role '{role}' for {key}")
            return
        if not text or not text.strip():
            logger.warning(f"Skipping empty {role} turn for {key}")
            return
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO conversation_history (jid, role, message, user_name) VALUES (?, ?, ?, ?)",
                    (key, role, text, author_name or None),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to add message to history for {key}: {e}")

    def recent(self, key: str, limit: int = HISTORY_WINDOW) -> list[Turn]:
        """Return the last ``limit`` turns for ``key``, oldest first."""
        if limit <= 0:
            return []
        try:
            with self._lock:
                rows = self._conn.execute(
                    """
                    SELECT role, message, user_name, timestamp FROM (
                        SELECT id, role, message, user_name, timestamp
                        FROM conversation_history
                        WHERE jid = ?
                        ORDER BY timestamp DESC, id DESC
                        LIMIT ?
                    ) ORDER BY timestamp ASC, id ASC
                    """,
                    (key, limit),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to get conversation history for {key}: {e}")
            return []
        return [
            Turn(
                role=row["role"],
                text=row["message"],
                author_name=row["user_name"] or None,
                created_at=row["timestamp"],
            )
            for row in rows
        ]

    def delete_all(self, key: str) -> bool:
        try:
            with self._lock:
                self._conn.execute("DELETE FROM conversation_history WHERE jid = ?", (key,))
                self._conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to delete history for {key}: {e}")
            return False
        logger.info(f"Deleted conversation history for {key}")
        return True

    def get_language(self, identity: str) -> str:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT lang FROM users WHERE jid = ?", (identity,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to get user lang for {identity}: {e}")
            return DEFAULT_LANGUAGE
        return row["lang"] if row and row["lang"] else DEFAULT_LANGUAGE

    def set_language(self, identity: str, lang: str) -> bool:
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO users (jid, lang) VALUES (?, ?) "
                    "ON CONFLICT(jid) DO UPDATE SET lang = excluded.lang",
                    (identity, lang),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to set user lang for {identity}: {e}")
            return False
        return True
