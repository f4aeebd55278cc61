"""
Session state models and the sqlite-backed session store for quote-bot.
"""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path


class SessionState(str, Enum):
    """Which handler processes a chat's next message."""

    DEFAULT = "default"
    AWAITING_SEARCH_TERM = "awaiting_search_term"
    SHOWING_RANDOM = "showing_random"
    SHOWING_SEARCH_RESULT = "showing_search_result"
    SHOWING_SAVED = "showing_saved"


@dataclass
class SearchPosition:
    """Where a chat is in its current search results."""

    query: str
    position: int = 0
    quote_id: str = ""


SCHEMA = """
CREATE TABLE IF NOT EXISTS session_states (
    chat_id INTEGER PRIMARY KEY,
    state TEXT NOT NULL,
    updated_ts TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS last_quotes (
    chat_id INTEGER PRIMARY KEY,
    quote_id TEXT NOT NULL,
    updated_ts TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS search_positions (
    chat_id INTEGER PRIMARY KEY,
    query TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    quote_id TEXT NOT NULL DEFAULT '',
    updated_ts TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS saved_quotes (
    chat_id INTEGER NOT NULL,
    quote_id TEXT NOT NULL,
    saved_ts TEXT NOT NULL,
    PRIMARY KEY (chat_id, quote_id)
);
"""

# Per-conversation tables, cleared on startup and shutdown.
VOLATILE_TABLES = ("session_states", "last_quotes", "search_positions")


class StoreClosedError(RuntimeError):
    """The session store was used before open() or after close()."""


class SessionStore:
    """
    Small per-chat key-value store.

    One handle is created at startup, opened, passed to every component that
    needs it and closed at shutdown. Each operation uses its own connection,
    so the handle is safe to share between worker threads. The store gives
    no ordering guarantee between concurrent writers for the same chat;
    callers sequence per-chat access themselves.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._open = False

    def __enter__(self) -> "SessionStore":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        """Create the schema if needed and accept operations."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()
        self._open = True

    def close(self) -> None:
        self._open = False

    def _connect(self) -> sqlite3.Connection:
        if not self._open:
            raise StoreClosedError(f"session store {self.db_path} is not open")
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql: str, params: tuple = ()) -> None:
        conn = self._connect()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchone()
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Session state
    # -------------------------------------------------------------------------

    def set_state(self, chat_id: int, state: SessionState) -> None:
        self._execute(
            """
            INSERT INTO session_states (chat_id, state, updated_ts) VALUES (?, ?, ?)
            ON CONFLICT(chat_id) DO UPDATE SET
                state = excluded.state,
                updated_ts = excluded.updated_ts
            """,
            (chat_id, state.value, _now()),
        )

    def get_state(self, chat_id: int) -> SessionState | None:
        """Get the stored state. Raises ValueError for an unknown stored value."""
        row = self._fetchone(
            "SELECT state FROM session_states WHERE chat_id = ?", (chat_id,)
        )
        return SessionState(row["state"]) if row else None

    def delete_state(self, chat_id: int) -> None:
        self._execute("DELETE FROM session_states WHERE chat_id = ?", (chat_id,))

    # -------------------------------------------------------------------------
    # Last quote shown
    # -------------------------------------------------------------------------

    def set_last_quote(self, chat_id: int, quote_id: str) -> None:
        self._execute(
            """
            INSERT INTO last_quotes (chat_id, quote_id, updated_ts) VALUES (?, ?, ?)
            ON CONFLICT(chat_id) DO UPDATE SET
                quote_id = excluded.quote_id,
                updated_ts = excluded.updated_ts
            """,
            (chat_id, quote_id, _now()),
        )

    def get_last_quote(self, chat_id: int) -> str | None:
        row = self._fetchone(
            "SELECT quote_id FROM last_quotes WHERE chat_id = ?", (chat_id,)
        )
        return row["quote_id"] if row else None

    def delete_last_quote(self, chat_id: int) -> None:
        self._execute("DELETE FROM last_quotes WHERE chat_id = ?", (chat_id,))

    # -------------------------------------------------------------------------
    # Search position
    # -------------------------------------------------------------------------

    def set_search(self, chat_id: int, query: str, position: int, quote_id: str = "") -> None:
        self._execute(
            """
            INSERT INTO search_positions (chat_id, query, position, quote_id, updated_ts)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(chat_id) DO UPDATE SET
                query = excluded.query,
                position = excluded.position,
                quote_id = excluded.quote_id,
                updated_ts = excluded.updated_ts
            """,
            (chat_id, query, position, quote_id, _now()),
        )

    def get_search(self, chat_id: int) -> SearchPosition | None:
        row = self._fetchone(
            "SELECT query, position, quote_id FROM search_positions WHERE chat_id = ?",
            (chat_id,),
        )
        if not row:
            return None
        return SearchPosition(
            query=row["query"], position=row["position"], quote_id=row["quote_id"]
        )

    def delete_search(self, chat_id: int) -> None:
        self._execute("DELETE FROM search_positions WHERE chat_id = ?", (chat_id,))

    # -------------------------------------------------------------------------
    # Saved quotes
    # -------------------------------------------------------------------------

    def save_quote(self, chat_id: int, quote_id: str) -> None:
        """Save a quote for a chat. Saving it twice keeps one entry."""
        self._execute(
            """
            INSERT OR IGNORE INTO saved_quotes (chat_id, quote_id, saved_ts)
            VALUES (?, ?, ?)
            """,
            (chat_id, quote_id, _now()),
        )

    def get_saved_quotes(self, chat_id: int) -> list[str]:
        """Get saved quote IDs for a chat, oldest first."""
        conn = self._connect()
        try:
            cursor = conn.execute(
                "SELECT quote_id FROM saved_quotes WHERE chat_id = ? ORDER BY saved_ts ASC, rowid ASC",
                (chat_id,),
            )
            return [row["quote_id"] for row in cursor.fetchall()]
        finally:
            conn.close()

    def delete_saved_quote(self, chat_id: int, quote_id: str) -> None:
        self._execute(
            "DELETE FROM saved_quotes WHERE chat_id = ? AND quote_id = ?",
            (chat_id, quote_id),
        )

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def reset_chat(self, chat_id: int) -> None:
        """Forget one chat's conversation state. Saved quotes are kept."""
        conn = self._connect()
        try:
            for table in VOLATILE_TABLES:
                conn.execute(f"DELETE FROM {table} WHERE chat_id = ?", (chat_id,))
            conn.commit()
        finally:
            conn.close()

    def truncate_volatile(self) -> None:
        """Clear conversation state for every chat. Saved quotes are kept."""
        conn = self._connect()
        try:
            for table in VOLATILE_TABLES:
                conn.execute(f"DELETE FROM {table}")
            conn.commit()
        finally:
            conn.close()


def _now() -> str:
    return datetime.now(UTC).isoformat()
