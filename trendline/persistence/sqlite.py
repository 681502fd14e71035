"""SQLite implementation of the trendline stores."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional

from ..contracts import ProcessedEvent, WorkflowState
from .repository import Store, decode_state


class SQLiteStore(Store):
    """Persist workflow state, processed events and chat history in SQLite.

    Every row carries an ``expires_at`` epoch timestamp; reads ignore expired
    rows and writes purge them opportunistically.
    """

    def __init__(self, db_path: str | Path, clock: Callable[[], float] = time.time):
        self.db_path = str(db_path)
        self._clock = clock
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._guard = threading.Lock()
        self._ensure_schema()

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._guard:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS workflows (
                    key TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    running INTEGER NOT NULL DEFAULT 0,
                    expires_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS processed_events (
                    event_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS chat_sessions (
                    session_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
                """
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._guard:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
            return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._guard:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._guard:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    @staticmethod
    def _decode_rows(rows: list[sqlite3.Row]) -> list[WorkflowState]:
        states = (decode_state(row["key"], row["data"]) for row in rows)
        return [state for state in states if state is not None]

    def _insert_event(self, event_id: str, data: str, expires_at: float, now: float) -> bool:
        with self._guard:
            cur = self._conn.cursor()
            try:
                cur.execute(
                    "DELETE FROM processed_events WHERE event_id = ? AND expires_at <= ?",
                    (event_id, now),
                )
                cur.execute(
                    "INSERT OR IGNORE INTO processed_events (event_id, data, expires_at) VALUES (?, ?, ?)",
                    (event_id, data, expires_at),
                )
                inserted = cur.rowcount == 1
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
            return inserted

    # ------------------------------------------------------------------
    # Workflow state
    async def get(self, key: str) -> Optional[WorkflowState]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflows WHERE key = ? AND expires_at > ?",
            key,
            self._clock(),
        )
        return decode_state(key, row["data"]) if row else None

    async def put(self, state: WorkflowState, ttl: int) -> None:
        now = self._clock()
        await asyncio.to_thread(
            self._execute,
            "INSERT OR REPLACE INTO workflows (key, data, running, expires_at) VALUES (?, ?, ?, ?)",
            state.id,
            state.to_json(),
            int(state.running),
            now + ttl,
        )
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE expires_at <= ?", now
        )

    async def find_running(self) -> list[WorkflowState]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT key, data FROM workflows WHERE running = 1 AND expires_at > ?",
            self._clock(),
        )
        return self._decode_rows(rows)

    async def list_workflows(self) -> list[WorkflowState]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT key, data FROM workflows WHERE expires_at > ? ORDER BY key",
            self._clock(),
        )
        return self._decode_rows(rows)

    # ------------------------------------------------------------------
    # Processed events
    async def add_if_absent(self, event: ProcessedEvent, ttl: int) -> bool:
        now = self._clock()
        return await asyncio.to_thread(
            self._insert_event, event.event_id, event.to_json(), now + ttl, now
        )

    async def get_event(self, event_id: str) -> Optional[ProcessedEvent]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM processed_events WHERE event_id = ? AND expires_at > ?",
            event_id,
            self._clock(),
        )
        return ProcessedEvent.from_json(row["data"]) if row else None

    # ------------------------------------------------------------------
    # Chat memory
    async def load_messages(self, session_id: str) -> Optional[str]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM chat_sessions WHERE session_id = ? AND expires_at > ?",
            session_id,
            self._clock(),
        )
        return row["data"] if row else None

    async def save_messages(self, session_id: str, data: str, ttl: int) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT OR REPLACE INTO chat_sessions (session_id, data, expires_at) VALUES (?, ?, ?)",
            session_id,
            data,
            self._clock() + ttl,
        )
