"""In-memory implementation of the trendline stores."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from ..contracts import ProcessedEvent, WorkflowState
from .repository import Store, decode_state

Entry = Tuple[float, str]


class InMemoryStore(Store):
    """Keep state in local memory with per-entry expiry.

    Useful for tests or single-process development. Values are stored
    serialized so callers never share objects with the store. Data is not
    persisted across process restarts.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._workflows: Dict[str, Entry] = {}
        self._events: Dict[str, Entry] = {}
        self._chats: Dict[str, Entry] = {}
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    def _live(self, table: Dict[str, Entry], key: str) -> Optional[str]:
        entry = table.get(key)
        if entry is None:
            return None
        expires_at, data = entry
        if expires_at <= self._clock():
            del table[key]
            return None
        return data

    def _live_items(self, table: Dict[str, Entry]) -> list[Tuple[str, str]]:
        return [(key, data) for key in list(table) if (data := self._live(table, key))]

    # ------------------------------------------------------------------
    async def get(self, key: str) -> Optional[WorkflowState]:
        async with self._lock:
            data = self._live(self._workflows, key)
        return decode_state(key, data) if data else None

    async def put(self, state: WorkflowState, ttl: int) -> None:
        async with self._lock:
            self._workflows[state.id] = (self._clock() + ttl, state.to_json())

    async def find_running(self) -> list[WorkflowState]:
        return [state for state in await self.list_workflows() if state.running]

    async def list_workflows(self) -> list[WorkflowState]:
        async with self._lock:
            items = self._live_items(self._workflows)
        states = (decode_state(key, data) for key, data in items)
        return [state for state in states if state is not None]

    async def add_if_absent(self, event: ProcessedEvent, ttl: int) -> bool:
        async with self._lock:
            if self._live(self._events, event.event_id) is not None:
                return False
            self._events[event.event_id] = (self._clock() + ttl, event.to_json())
            return True

    async def get_event(self, event_id: str) -> Optional[ProcessedEvent]:
        async with self._lock:
            data = self._live(self._events, event_id)
        return ProcessedEvent.from_json(data) if data else None

    async def load_messages(self, session_id: str) -> Optional[str]:
        async with self._lock:
            return self._live(self._chats, session_id)

    async def save_messages(self, session_id: str, data: str, ttl: int) -> None:
        async with self._lock:
            self._chats[session_id] = (self._clock() + ttl, data)
