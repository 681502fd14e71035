"""Redis implementation of the trendline stores."""

from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as redis

from ..constants import CHAT_KEY_PREFIX, EVENT_KEY_PREFIX, WORKFLOW_KEY_PREFIX
from ..contracts import ProcessedEvent, WorkflowState
from .repository import Store, decode_state


class RedisStore(Store):
    """Redis-backed stores shared by every process instance.

    Expiry is delegated to Redis key TTLs. Event deduplication relies on
    ``SET NX`` so concurrent callers across processes race safely.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        url: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.url = url
        self._redis: Optional[Any] = client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is not None:
            return
        if self.url:
            self._redis = redis.from_url(self.url, decode_responses=True)
        else:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        await self._redis.ping()

    async def close(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if self._redis is None:
            await self.connect()
        return self._redis

    # ------------------------------------------------------------------
    async def get(self, key: str) -> Optional[WorkflowState]:
        client = await self._client()
        data = await client.get(WORKFLOW_KEY_PREFIX + key)
        return decode_state(key, data) if data else None

    async def put(self, state: WorkflowState, ttl: int) -> None:
        client = await self._client()
        await client.set(WORKFLOW_KEY_PREFIX + state.id, state.to_json(), ex=ttl)

    async def find_running(self) -> list[WorkflowState]:
        return [state for state in await self.list_workflows() if state.running]

    async def list_workflows(self) -> list[WorkflowState]:
        client = await self._client()
        states: list[WorkflowState] = []
        async for key in client.scan_iter(match=WORKFLOW_KEY_PREFIX + "*"):
            data = await client.get(key)
            # expired between SCAN and GET
            if data is None:
                continue
            state = decode_state(key, data)
            if state is not None:
                states.append(state)
        return states

    # ------------------------------------------------------------------
    async def add_if_absent(self, event: ProcessedEvent, ttl: int) -> bool:
        client = await self._client()
        inserted = await client.set(
            EVENT_KEY_PREFIX + event.event_id, event.to_json(), nx=True, ex=ttl
        )
        return bool(inserted)

    async def get_event(self, event_id: str) -> Optional[ProcessedEvent]:
        client = await self._client()
        data = await client.get(EVENT_KEY_PREFIX + event_id)
        return ProcessedEvent.from_json(data) if data else None

    # ------------------------------------------------------------------
    async def load_messages(self, session_id: str) -> Optional[str]:
        client = await self._client()
        return await client.get(CHAT_KEY_PREFIX + session_id)

    async def save_messages(self, session_id: str, data: str, ttl: int) -> None:
        client = await self._client()
        await client.set(CHAT_KEY_PREFIX + session_id, data, ex=ttl)
