"""Message history for multi-turn stage sessions."""

from __future__ import annotations

from typing import Optional

from pydantic_ai.messages import ModelMessage, ModelMessagesTypeAdapter

from ..constants import WORKFLOW_TTL_SECONDS
from ..persistence import ChatMemoryStore


class ChatMemory:
    """Loads and saves pydantic-ai message history keyed by session id."""

    def __init__(self, store: ChatMemoryStore, ttl: int = WORKFLOW_TTL_SECONDS) -> None:
        self._store = store
        self.ttl = ttl

    async def load(self, session_id: str) -> Optional[list[ModelMessage]]:
        data = await self._store.load_messages(session_id)
        if not data:
            return None
        messages = ModelMessagesTypeAdapter.validate_json(data)
        return messages or None

    async def save(self, session_id: str, messages: list[ModelMessage]) -> None:
        data = ModelMessagesTypeAdapter.dump_json(messages).decode("utf-8")
        await self._store.save_messages(session_id, data, self.ttl)
