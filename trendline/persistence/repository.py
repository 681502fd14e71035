"""Storage abstractions for workflow state, processed events and chat memory."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from ..contracts import ProcessedEvent, WorkflowState

logger = logging.getLogger(__name__)


def decode_state(key: str, data: str | bytes) -> Optional[WorkflowState]:
    """Decode a stored workflow, or return ``None`` if the record is unreadable.

    Records written by an incompatible version are skipped so that one bad
    row cannot hide the others from listings and the recovery sweep.
    """
    try:
        return WorkflowState.from_json(data)
    except ValidationError as e:
        logger.error(f"Skipping undecodable workflow record {key}: {e}")
        return None


class WorkflowStateStore(Protocol):
    """Keyed workflow state with expiry handled by the backend."""

    async def get(self, key: str) -> Optional[WorkflowState]:
        """Return the live state stored under ``key``."""

    async def put(self, state: WorkflowState, ttl: int) -> None:
        """Overwrite the state stored under ``state.id`` and reset its expiry."""

    async def find_running(self) -> list[WorkflowState]:
        """Return all live states flagged ``running``."""

    async def list_workflows(self) -> list[WorkflowState]:
        """Return all live states."""


class ProcessedEventStore(Protocol):
    """Set of recently seen inbound event ids."""

    async def add_if_absent(self, event: ProcessedEvent, ttl: int) -> bool:
        """Atomically insert ``event`` unless its id is present.

        Returns ``True`` if the record was inserted.
        """

    async def get_event(self, event_id: str) -> Optional[ProcessedEvent]:
        """Return the stored record for ``event_id``."""


class ChatMemoryStore(Protocol):
    """Serialized message history for multi-turn stage sessions."""

    async def load_messages(self, session_id: str) -> Optional[str]:
        """Return the stored history for ``session_id``."""

    async def save_messages(self, session_id: str, data: str, ttl: int) -> None:
        """Replace the history for ``session_id``."""


class Store(WorkflowStateStore, ProcessedEventStore, ChatMemoryStore, Protocol):
    """A backend providing every store trendline needs."""

    async def connect(self) -> None:
        """Open backend connections."""

    async def close(self) -> None:
        """Release backend connections."""
