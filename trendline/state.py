"""Workflow state management on top of the configured store."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from .constants import WORKFLOW_TTL_SECONDS
from .contracts import WorkflowState, utcnow, workflow_key
from .persistence import WorkflowStateStore

logger = logging.getLogger(__name__)


class WorkflowStateManager:
    """Get-or-create and update facade for workflow state.

    States are never deleted explicitly; they disappear when the store
    expires them ``ttl`` seconds after the last write.
    """

    def __init__(self, store: WorkflowStateStore, ttl: int = WORKFLOW_TTL_SECONDS) -> None:
        self._store = store
        self.ttl = ttl

    @staticmethod
    def key(tenant: str, channel: str, thread: Optional[str]) -> str:
        return workflow_key(tenant, channel, thread)

    def _expired(self, state: WorkflowState) -> bool:
        return utcnow() - state.last_activity > timedelta(seconds=self.ttl)

    async def get(self, tenant: str, channel: str, thread: Optional[str]) -> Optional[WorkflowState]:
        return await self._store.get(self.key(tenant, channel, thread))

    async def get_or_create(
        self, tenant: str, channel: str, thread: Optional[str]
    ) -> WorkflowState:
        """Return the live state for the routing key, creating it on a miss."""
        key = self.key(tenant, channel, thread)
        state = await self._store.get(key)

        if state is not None and self._expired(state):
            logger.info(f"Workflow {key} timed out, starting a new one")
            state = None

        if state is not None:
            state.touch()
            logger.info(f"Continuing workflow {key} at stage {state.stage.value}")
            return state

        return await self.create(tenant, channel, thread)

    async def create(self, tenant: str, channel: str, thread: Optional[str]) -> WorkflowState:
        """Persist a fresh state at the first stage, replacing any previous one."""
        state = WorkflowState.new(tenant, channel, thread)
        await self._store.put(state, self.ttl)
        logger.info(f"Created workflow {state.id}")
        return state

    async def update(self, state: WorkflowState) -> None:
        """Refresh ``last_activity`` and overwrite the stored state."""
        state.touch()
        await self._store.put(state, self.ttl)
