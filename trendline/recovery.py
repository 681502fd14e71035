"""Startup recovery of workflows interrupted by a previous process."""

from __future__ import annotations

import asyncio
import logging

from .contracts import Stage, WorkflowState
from .orchestrator import PipelineOrchestrator
from .persistence import WorkflowStateStore
from .state import WorkflowStateManager

logger = logging.getLogger(__name__)


class RecoverySweeper:
    """Finds workflows still flagged ``running`` and resumes them.

    Meant to run once when the process is ready to serve. Workflows stuck in
    the collect stage cannot be resumed, since the user message that started
    them is gone; they are marked not running instead.
    """

    def __init__(
        self,
        store: WorkflowStateStore,
        states: WorkflowStateManager,
        orchestrator: PipelineOrchestrator,
    ) -> None:
        self._store = store
        self._states = states
        self._orchestrator = orchestrator

    async def sweep(self) -> list[asyncio.Task]:
        """Queue every interrupted workflow for resumption.

        Returns:
            The tasks running the resumed passes.
        """
        logger.info("Checking for interrupted workflows to recover...")
        try:
            running = await self._store.find_running()
        except Exception as e:
            logger.error(f"Error during startup recovery: {e}", exc_info=True)
            return []

        if not running:
            logger.info("No interrupted workflows found")
            return []

        logger.info(f"Found {len(running)} interrupted workflow(s) to recover")
        tasks: list[asyncio.Task] = []
        for state in running:
            try:
                if state.stage is Stage.COLLECT:
                    logger.warning(
                        f"Workflow {state.id} was interrupted in the collect stage "
                        "and cannot be resumed without user input"
                    )
                    await self._stop(state)
                    continue
                logger.info(f"Recovering workflow {state.id} (stage: {state.stage.value})")
                tasks.append(self._orchestrator.submit_resume(state))
            except Exception as e:
                logger.error(f"Failed to recover workflow {state.id}: {e}", exc_info=True)
                try:
                    await self._stop(state)
                except Exception as save_error:
                    logger.error(f"Failed to update workflow {state.id}: {save_error}")

        logger.info(f"Startup recovery completed. Queued {len(tasks)} workflow(s) for resumption")
        return tasks

    async def _stop(self, state: WorkflowState) -> None:
        state.running = False
        await self._states.update(state)
