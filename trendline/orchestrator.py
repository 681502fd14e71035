"""Pipeline orchestration: drives a workflow through its stages.

One orchestration pass loads (or creates) the workflow state for a Slack
thread and executes stages in order, one agent call per stage. State is
written back after every transition, so a crash mid-pipeline loses at most
the stage that was in flight. Passes run on a :class:`WorkerPool`, outside
the inbound request that triggered them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Protocol, Set

from .constants import PARAGRAPH_SEPARATOR, SLACK_MESSAGE_LIMIT
from .contracts import CollectRecord, Stage, StageCallError, StoreError, WorkflowState
from .models import FinishReason
from .slack.formatting import format_cost_summary, format_report
from .state import WorkflowStateManager
from .worker import WorkerPool

logger = logging.getLogger(__name__)

PROGRESS_MESSAGES = {
    Stage.COLLECT: "🔍 Searching for posts...",
    Stage.ANALYZE: "📊 Analyzing topics and trends...",
    Stage.INSIGHT: "💡 Generating insights...",
    Stage.REPORT: "📝 Creating report...",
}

FAILURE_MESSAGES = {
    Stage.COLLECT: "❌ Failed to fetch data. Please try again.",
    Stage.ANALYZE: "❌ Failed to analyze data. Please try again.",
    Stage.INSIGHT: "❌ Failed to generate insights. Please try again.",
    Stage.REPORT: "❌ Failed to generate report. Please try again.",
}

GENERIC_FAILURE = "❌ An error occurred while processing your request. Please try again."


class Notifier(Protocol):
    async def post_message(
        self,
        tenant: Optional[str],
        channel: str,
        text: str,
        thread: Optional[str] = None,
        markdown: bool = False,
    ) -> Optional[str]:
        """Deliver ``text`` and return the message id, or ``None`` on failure."""


def split_message(text: str, limit: int = SLACK_MESSAGE_LIMIT) -> list[str]:
    """Split ``text`` into ordered chunks of at most ``limit`` characters.

    Paragraphs are packed greedily; a chunk is flushed when the next
    paragraph would push it over the limit. A single paragraph longer than
    the limit is cut into limit-sized pieces.
    """
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""
    for paragraph in text.split(PARAGRAPH_SEPARATOR):
        pieces = [paragraph[i : i + limit] for i in range(0, len(paragraph), limit)]
        for piece in pieces or [""]:
            candidate = f"{current}{PARAGRAPH_SEPARATOR}{piece}" if current else piece
            if current and len(candidate) > limit:
                chunks.append(current)
                current = piece
            else:
                current = candidate
    if current:
        chunks.append(current)
    return chunks


class PipelineOrchestrator:
    """Executes the staged pipeline for one workflow at a time per pass.

    Stage calls are never retried within a pass. A failed stage leaves the
    workflow at that stage with ``running`` cleared; a new message in the
    thread or the recovery sweep re-enters it.
    """

    def __init__(
        self,
        states: WorkflowStateManager,
        stages: Mapping[Stage, Any],
        notifier: Notifier,
        pool: Optional[WorkerPool] = None,
        max_message_length: int = SLACK_MESSAGE_LIMIT,
    ) -> None:
        self.states = states
        self.stages = stages
        self.notifier = notifier
        self.pool = pool or WorkerPool()
        self.max_message_length = max_message_length
        # keys with a pass executing in this process
        self._active: Set[str] = set()

    # ------------------------------------------------------------------
    # Entry points
    def submit(
        self, tenant: str, channel: str, thread: Optional[str], text: str
    ) -> asyncio.Task:
        """Queue a pass for an inbound message without waiting for it."""
        key = self.states.key(tenant, channel, thread)
        return self.pool.submit(
            self.process_request(tenant, channel, thread, text), name=f"workflow:{key}"
        )

    def submit_resume(self, state: WorkflowState) -> asyncio.Task:
        """Queue a pass that resumes ``state`` from its stored stage."""
        return self.pool.submit(self.resume(state), name=f"resume:{state.id}")

    async def process_request(
        self, tenant: str, channel: str, thread: Optional[str], text: str
    ) -> Optional[WorkflowState]:
        """Run a pass triggered by a user message.

        A trigger arriving while a pass for the same thread is executing is
        dropped, so stages of one workflow never run concurrently.
        """
        key = self.states.key(tenant, channel, thread)
        if not self._claim(key):
            return None
        state: Optional[WorkflowState] = None
        try:
            state = await self.states.get_or_create(tenant, channel, thread)
            if state.stage is Stage.COMPLETED:
                logger.info(f"Workflow {state.id} already completed, starting over")
                state = await self.states.create(tenant, channel, thread)
            state.running = True
            await self.states.update(state)
            logger.info(f"Starting pipeline for {state.id} at stage {state.stage.value}")
            await self._run(state, text)
        except Exception as e:
            await self._abort(state, tenant, channel, thread, e)
        finally:
            self._active.discard(key)
        return state

    async def resume(self, state: WorkflowState) -> Optional[WorkflowState]:
        """Run a pass for a persisted state without a new user message."""
        if not self._claim(state.id):
            return None
        logger.info(f"Resuming workflow {state.id} at stage {state.stage.value}")
        try:
            await self._run(state, None)
        except Exception as e:
            await self._abort(state, state.tenant, state.channel, state.thread, e)
        finally:
            self._active.discard(state.id)
        return state

    def _claim(self, key: str) -> bool:
        if key in self._active:
            logger.info(f"Workflow {key} already has a pass in progress, ignoring trigger")
            return False
        self._active.add(key)
        return True

    # ------------------------------------------------------------------
    # State machine
    async def _run(self, state: WorkflowState, text: Optional[str]) -> None:
        if state.stage is Stage.COLLECT:
            if text is None:
                raise ValueError(f"Cannot run collect stage for {state.id} without input")
            if not await self._collect(state, text):
                return

        while state.stage is not Stage.COMPLETED:
            if not await self._downstream(state):
                return

        await self._complete(state)

    async def _collect(self, state: WorkflowState, text: str) -> bool:
        await self._notify(state, PROGRESS_MESSAGES[Stage.COLLECT])
        session_id = state.workflow_id if state.pending is not None else None
        try:
            result = await self.stages[Stage.COLLECT].run(text, session_id=session_id)
        except StageCallError as e:
            logger.error(f"Collect stage failed for {state.id}: {e.reason}")
            await self._fail(state, FAILURE_MESSAGES[Stage.COLLECT])
            return False

        record = CollectRecord(result=result.output, tokens=result.tokens)
        state.workflow_id = result.correlation_id

        if result.output.finish_reason is FinishReason.NEEDS_MORE_INPUT:
            logger.info(f"Collect stage needs more input for {state.id}")
            state.pending = record
            state.running = False
            await self._persist(state)
            question = result.output.next_prompt or "Could you tell me more about what to search for?"
            await self._notify(state, f"❓ {question}")
            return False

        logger.info(f"Collect stage completed for {state.id}")
        state.pending = None
        state.record(record)
        state.advance()
        await self._persist(state)
        return True

    async def _downstream(self, state: WorkflowState) -> bool:
        stage = state.stage
        await self._notify(state, PROGRESS_MESSAGES[stage])
        try:
            record = await self.stages[stage].run(state)
        except StageCallError as e:
            logger.error(f"{stage.value} stage failed for {state.id}: {e.reason}")
            await self._fail(state, FAILURE_MESSAGES[stage])
            return False

        state.record(record)
        state.advance()
        await self._persist(state)
        return True

    async def _complete(self, state: WorkflowState) -> None:
        report = state.report.result if state.report else None
        for chunk in split_message(format_report(report), self.max_message_length):
            await self.notifier.post_message(
                state.tenant, state.channel, chunk, state.thread, markdown=True
            )
        await self._notify(state, format_cost_summary(state))

        state.running = False
        await self._persist(state)
        logger.info(f"Pipeline completed for {state.id} ({state.total_tokens()} tokens)")

    # ------------------------------------------------------------------
    # Helpers
    async def _notify(self, state: WorkflowState, text: str) -> None:
        await self.notifier.post_message(state.tenant, state.channel, text, state.thread)

    async def _persist(self, state: WorkflowState) -> None:
        try:
            await self.states.update(state)
        except Exception as e:
            logger.error(
                f"Failed to persist workflow {state.id} at stage {state.stage.value}; "
                "progress may be lost on restart",
                exc_info=True,
            )
            raise StoreError(f"could not persist workflow {state.id}") from e

    async def _fail(self, state: WorkflowState, message: str) -> None:
        state.running = False
        await self._persist(state)
        await self._notify(state, message)

    async def _abort(
        self,
        state: Optional[WorkflowState],
        tenant: str,
        channel: str,
        thread: Optional[str],
        error: Exception,
    ) -> None:
        logger.error(f"Error in pipeline for {tenant}:{channel}:{thread}: {error}", exc_info=error)
        if state is not None:
            state.running = False
            try:
                await self.states.update(state)
            except Exception as e:
                logger.error(f"Could not clear running flag for {state.id}: {e}")
        await self.notifier.post_message(tenant, channel, GENERIC_FAILURE, thread)
