"""Execution of a single pipeline stage through a pydantic-ai agent."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from ..constants import DEFAULT_STAGE_TIMEOUT_SECONDS
from ..contracts import Stage, StageCallError, StageRecord, WorkflowState
from ..models import FinishReason

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StageOutput(BaseModel, Generic[T]):
    """Structured stage output plus usage and session metadata."""

    output: T
    tokens: int = 0
    correlation_id: Optional[str] = None


class AgentStage(Generic[T]):
    """Wraps an agent so that every failure surfaces as ``StageCallError``.

    ``agent`` is anything with an async ``run(prompt, message_history=...)``
    returning an object with ``output`` and ``usage()``, which is what
    ``pydantic_ai.Agent`` provides.
    """

    stage: Stage

    def __init__(
        self, agent: Any, timeout: Optional[float] = DEFAULT_STAGE_TIMEOUT_SECONDS
    ) -> None:
        self.agent = agent
        self.timeout = timeout

    async def _call(self, prompt: str, message_history: Optional[list] = None) -> Any:
        logger.info(f"Running {self.stage.value} stage")
        try:
            call = self.agent.run(prompt, message_history=message_history)
            if self.timeout:
                result = await asyncio.wait_for(call, self.timeout)
            else:
                result = await call
        except asyncio.TimeoutError as e:
            raise StageCallError(self.stage, f"timed out after {self.timeout}s") from e
        except Exception as e:
            raise StageCallError(self.stage, str(e) or type(e).__name__) from e

        output = getattr(result, "output", None)
        if output is None:
            raise StageCallError(self.stage, "empty response")
        if output.finish_reason == FinishReason.ERROR:
            raise StageCallError(self.stage, "agent reported an error")
        return result

    @staticmethod
    def _tokens(result: Any) -> int:
        usage = getattr(result, "usage", None)
        if usage is None:
            return 0
        if callable(usage):
            usage = usage()
        return int(getattr(usage, "total_tokens", None) or 0)


class DownstreamStage(AgentStage[T]):
    """A stage fed with the accumulated results of every earlier stage."""

    record_type: type

    def build_prompt(self, state: WorkflowState) -> str:
        parts = [
            f"{record.kind} result:\n{record.result.model_dump_json(exclude_none=True)}"
            for record in state.records()
        ]
        return "\n\n".join(parts)

    async def run(self, state: WorkflowState) -> StageRecord:
        result = await self._call(self.build_prompt(state))
        logger.info(f"{self.stage.value} stage completed for {state.id}")
        return self.record_type(result=result.output, tokens=self._tokens(result))
