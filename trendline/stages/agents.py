"""Concrete pipeline stages and the agents behind them."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Sequence

from pydantic_ai import Agent

from ..config import StagesConfig
from ..contracts import AnalysisRecord, InsightRecord, ReportRecord, Stage
from ..models import AnalysisResult, CollectResult, InsightResult, ReportResult
from .base import AgentStage, DownstreamStage, StageOutput
from .memory import ChatMemory
from .prompts import ANALYZE_PROMPT, COLLECT_PROMPT, INSIGHT_PROMPT, REPORT_PROMPT

logger = logging.getLogger(__name__)


class CollectStage(AgentStage[CollectResult]):
    """First stage. May ask the user for more input over several turns.

    Each session's message history is kept in ``memory`` so that a follow-up
    message continues the same upstream conversation.
    """

    stage = Stage.COLLECT

    def __init__(self, agent: Any, memory: ChatMemory, **kwargs: Any) -> None:
        super().__init__(agent, **kwargs)
        self.memory = memory

    async def run(
        self, text: str, session_id: Optional[str] = None
    ) -> StageOutput[CollectResult]:
        session_id = session_id or str(uuid.uuid4())
        history = await self.memory.load(session_id)
        if history:
            logger.info(f"Continuing collect session {session_id}")

        result = await self._call(text, message_history=history)
        await self.memory.save(session_id, result.all_messages())
        return StageOutput[CollectResult](
            output=result.output,
            tokens=self._tokens(result),
            correlation_id=session_id,
        )


class AnalyzeStage(DownstreamStage[AnalysisResult]):
    stage = Stage.ANALYZE
    record_type = AnalysisRecord


class InsightStage(DownstreamStage[InsightResult]):
    stage = Stage.INSIGHT
    record_type = InsightRecord


class ReportStage(DownstreamStage[ReportResult]):
    stage = Stage.REPORT
    record_type = ReportRecord


_AGENT_SPECS = {
    Stage.COLLECT: (CollectResult, COLLECT_PROMPT),
    Stage.ANALYZE: (AnalysisResult, ANALYZE_PROMPT),
    Stage.INSIGHT: (InsightResult, INSIGHT_PROMPT),
    Stage.REPORT: (ReportResult, REPORT_PROMPT),
}


def build_agent(stage: Stage, model: str, tools: Sequence[Any] = ()) -> Agent:
    """Create the pydantic-ai agent for ``stage``.

    Model resolution is deferred to the first run so that building the
    pipeline does not require provider credentials.
    """
    output_type, prompt = _AGENT_SPECS[stage]
    return Agent(
        model,
        output_type=output_type,
        system_prompt=prompt,
        name=f"{stage.value}_agent",
        tools=list(tools),
        defer_model_check=True,
    )


def build_stages(
    config: StagesConfig,
    memory: ChatMemory,
    collect_tools: Sequence[Any] = (),
) -> Dict[Stage, AgentStage]:
    """Build every pipeline stage from configuration.

    ``collect_tools`` are handed to the collector agent, typically search
    functions for the social networks being tracked.
    """
    return {
        Stage.COLLECT: CollectStage(
            build_agent(Stage.COLLECT, config.model, collect_tools),
            memory,
            timeout=config.timeout,
        ),
        Stage.ANALYZE: AnalyzeStage(
            build_agent(Stage.ANALYZE, config.model), timeout=config.timeout
        ),
        Stage.INSIGHT: InsightStage(
            build_agent(Stage.INSIGHT, config.model), timeout=config.timeout
        ),
        Stage.REPORT: ReportStage(
            build_agent(Stage.REPORT, config.model), timeout=config.timeout
        ),
    }
