"""Tests for the agent-backed pipeline stages."""

import pytest

from conftest import FakeAgent, analysis_output, collect_output, insight_output
from trendline.contracts import CollectRecord, Stage, StageCallError, WorkflowState
from trendline.models import FinishReason
from trendline.stages import AnalyzeStage, ChatMemory, CollectStage, InsightStage, build_stages
from trendline.config import StagesConfig


@pytest.mark.asyncio
async def test_collect_stage_saves_history_under_session(store):
    memory = ChatMemory(store)
    agent = FakeAgent(collect_output(), tokens=42)
    stage = CollectStage(agent, memory)

    first = await stage.run("trends for Redis")

    assert first.output.finish_reason is FinishReason.COMPLETED
    assert first.tokens == 42
    assert first.correlation_id
    history = await memory.load(first.correlation_id)
    assert len(history) == 1

    second = await stage.run("only Bluesky", session_id=first.correlation_id)
    assert second.correlation_id == first.correlation_id
    assert len(agent.calls[1]["message_history"]) == 1
    assert len(await memory.load(first.correlation_id)) == 2


@pytest.mark.asyncio
async def test_fresh_session_has_no_history(store):
    agent = FakeAgent(collect_output())
    await CollectStage(agent, ChatMemory(store)).run("hello")
    assert agent.calls[0]["message_history"] is None


@pytest.mark.asyncio
async def test_downstream_prompt_contains_earlier_results(store):
    state = WorkflowState.new("T1", "C1", "1")
    state.record(CollectRecord(result=collect_output(), tokens=1))
    agent = FakeAgent(analysis_output(), tokens=17)

    record = await AnalyzeStage(agent).run(state)

    assert record.kind == "analyze"
    assert record.tokens == 17
    prompt = agent.calls[0]["prompt"]
    assert prompt.startswith("collect result:\n")
    assert "Redis 8 is out" in prompt


@pytest.mark.asyncio
async def test_agent_exception_becomes_stage_call_error():
    stage = InsightStage(FakeAgent(insight_output(), error=RuntimeError("rate limited")))

    with pytest.raises(StageCallError) as exc_info:
        await stage.run(WorkflowState.new("T1", "C1", "1"))
    assert exc_info.value.stage is Stage.INSIGHT
    assert "rate limited" in exc_info.value.reason


@pytest.mark.asyncio
async def test_timeout_becomes_stage_call_error():
    stage = AnalyzeStage(FakeAgent(analysis_output(), delay=1), timeout=0.01)

    with pytest.raises(StageCallError) as exc_info:
        await stage.run(WorkflowState.new("T1", "C1", "1"))
    assert "timed out" in exc_info.value.reason


@pytest.mark.asyncio
async def test_error_finish_reason_becomes_stage_call_error():
    stage = AnalyzeStage(FakeAgent(analysis_output(finish_reason=FinishReason.ERROR)))

    with pytest.raises(StageCallError):
        await stage.run(WorkflowState.new("T1", "C1", "1"))


@pytest.mark.asyncio
async def test_empty_output_becomes_stage_call_error():
    stage = AnalyzeStage(FakeAgent(None))

    with pytest.raises(StageCallError) as exc_info:
        await stage.run(WorkflowState.new("T1", "C1", "1"))
    assert exc_info.value.reason == "empty response"


def test_build_stages_covers_every_stage(store):
    stages = build_stages(StagesConfig(model="test", timeout=12), ChatMemory(store))

    assert set(stages) == {Stage.COLLECT, Stage.ANALYZE, Stage.INSIGHT, Stage.REPORT}
    assert all(stage.timeout == 12 for stage in stages.values())
    assert stages[Stage.ANALYZE].agent.name == "analyze_agent"
