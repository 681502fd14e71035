"""Shared fakes for trendline tests."""

import asyncio
import fnmatch
import time
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from pydantic_ai.messages import ModelRequest, UserPromptPart

from trendline.contracts import Stage
from trendline.models import (
    AnalysisResult,
    CollectResult,
    FetchedPost,
    FinishReason,
    InsightResult,
    Insights,
    Report,
    ReportResult,
    ReportSection,
    TopicResult,
)
from trendline.orchestrator import PipelineOrchestrator
from trendline.persistence import InMemoryStore
from trendline.stages import AnalyzeStage, ChatMemory, CollectStage, InsightStage, ReportStage
from trendline.state import WorkflowStateManager
from trendline.worker import WorkerPool


def collect_output(**kwargs) -> CollectResult:
    kwargs.setdefault("finish_reason", FinishReason.COMPLETED)
    kwargs.setdefault("search_parameters", {"query": "redis"})
    kwargs.setdefault("posts", [FetchedPost(author="alice", text="Redis 8 is out")])
    return CollectResult(**kwargs)


def analysis_output(**kwargs) -> AnalysisResult:
    kwargs.setdefault("finish_reason", FinishReason.COMPLETED)
    kwargs.setdefault("timeframe", "last 7 days")
    kwargs.setdefault("topics", [TopicResult(topic="Redis 8", trending=True)])
    return AnalysisResult(**kwargs)


def insight_output(**kwargs) -> InsightResult:
    kwargs.setdefault("finish_reason", FinishReason.COMPLETED)
    kwargs.setdefault("insights", Insights(summary="People like Redis 8"))
    return InsightResult(**kwargs)


def report_output(**kwargs) -> ReportResult:
    kwargs.setdefault("finish_reason", FinishReason.COMPLETED)
    kwargs.setdefault(
        "report",
        Report(
            title="Redis Trends",
            summary="Redis 8 dominates the conversation.",
            sections=[ReportSection(heading="Highlights", content="Lots of excitement.")],
        ),
    )
    return ReportResult(**kwargs)


class FakeRunResult:
    """Mimics the parts of ``pydantic_ai.agent.AgentRunResult`` stages use."""

    def __init__(self, output: Any, tokens: int, messages: list) -> None:
        self.output = output
        self._tokens = tokens
        self._messages = messages

    def usage(self):
        return SimpleNamespace(total_tokens=self._tokens)

    def all_messages(self) -> list:
        return self._messages


class FakeAgent:
    """Returns queued outputs in order, repeating the last one."""

    def __init__(
        self,
        *outputs: Any,
        tokens: int = 10,
        error: Optional[Exception] = None,
        delay: float = 0,
    ) -> None:
        self.outputs = list(outputs)
        self.tokens = tokens
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def run(self, prompt: str, message_history: Optional[list] = None) -> FakeRunResult:
        self.calls.append({"prompt": prompt, "message_history": message_history})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        output = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        messages = list(message_history or []) + [
            ModelRequest(parts=[UserPromptPart(content=prompt)])
        ]
        return FakeRunResult(output, self.tokens, messages)


class RecordingNotifier:
    """Collects every message the orchestrator posts."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    async def post_message(self, tenant, channel, text, thread=None, markdown=False):
        self.messages.append(
            {
                "tenant": tenant,
                "channel": channel,
                "text": text,
                "thread": thread,
                "markdown": markdown,
            }
        )
        return f"{len(self.messages)}.000"

    @property
    def texts(self) -> List[str]:
        return [m["text"] for m in self.messages]


class FakeRedis:
    """In-process stand-in for the subset of ``redis.asyncio.Redis`` used."""

    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._data: Dict[str, Any] = {}
        self.closed = False

    def _alive(self, key: str):
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def ping(self) -> bool:
        return True

    async def get(self, key: str):
        return self._alive(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None, nx: bool = False):
        if nx and self._alive(key) is not None:
            return None
        expires_at = self._clock() + ex if ex else None
        self._data[key] = (value, expires_at)
        return True

    async def scan_iter(self, match: str = "*"):
        for key in list(self._data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def agents():
    return {
        Stage.COLLECT: FakeAgent(collect_output(), tokens=100),
        Stage.ANALYZE: FakeAgent(analysis_output(), tokens=200),
        Stage.INSIGHT: FakeAgent(insight_output(), tokens=300),
        Stage.REPORT: FakeAgent(report_output(), tokens=400),
    }


def make_stages(store, agents, timeout: Optional[float] = 5.0):
    memory = ChatMemory(store)
    return {
        Stage.COLLECT: CollectStage(agents[Stage.COLLECT], memory, timeout=timeout),
        Stage.ANALYZE: AnalyzeStage(agents[Stage.ANALYZE], timeout=timeout),
        Stage.INSIGHT: InsightStage(agents[Stage.INSIGHT], timeout=timeout),
        Stage.REPORT: ReportStage(agents[Stage.REPORT], timeout=timeout),
    }


@pytest.fixture
def build_orchestrator(notifier):
    """Factory wiring an orchestrator over ``store`` with fake agents."""

    def _build(store, agents, **kwargs) -> PipelineOrchestrator:
        states = WorkflowStateManager(store)
        return PipelineOrchestrator(
            states,
            make_stages(store, agents),
            kwargs.pop("notifier", notifier),
            pool=WorkerPool(),
            **kwargs,
        )

    return _build
