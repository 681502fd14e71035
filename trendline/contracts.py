"""Core workflow contracts for trendline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from .models import AnalysisResult, CollectResult, InsightResult, ReportResult


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrendlineError(Exception):
    """Base class for trendline errors."""


class StageCallError(TrendlineError):
    """A stage call failed, timed out or reported ``ERROR``."""

    def __init__(self, stage: "Stage", reason: str) -> None:
        super().__init__(f"{stage.value} stage failed: {reason}")
        self.stage = stage
        self.reason = reason


class StoreError(TrendlineError):
    """A storage backend operation failed."""


class Stage(str, Enum):
    """Ordered pipeline stages. ``COMPLETED`` is terminal."""

    COLLECT = "collect"
    ANALYZE = "analyze"
    INSIGHT = "insight"
    REPORT = "report"
    COMPLETED = "completed"

    @property
    def position(self) -> int:
        return STAGE_ORDER.index(self)

    def next(self) -> "Stage":
        """Return the stage that follows this one."""
        if self is Stage.COMPLETED:
            raise ValueError("COMPLETED has no successor")
        return STAGE_ORDER[self.position + 1]


STAGE_ORDER = [
    Stage.COLLECT,
    Stage.ANALYZE,
    Stage.INSIGHT,
    Stage.REPORT,
    Stage.COMPLETED,
]


class CollectRecord(BaseModel):
    kind: Literal["collect"] = "collect"
    result: CollectResult
    tokens: int = 0


class AnalysisRecord(BaseModel):
    kind: Literal["analyze"] = "analyze"
    result: AnalysisResult
    tokens: int = 0


class InsightRecord(BaseModel):
    kind: Literal["insight"] = "insight"
    result: InsightResult
    tokens: int = 0


class ReportRecord(BaseModel):
    kind: Literal["report"] = "report"
    result: ReportResult
    tokens: int = 0


StageRecord = Annotated[
    Union[CollectRecord, AnalysisRecord, InsightRecord, ReportRecord],
    Field(discriminator="kind"),
]

_RECORD_FIELDS = {
    "collect": "collect",
    "analyze": "analysis",
    "insight": "insight",
    "report": "report",
}


def workflow_key(tenant: str, channel: str, thread: Optional[str]) -> str:
    """Routing key for a conversation thread: ``tenant:channel:thread``."""
    return f"{tenant}:{channel}:{thread or ''}"


class WorkflowState(BaseModel):
    """Durable progress of one pipeline run.

    ``running`` is set while an orchestration pass is queued or executing and
    is what the recovery sweep looks for after a restart.
    """

    id: str
    workflow_id: Optional[str] = None
    stage: Stage = Stage.COLLECT
    running: bool = False
    tenant: str
    channel: str
    thread: Optional[str] = None
    last_activity: datetime = Field(default_factory=utcnow)
    pending: Optional[CollectRecord] = None
    collect: Optional[CollectRecord] = None
    analysis: Optional[AnalysisRecord] = None
    insight: Optional[InsightRecord] = None
    report: Optional[ReportRecord] = None

    @classmethod
    def new(cls, tenant: str, channel: str, thread: Optional[str]) -> "WorkflowState":
        return cls(
            id=workflow_key(tenant, channel, thread),
            tenant=tenant,
            channel=channel,
            thread=thread,
        )

    def touch(self) -> None:
        self.last_activity = utcnow()

    def record(self, record: StageRecord) -> None:
        """Store the result of a completed stage. Results are never replaced."""
        field = _RECORD_FIELDS[record.kind]
        if getattr(self, field) is not None:
            raise ValueError(f"{record.kind} result already recorded for {self.id}")
        setattr(self, field, record)

    def advance(self) -> Stage:
        """Move to the next stage and return it."""
        self.stage = self.stage.next()
        return self.stage

    def records(self) -> list[StageRecord]:
        """Completed stage records in pipeline order."""
        found = [self.collect, self.analysis, self.insight, self.report]
        return [r for r in found if r is not None]

    def total_tokens(self) -> int:
        return sum(r.tokens for r in self.records())

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "WorkflowState":
        return cls.model_validate_json(data)


class ProcessedEvent(BaseModel):
    """Marker for an inbound event id that has already been accepted."""

    event_id: str
    first_seen: datetime = Field(default_factory=utcnow)
    event_type: Optional[str] = None
    tenant: Optional[str] = None

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "ProcessedEvent":
        return cls.model_validate_json(data)


class InboundEvent(BaseModel):
    """A routed user message ready to be handed to the orchestrator."""

    event_id: Optional[str] = None
    event_type: str
    tenant: str
    channel: str
    thread: Optional[str] = None
    user: Optional[str] = None
    text: str = ""
