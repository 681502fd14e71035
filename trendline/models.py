"""Structured outputs produced by the pipeline stage agents."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class FinishReason(str, Enum):
    COMPLETED = "COMPLETED"
    NEEDS_MORE_INPUT = "NEEDS_MORE_INPUT"
    ERROR = "ERROR"


class FetchedPost(BaseModel):
    """A single social media post returned by the collector."""

    platform: str = "bluesky"
    author: Optional[str] = None
    text: str = ""
    url: Optional[str] = None
    created_at: Optional[str] = None
    likes: int = 0
    reposts: int = 0
    replies: int = 0


class CollectResult(BaseModel):
    """Output of the collector stage.

    ``NEEDS_MORE_INPUT`` means the agent could not build a search from the
    request and ``next_prompt`` holds the question to put to the user.
    """

    finish_reason: FinishReason
    next_prompt: Optional[str] = None
    search_parameters: Dict[str, Any] = Field(default_factory=dict)
    posts: List[FetchedPost] = Field(default_factory=list)
    data_quality_notes: Optional[str] = None


class TopicSource(BaseModel):
    platform: Optional[str] = None
    url: Optional[str] = None


class TopicResult(BaseModel):
    topic: str
    trending: bool = False
    metrics: Dict[str, float] = Field(default_factory=dict)
    sources: List[TopicSource] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Output of the analysis stage: topics clustered from collected posts."""

    finish_reason: FinishReason
    timeframe: Optional[str] = None
    topics: List[TopicResult] = Field(default_factory=list)


class Insights(BaseModel):
    summary: str = ""
    key_findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class InsightResult(BaseModel):
    finish_reason: FinishReason
    timeframe: Optional[str] = None
    insights: Optional[Insights] = None


class Reference(BaseModel):
    url: str
    platform: Optional[str] = None
    description: Optional[str] = None


class ReportSection(BaseModel):
    heading: str
    content: str = ""
    references: List[Reference] = Field(default_factory=list)


class Report(BaseModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    sections: List[ReportSection] = Field(default_factory=list)


class ReportResult(BaseModel):
    finish_reason: FinishReason
    timeframe: Optional[str] = None
    report: Optional[Report] = None
