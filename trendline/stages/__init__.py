"""Pipeline stage collaborators."""

from .agents import (
    AnalyzeStage,
    CollectStage,
    InsightStage,
    ReportStage,
    build_agent,
    build_stages,
)
from .base import AgentStage, DownstreamStage, StageOutput
from .memory import ChatMemory

__all__ = [
    "AgentStage",
    "AnalyzeStage",
    "ChatMemory",
    "CollectStage",
    "DownstreamStage",
    "InsightStage",
    "ReportStage",
    "StageOutput",
    "build_agent",
    "build_stages",
]
