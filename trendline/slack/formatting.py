"""Rendering of pipeline results as Slack ``mrkdwn`` text."""

from __future__ import annotations

from typing import Optional

from ..contracts import WorkflowState
from ..models import ReportResult

DEFAULT_TITLE = "Social Trends Report"
FOOTER = "_Generated automatically by trendline_"


def format_report(result: Optional[ReportResult]) -> str:
    """Render a report as paragraphs separated by blank lines.

    Paragraph boundaries matter: long reports are split on them for delivery.
    """
    if result is None or result.report is None:
        return f"*{DEFAULT_TITLE}*\n\n_No report data available._"

    report = result.report
    paragraphs = [f"*{report.title or DEFAULT_TITLE}*"]

    if result.timeframe:
        paragraphs.append(f"> *Timeframe:* {result.timeframe}")

    if report.summary and report.summary.strip():
        paragraphs.append(f"*Summary*\n{report.summary.strip()}")

    if not report.sections:
        paragraphs.append("_No sections available in this report._")

    for section in report.sections:
        paragraphs.append(f"*{section.heading}*\n{section.content.strip()}")
        if section.references:
            lines = ["*Sources & References*"]
            for ref in section.references:
                link = f"<{ref.url}|{ref.platform}>" if ref.platform else ref.url
                if ref.description and ref.description.strip():
                    link = f"{link} - {ref.description.strip()}"
                lines.append(f"• {link}")
            paragraphs.append("\n".join(lines))

    paragraphs.append(FOOTER)
    return "\n\n".join(paragraphs)


def format_cost_summary(state: WorkflowState) -> str:
    """One-line token usage summary across all completed stages."""
    per_stage = ", ".join(f"{r.kind}: {r.tokens}" for r in state.records())
    return f"💰 Total tokens used: {state.total_tokens()} ({per_stage})"
