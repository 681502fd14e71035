"""Slack integration: delivery, inbound event routing and formatting."""

from .client import SlackClient
from .events import HELP_MESSAGE, route_event, strip_mentions
from .formatting import format_cost_summary, format_report

__all__ = [
    "HELP_MESSAGE",
    "SlackClient",
    "format_cost_summary",
    "format_report",
    "route_event",
    "strip_mentions",
]
