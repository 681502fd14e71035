"""Routing of Slack Events API callbacks to pipeline requests."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from ..contracts import InboundEvent

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"<@[A-Z0-9]+>")

HELP_MESSAGE = (
    "Hi! 👋 I can help you analyze social media trends. Try asking me something like:\n"
    "• _Search for posts about Redis_\n"
    "• _What are people saying about Redis on social media?_\n"
    "• _Analyze recent Redis discussions_"
)


def strip_mentions(text: str) -> str:
    return MENTION_PATTERN.sub("", text or "").strip()


def _is_bot_message(event: Dict[str, Any]) -> bool:
    return any(key in event for key in ("bot_id", "bot_profile", "subtype"))


def route_event(payload: Dict[str, Any]) -> Optional[InboundEvent]:
    """Turn an ``event_callback`` payload into a pipeline request.

    Returns ``None`` for events that should be acknowledged and ignored.
    An ``app_mention`` with nothing but the mention yields an event with
    empty text; callers answer it with :data:`HELP_MESSAGE`.
    """
    event = payload.get("event") or {}
    event_type = event.get("type")
    tenant = event.get("team") or payload.get("team_id") or ""
    channel = event.get("channel")
    if not channel:
        logger.debug(f"Ignoring {event_type} event without channel")
        return None

    if event_type == "app_mention":
        logger.info(f"App mentioned in channel {channel} by user {event.get('user')}")
        return InboundEvent(
            event_id=payload.get("event_id"),
            event_type=event_type,
            tenant=tenant,
            channel=channel,
            # replies go to the thread the mention started or belongs to
            thread=event.get("thread_ts") or event.get("ts"),
            user=event.get("user"),
            text=strip_mentions(event.get("text", "")),
        )

    if event_type != "message":
        logger.debug(f"Ignoring unsupported event type {event_type}")
        return None

    if _is_bot_message(event):
        logger.debug("Ignoring bot message or message with subtype")
        return None

    user = event.get("user")
    if not user or not user.strip():
        logger.debug("Ignoring message with no user")
        return None

    text = (event.get("text") or "").strip()
    if not text:
        return None

    if event.get("channel_type") == "im":
        logger.info(f"Direct message from user {user}")
        thread = event.get("thread_ts") or event.get("ts")
    elif event.get("thread_ts"):
        logger.info(f"Thread reply in channel {channel} by user {user}")
        thread = event.get("thread_ts")
    else:
        return None

    return InboundEvent(
        event_id=payload.get("event_id"),
        event_type=event_type,
        tenant=tenant,
        channel=channel,
        thread=thread,
        user=user,
        text=text,
    )
