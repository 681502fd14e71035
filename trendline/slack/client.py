"""Slack Web API client used to deliver progress notices and reports."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import SlackConfig

logger = logging.getLogger(__name__)


class SlackClient:
    """Posts messages through ``chat.postMessage``.

    The bot token is chosen per workspace from ``team_tokens`` and falls back
    to the default ``bot_token``. Delivery failures are logged and reported
    as ``None`` rather than raised.
    """

    def __init__(
        self, config: SlackConfig, client: Optional[httpx.AsyncClient] = None
    ) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.api_base_url, timeout=config.timeout
        )

    def _token(self, tenant: Optional[str]) -> Optional[str]:
        if tenant and tenant in self._config.team_tokens:
            return self._config.team_tokens[tenant]
        return self._config.bot_token or None

    async def post_message(
        self,
        tenant: Optional[str],
        channel: str,
        text: str,
        thread: Optional[str] = None,
        markdown: bool = False,
    ) -> Optional[str]:
        """Send ``text`` to ``channel``, optionally inside ``thread``.

        Returns:
            The Slack timestamp of the posted message, or ``None`` on failure.
        """
        token = self._token(tenant)
        if token is None:
            logger.error(f"No bot token found for team: {tenant}")
            return None

        payload: Dict[str, Any] = {"channel": channel, "text": text}
        if markdown:
            payload["mrkdwn"] = True
        if thread:
            payload["thread_ts"] = thread

        try:
            response = await self._client.post(
                "/chat.postMessage",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error sending message to Slack channel {channel}: {e}")
            return None

        if not body.get("ok"):
            logger.error(f"Failed to send message to channel {channel}: {body.get('error')}")
            return None

        logger.info(f"Message sent to channel {channel} (thread: {thread or 'none'})")
        return body.get("ts")

    async def aclose(self) -> None:
        await self._client.aclose()
