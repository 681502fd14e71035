"""Tests for the Slack Web API client."""

import json

import httpx
import pytest

from trendline.config import SlackConfig
from trendline.slack import SlackClient


def _client(handler, **config):
    config.setdefault("bot_token", "xoxb-default")
    settings = SlackConfig(**config)
    http = httpx.AsyncClient(
        base_url=settings.api_base_url, transport=httpx.MockTransport(handler)
    )
    return SlackClient(settings, client=http)


@pytest.mark.asyncio
async def test_post_message_in_thread():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True, "ts": "1700.5"})

    slack = _client(handler)
    ts = await slack.post_message("T1", "C1", "*hello*", thread="1700.1", markdown=True)

    assert ts == "1700.5"
    request = requests[0]
    assert request.url.path == "/api/chat.postMessage"
    assert request.headers["Authorization"] == "Bearer xoxb-default"
    assert json.loads(request.content) == {
        "channel": "C1",
        "text": "*hello*",
        "mrkdwn": True,
        "thread_ts": "1700.1",
    }
    await slack.aclose()


@pytest.mark.asyncio
async def test_team_token_takes_precedence():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["Authorization"])
        return httpx.Response(200, json={"ok": True, "ts": "1"})

    slack = _client(handler, team_tokens={"T2": "xoxb-team-two"})
    await slack.post_message("T2", "C1", "hi")
    await slack.post_message("T1", "C1", "hi")

    assert seen == ["Bearer xoxb-team-two", "Bearer xoxb-default"]


@pytest.mark.asyncio
async def test_api_error_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": False, "error": "channel_not_found"})

    slack = _client(handler)
    assert await slack.post_message("T1", "C404", "hi") is None


@pytest.mark.asyncio
async def test_transport_failure_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    slack = _client(handler)
    assert await slack.post_message("T1", "C1", "hi") is None


@pytest.mark.asyncio
async def test_http_error_status_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    slack = _client(handler)
    assert await slack.post_message("T1", "C1", "hi") is None


@pytest.mark.asyncio
async def test_missing_token_skips_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"ok": True})

    slack = _client(handler, bot_token=None)
    assert await slack.post_message("T1", "C1", "hi") is None
    assert calls == []
