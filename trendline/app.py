"""HTTP surface for Slack Events API callbacks.

Endpoints:
- POST /slack/events - receive Slack event callbacks
- GET /health - liveness probe

Every callback is authenticated with the Slack signing secret, then
deduplicated by event id, then routed to the orchestrator. The response is
sent as soon as the pass has been queued; Slack retries callbacks that are
not acknowledged within a few seconds.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from fastapi import FastAPI, Header, Request, Response, status
from fastapi.responses import JSONResponse

from .config import TrendlineConfig, load_config
from .contracts import Stage
from .dedup import EventDeduplicator
from .orchestrator import PipelineOrchestrator
from .persistence import Store, get_store
from .recovery import RecoverySweeper
from .security import SignatureVerifier
from .slack import HELP_MESSAGE, SlackClient, route_event
from .stages import ChatMemory, build_stages
from .state import WorkflowStateManager
from .worker import WorkerPool

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 30.0


@dataclass
class Services:
    """Collaborators shared by the HTTP handlers and the lifespan hooks."""

    store: Store
    states: WorkflowStateManager
    deduplicator: EventDeduplicator
    verifier: SignatureVerifier
    slack: SlackClient
    pool: WorkerPool
    orchestrator: PipelineOrchestrator
    sweeper: RecoverySweeper


def build_services(
    config: TrendlineConfig,
    store: Optional[Store] = None,
    slack: Optional[SlackClient] = None,
    stages: Optional[Mapping[Stage, Any]] = None,
    collect_tools: Sequence[Any] = (),
) -> Services:
    """Wire the pipeline together from configuration.

    ``store``, ``slack`` and ``stages`` replace the configured defaults when
    given.
    """
    if not config.slack.signing_secret:
        raise ValueError("slack.signing_secret is required")

    store = store or get_store(config=config)
    states = WorkflowStateManager(store, ttl=config.store.workflow_ttl)
    slack = slack or SlackClient(config.slack)
    if stages is None:
        memory = ChatMemory(store, ttl=config.store.workflow_ttl)
        stages = build_stages(config.stages, memory, collect_tools)
    pool = WorkerPool()
    orchestrator = PipelineOrchestrator(
        states,
        stages,
        slack,
        pool=pool,
        max_message_length=config.slack.max_message_length,
    )
    return Services(
        store=store,
        states=states,
        deduplicator=EventDeduplicator(store, ttl=config.store.event_ttl),
        verifier=SignatureVerifier(config.slack.signing_secret),
        slack=slack,
        pool=pool,
        orchestrator=orchestrator,
        sweeper=RecoverySweeper(store, states, orchestrator),
    )


def create_app(
    config: Optional[TrendlineConfig] = None, services: Optional[Services] = None
) -> FastAPI:
    """Create the FastAPI application."""

    config = config or load_config()
    services = services or build_services(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.store.connect()
        await services.sweeper.sweep()
        yield
        await services.pool.drain(timeout=SHUTDOWN_GRACE_SECONDS)
        await services.slack.aclose()
        await services.store.close()

    app = FastAPI(title="trendline", lifespan=lifespan)
    app.state.services = services

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/slack/events")
    async def slack_events(
        request: Request,
        x_slack_request_timestamp: Optional[str] = Header(None),
        x_slack_signature: Optional[str] = Header(None),
    ):
        body = await request.body()

        if not services.verifier.verify(x_slack_request_timestamp, x_slack_signature, body):
            logger.warning("Invalid Slack signature, rejecting request")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Invalid signature"},
            )

        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Invalid JSON body"},
            )

        payload_type = payload.get("type")
        if payload_type == "url_verification":
            logger.info("Handling URL verification challenge")
            return {"challenge": payload.get("challenge")}

        if payload_type != "event_callback":
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Unknown event type"},
            )

        event = payload.get("event") or {}
        if not isinstance(event, dict):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Invalid event"},
            )
        event_id = payload.get("event_id")
        event_type = event.get("type")
        if not await services.deduplicator.is_new(event_id, event_type, payload.get("team_id")):
            logger.info(f"Skipping duplicate event: {event_id} (type: {event_type})")
            return Response(status_code=status.HTTP_200_OK)

        logger.info(f"Received Slack event: {event_type} (id: {event_id})")
        inbound = route_event(payload)
        if inbound is None:
            return Response(status_code=status.HTTP_200_OK)

        if not inbound.text:
            services.pool.submit(
                services.slack.post_message(
                    inbound.tenant, inbound.channel, HELP_MESSAGE, inbound.thread
                ),
                name=f"help:{inbound.channel}",
            )
        else:
            services.orchestrator.submit(
                inbound.tenant, inbound.channel, inbound.thread, inbound.text
            )
        return Response(status_code=status.HTTP_200_OK)

    return app
