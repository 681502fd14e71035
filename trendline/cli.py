"""Command line interface for running the trendline service."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

import typer

from trendline.config import load_config
from trendline.orchestrator import PipelineOrchestrator
from trendline.persistence import get_store
from trendline.recovery import RecoverySweeper
from trendline.slack import SlackClient
from trendline.stages import ChatMemory, build_stages
from trendline.state import WorkflowStateManager

app = typer.Typer(help="CLI for the trendline Slack pipeline")

workflow_app = typer.Typer(help="Commands for inspecting and recovering workflows")

app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to the YAML configuration file"
    ),
) -> None:
    """Trendline CLI entry point."""
    if config_path:
        os.environ["TRENDLINE_CONFIG"] = config_path
    logging.basicConfig(
        level=load_config().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("serve")
def serve(
    host: str = "0.0.0.0",
    port: int = 8080,
) -> None:
    """
    Run the HTTP service receiving Slack event callbacks.

    Interrupted workflows are recovered once the service is up.

    Example:
        trendline serve --port 3000
    """
    import uvicorn

    from trendline.app import create_app

    uvicorn.run(create_app(load_config()), host=host, port=port)


@workflow_app.command("list")
def workflow_list(
    running: bool = typer.Option(False, "--running", help="Only show running workflows"),
) -> None:
    """
    List stored workflows with their current stage.

    Example:
        trendline workflow list --running
        # Output: T1:C1:1700000000.000100    analyze    running
    """

    async def _list():
        store = get_store()
        await store.connect()
        try:
            if running:
                return await store.find_running()
            return await store.list_workflows()
        finally:
            await store.close()

    workflows = asyncio.run(_list())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        flag = "running" if wf.running else "idle"
        typer.echo(f"{wf.id}\t{wf.stage.value}\t{flag}")


@workflow_app.command("recover")
def workflow_recover() -> None:
    """
    Resume every workflow left running by a stopped process and wait for them.

    Example:
        trendline workflow recover
    """

    async def _recover() -> int:
        config = load_config()
        store = get_store(config=config)
        await store.connect()
        slack = SlackClient(config.slack)
        try:
            states = WorkflowStateManager(store, ttl=config.store.workflow_ttl)
            memory = ChatMemory(store, ttl=config.store.workflow_ttl)
            orchestrator = PipelineOrchestrator(
                states,
                build_stages(config.stages, memory),
                slack,
                max_message_length=config.slack.max_message_length,
            )
            tasks = await RecoverySweeper(store, states, orchestrator).sweep()
            if tasks:
                await asyncio.gather(*tasks)
            return len(tasks)
        finally:
            await slack.aclose()
            await store.close()

    resumed = asyncio.run(_recover())
    typer.echo(f"Resumed {resumed} workflow(s)")
