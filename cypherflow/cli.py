"""Command line interface for serving and managing cypherflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from .config import CypherflowConfig, load_config
from .contracts import QueryInput
from .runtime import WorkflowClient
from .service import build_services

T = TypeVar("T")

app = typer.Typer(help="CLI for cypherflow workflows")

workflow_app = typer.Typer(help="Commands for managing workflow instances")
app.add_typer(workflow_app, name="workflow")

_state: dict = {}


def _config() -> CypherflowConfig:
    return _state.setdefault("config", load_config())


def _with_client(action: Callable[[WorkflowClient], Awaitable[T]]) -> T:
    """Run ``action`` against a control-only client, then release its resources."""
    services = build_services(_config(), with_runtime=False)

    async def _run() -> T:
        try:
            return await action(services.client)
        finally:
            await services.shutdown()

    return asyncio.run(_run())


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML config file"
    ),
) -> None:
    """cypherflow CLI entry point."""
    loaded = load_config(str(config) if config else None)
    _state["config"] = loaded
    logging.basicConfig(
        level=getattr(logging, loaded.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def serve(
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """
    Run the HTTP control surface with an embedded workflow runtime.

    Example:
        cypherflow serve --port 50001
    """
    import uvicorn

    from .api import create_app

    config = _config()
    services = build_services(config)
    uvicorn.run(
        create_app(services),
        host=host or config.host,
        port=port or config.port,
        log_level=config.log_level.lower(),
    )


@app.command()
def worker(lifespan: Optional[float] = None) -> None:
    """
    Run a standalone worker that advances scheduled instances.

    Needs a shared transport and repository (redis + sqlite) to be useful
    next to a separate ``serve`` process.

    Example:
        cypherflow worker --lifespan 300
    """
    services = build_services(_config())

    async def _run() -> None:
        await services.transport.connect()
        try:
            await services.runtime.resume_pending()
            await services.runtime.start(lifespan=lifespan)
        finally:
            await services.shutdown()

    typer.echo("Starting workflow worker")
    asyncio.run(_run())


@workflow_app.command("run")
def workflow_run(query: str) -> None:
    """
    Run the pipeline in-process for QUERY and print the final record.

    Example:
        cypherflow workflow run "find movies with Keanu Reeves"
    """
    services = build_services(_config())

    async def _run():
        try:
            return await services.runtime.workflow.run(QueryInput(query=query))
        finally:
            await services.shutdown()

    final = asyncio.run(_run())
    typer.echo(json.dumps(final.to_payload(), indent=2))


@workflow_app.command("start")
def workflow_start(query: str) -> None:
    """Schedule a new instance for QUERY and print its id."""
    typer.echo(_with_client(lambda client: client.schedule_new_workflow({"query": query})))


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all workflow instances with their runtime status.

    Example:
        cypherflow workflow list
        # Output: abc123-def456-789    COMPLETED
    """
    workflows = _with_client(lambda client: client.list_workflows())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.instance_id}\t{wf.status.value}")


@workflow_app.command("status")
def workflow_status(instance_id: str) -> None:
    """Show status, checkpoint and output of one instance."""
    wf = _with_client(lambda client: client.get_workflow_state(instance_id))
    if wf is None:
        typer.secho("Workflow not found", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Instance: {wf.instance_id}")
    typer.echo(f"Status: {wf.status.value}")
    typer.echo(f"State: {wf.checkpoint.get('state')}")
    for step in wf.steps:
        typer.echo(f"  {step.step_name}: {step.status or 'running'}")
    if wf.output is not None:
        typer.echo(json.dumps(wf.output, indent=2))


@workflow_app.command("terminate")
def workflow_terminate(instance_id: str) -> None:
    """Request termination of a running instance."""
    try:
        _with_client(lambda client: client.terminate_workflow(instance_id))
    except Exception as e:
        typer.secho(f"Failed to terminate workflow: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo("Workflow terminated successfully")
