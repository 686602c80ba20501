"""Construction and lifecycle of the runtime collaborators."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic_ai.models import Model

from .activities import build_pipeline_deps
from .config import CypherflowConfig, TransportConfig
from .runtime import (
    BaseTransport,
    InMemoryTransport,
    WorkflowClient,
    WorkflowRepository,
    WorkflowRuntime,
    get_repository,
)
from .workflow import CypherQueryWorkflow

logger = logging.getLogger(__name__)


def _log_runtime_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Workflow runtime stopped unexpectedly", exc_info=error)
    else:
        logger.warning("Workflow runtime stopped")


@dataclass
class Services:
    """Transport, repository, client and runtime sharing one lifecycle."""

    transport: BaseTransport
    repository: WorkflowRepository
    client: WorkflowClient
    runtime: Optional[WorkflowRuntime] = None
    _task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)

    async def startup(self) -> None:
        """Connect the transport and start the runtime in the background."""
        await self.transport.connect()
        if self.runtime is None:
            return
        resumed = await self.runtime.resume_pending()
        if resumed:
            logger.info(f"Resumed {resumed} pending workflow instance(s)")
        self._task = asyncio.create_task(self.runtime.start())
        self._task.add_done_callback(_log_runtime_exit)
        logger.info("Workflow runtime started successfully")

    async def shutdown(self) -> None:
        if self._task is not None:
            # a task that already ended was reported by _log_runtime_exit
            if not self._task.done():
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            self._task = None
        await self.transport.disconnect()
        await self.repository.close()
        logger.info("Workflow runtime stopped")


def build_transport(config: TransportConfig) -> BaseTransport:
    """Create the queue backend named by ``config.backend``."""
    if config.backend == "inmemory":
        return InMemoryTransport()
    if config.backend == "redis":
        from .runtime.transports.redis import RedisTransport

        return RedisTransport(
            host=config.redis.host,
            port=config.redis.port,
            db=config.redis.db,
            password=config.redis.password,
        )
    raise ValueError(f"Unsupported transport backend: {config.backend}")


def build_services(
    config: CypherflowConfig,
    model: Optional[Model | str] = None,
    with_runtime: bool = True,
) -> Services:
    """Wire every collaborator from ``config``.

    Args:
        config: Loaded configuration.
        model: Model override for the pipeline agents.
        with_runtime: Build the worker too; a control-only process leaves it out.
    """
    transport = build_transport(config.transport)
    repository = get_repository(config=config)
    client = WorkflowClient(transport, repository)
    runtime = None
    if with_runtime:
        workflow = CypherQueryWorkflow(
            build_pipeline_deps(config.model, model=model),
            enforce_validity=config.model.enforce_validity,
        )
        runtime = WorkflowRuntime(transport, repository, workflow)
    return Services(
        transport=transport, repository=repository, client=client, runtime=runtime
    )
