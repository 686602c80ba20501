import asyncio
import logging

import pytest

from cypherflow.config import CypherflowConfig
from cypherflow.runtime import InMemoryTransport, InMemoryWorkflowRepository, WorkflowClient
from cypherflow.service import Services, build_services


class CrashingRuntime:
    async def resume_pending(self):
        return 0

    async def start(self, lifespan=None):
        raise RuntimeError("queue backend gone")


def _services(runtime) -> Services:
    transport = InMemoryTransport()
    repository = InMemoryWorkflowRepository()
    return Services(
        transport=transport,
        repository=repository,
        client=WorkflowClient(transport, repository),
        runtime=runtime,
    )


@pytest.mark.asyncio
async def test_runtime_crash_is_logged_when_it_happens(caplog):
    services = _services(CrashingRuntime())

    with caplog.at_level(logging.ERROR, logger="cypherflow.service"):
        await services.startup()
        for _ in range(5):
            await asyncio.sleep(0)

    assert "Workflow runtime stopped unexpectedly" in caplog.text
    assert "queue backend gone" in caplog.text

    await services.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_running_runtime_quietly(caplog, make_verdict_model):
    services = build_services(CypherflowConfig(), model=make_verdict_model())

    with caplog.at_level(logging.ERROR, logger="cypherflow.service"):
        await services.startup()
        await asyncio.sleep(0.05)
        await services.shutdown()

    assert "stopped unexpectedly" not in caplog.text


def test_build_services_without_runtime():
    services = build_services(CypherflowConfig(), with_runtime=False)
    assert services.runtime is None
    assert isinstance(services.transport, InMemoryTransport)
    assert isinstance(services.repository, InMemoryWorkflowRepository)
