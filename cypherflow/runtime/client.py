"""Client used to schedule, inspect and terminate workflow instances."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from ..constants import WORKFLOW_NAME, WORKFLOW_TOPIC
from ..contracts import QueryInput, RoutingSlip, WorkflowMessage
from ..errors import WorkflowNotFound
from ..workflow import STEP_NAMES, Checkpoint
from .persistence import RuntimeStatus, WorkflowInstance, WorkflowRepository
from .transports import BaseTransport

logger = logging.getLogger(__name__)


class WorkflowClient:
    """Service responsible for dispatching and managing workflow instances."""

    def __init__(
        self,
        transport: BaseTransport,
        repository: WorkflowRepository,
        workflow_name: str = WORKFLOW_NAME,
        topic: str = WORKFLOW_TOPIC,
    ) -> None:
        self._transport = transport
        self._repository = repository
        self._workflow_name = workflow_name
        self._topic = topic

    async def schedule_new_workflow(
        self, input: Dict[str, Any] | QueryInput, instance_id: Optional[str] = None
    ) -> str:
        """Persist a new instance and publish its first step.

        ``input`` is stored as given. A payload that is not a valid query is
        rejected by the validation step, so the instance still completes with a
        failure record.

        Returns:
            Instance identifier for tracking the workflow. Every call yields a
            new identifier unless ``instance_id`` is given.
        """
        if isinstance(input, QueryInput):
            record = input.model_dump(mode="json")
        else:
            record = dict(input)
        instance_id = instance_id or str(uuid.uuid4())
        checkpoint = Checkpoint.initial(record)

        await self._repository.create_instance(
            instance_id,
            self._workflow_name,
            record,
            checkpoint.model_dump(mode="json"),
        )
        message = WorkflowMessage(
            instance_id=instance_id,
            workflow_name=self._workflow_name,
            routing_slip=RoutingSlip.from_names(STEP_NAMES),
        )
        await self._transport.publish(self._topic, message)
        logger.info(f"Workflow scheduled with ID: {instance_id}")
        return instance_id

    async def get_workflow_state(self, instance_id: str) -> WorkflowInstance | None:
        """Return the instance, or ``None`` when the id is unknown."""
        return await self._repository.get_instance(instance_id)

    async def terminate_workflow(self, instance_id: str) -> None:
        """Request termination; takes effect at the next step boundary."""
        instance = await self._repository.get_instance(instance_id)
        if instance is None:
            raise WorkflowNotFound(instance_id)
        if instance.status.is_terminal:
            logger.info(
                f"Workflow {instance_id} already {instance.status.value}, nothing to terminate"
            )
            return
        if not await self._repository.set_status(instance_id, RuntimeStatus.TERMINATED):
            logger.info(f"Workflow {instance_id} finished before it could be terminated")
            return
        logger.info(f"Workflow {instance_id} terminated")

    async def list_workflows(self) -> list[WorkflowInstance]:
        return await self._repository.list_instances()

    async def wait_for_completion(
        self,
        instance_id: str,
        timeout: Optional[float] = None,
        poll_interval: float = 0.1,
    ) -> WorkflowInstance:
        """Poll until the instance reaches a terminal status.

        Raises:
            WorkflowNotFound: If the instance does not exist.
            TimeoutError: If ``timeout`` seconds pass first.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        while True:
            instance = await self._repository.get_instance(instance_id)
            if instance is None:
                raise WorkflowNotFound(instance_id)
            if instance.status.is_terminal:
                return instance
            if deadline is not None and loop.time() >= deadline:
                raise TimeoutError(
                    f"Workflow {instance_id} still {instance.status.value} after {timeout}s"
                )
            await asyncio.sleep(poll_interval)
