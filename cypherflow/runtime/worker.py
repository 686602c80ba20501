"""Worker that drives workflow instances one checkpointed step at a time."""

from __future__ import annotations

import logging
from typing import Optional

from ..constants import WORKFLOW_TOPIC
from ..contracts import ActivitySpec, RoutingSlip, WorkflowMessage
from ..workflow import STEP_NAMES, Checkpoint, CypherQueryWorkflow, PipelineState
from .persistence import RuntimeStatus, WorkflowRepository
from .transports import BaseTransport

logger = logging.getLogger(__name__)


def _slip_from(checkpoint: Checkpoint) -> RoutingSlip:
    """Rebuild the routing slip for the step pending at ``checkpoint``."""
    pending = checkpoint.pending_step
    position = STEP_NAMES.index(pending) if pending else len(STEP_NAMES)
    return RoutingSlip(
        itinerary=[ActivitySpec(name=name) for name in STEP_NAMES[position:]],
        executed=[ActivitySpec(name=name) for name in STEP_NAMES[:position]],
    )


class WorkflowRuntime:
    """Consumes workflow messages and advances instances.

    Each message runs exactly one step. The resulting checkpoint is written to
    the repository before the next step is published, so a restarted worker
    continues from the last completed step instead of the beginning.

    Status and checkpoint writes are refused once an instance is terminal, so a
    termination that lands while a step runs is never overwritten.
    """

    def __init__(
        self,
        transport: BaseTransport,
        repository: WorkflowRepository,
        workflow: CypherQueryWorkflow,
        topic: str = WORKFLOW_TOPIC,
    ) -> None:
        self._transport = transport
        self._repository = repository
        self._workflow = workflow
        self._topic = topic

    @property
    def workflow(self) -> CypherQueryWorkflow:
        return self._workflow

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Process messages until ``lifespan`` seconds pass (forever if ``None``)."""
        logger.info(f"Workflow runtime listening on topic '{self._topic}'")
        async for delivery in self._transport.subscribe(
            self._topic, lifespan=lifespan
        ):
            message = delivery.message
            logger.debug(f"Received {delivery.step} for instance {message.instance_id}")
            try:
                await self.handle(message)
            except Exception as e:
                logger.exception(
                    f"Runtime failed to advance instance {message.instance_id}"
                )
                # refused when the instance is already terminal
                await self._repository.set_status(
                    message.instance_id,
                    RuntimeStatus.FAILED,
                    output={"processed": False, "error": str(e)},
                )
            await self._transport.ack(delivery)

    async def resume_pending(self) -> int:
        """Republish every instance that was scheduled or running.

        Returns:
            Number of instances resumed.
        """
        resumed = 0
        for instance in await self._repository.list_instances():
            if instance.status not in (RuntimeStatus.PENDING, RuntimeStatus.RUNNING):
                continue
            checkpoint = Checkpoint.model_validate(instance.checkpoint)
            if checkpoint.terminal:
                await self._complete(instance.instance_id, checkpoint)
                continue
            await self._transport.publish(
                self._topic,
                WorkflowMessage(
                    instance_id=instance.instance_id,
                    workflow_name=instance.workflow_name,
                    routing_slip=_slip_from(checkpoint),
                ),
            )
            resumed += 1
            logger.info(
                f"Resuming instance {instance.instance_id} at {checkpoint.pending_step}"
            )
        return resumed

    async def handle(self, message: WorkflowMessage) -> None:
        """Run the step named by ``message`` if it is still the pending one."""
        instance_id = message.instance_id
        instance = await self._repository.get_instance(instance_id)
        if instance is None:
            logger.warning(f"Dropping message for unknown instance {instance_id}")
            return
        if instance.status.is_terminal:
            logger.info(
                f"Instance {instance_id} is {instance.status.value}, skipping message"
            )
            return

        checkpoint = Checkpoint.model_validate(instance.checkpoint)
        if checkpoint.terminal:
            await self._complete(instance_id, checkpoint)
            return

        current = message.routing_slip.next_step()
        if current is None or current.name != checkpoint.pending_step:
            logger.info(
                f"Ignoring stale message for instance {instance_id}: "
                f"{current.name if current else None} != {checkpoint.pending_step}"
            )
            return

        if not await self._repository.set_status(instance_id, RuntimeStatus.RUNNING):
            logger.info(f"Instance {instance_id} was terminated, not starting {current.name}")
            return

        await self._repository.mark_step_started(instance_id, current.name)
        next_checkpoint = await self._workflow.step(checkpoint, instance_id=instance_id)
        failed = next_checkpoint.state is PipelineState.FAILED
        await self._repository.mark_step_completed(
            instance_id,
            current.name,
            status="failed" if failed else "completed",
            output={"error": next_checkpoint.error} if failed else next_checkpoint.record,
        )

        saved = await self._repository.save_checkpoint(
            instance_id, next_checkpoint.model_dump(mode="json")
        )
        if not saved:
            logger.info(
                f"Instance {instance_id} terminated during {current.name}, discarding result"
            )
            return
        if next_checkpoint.terminal:
            await self._complete(instance_id, next_checkpoint)
            return

        await self._transport.publish(self._topic, message.advanced())

    async def _complete(self, instance_id: str, checkpoint: Checkpoint) -> None:
        final = self._workflow.finalize(checkpoint)
        completed = await self._repository.set_status(
            instance_id, RuntimeStatus.COMPLETED, output=final.to_payload()
        )
        if not completed:
            logger.info(f"Instance {instance_id} was terminated before completion")
            return
        logger.info(
            f"Instance {instance_id} completed with processed={final.processed}"
        )
