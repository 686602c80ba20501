"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict

from ...contracts import utcnow
from .models import RuntimeStatus, StepRecord, WorkflowInstance
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, WorkflowInstance] = {}
        self._step_id = 0

    # ------------------------------------------------------------------
    async def create_instance(
        self,
        instance_id: str,
        workflow_name: str,
        input: dict,
        checkpoint: dict,
    ) -> None:
        self._instances[instance_id] = WorkflowInstance(
            instance_id=instance_id,
            workflow_name=workflow_name,
            input=input,
            checkpoint=checkpoint,
        )

    async def save_checkpoint(self, instance_id: str, checkpoint: dict) -> bool:
        wf = self._instances.get(instance_id)
        if not wf or wf.status.is_terminal:
            return False
        wf.checkpoint = checkpoint
        wf.updated_at = utcnow()
        return True

    async def set_status(
        self,
        instance_id: str,
        status: RuntimeStatus,
        output: dict | None = None,
    ) -> bool:
        wf = self._instances.get(instance_id)
        if not wf or wf.status.is_terminal:
            return False
        wf.status = status
        if output is not None:
            wf.output = output
        wf.updated_at = utcnow()
        return True

    async def mark_step_started(self, instance_id: str, step_name: str) -> None:
        wf = self._instances.get(instance_id)
        if not wf:
            return
        # a step left open by an interrupted run is reused
        for step in wf.steps:
            if step.step_name == step_name and step.completed_at is None:
                return
        self._step_id += 1
        wf.steps.append(
            StepRecord(
                id=self._step_id,
                instance_id=instance_id,
                step_name=step_name,
                started_at=utcnow(),
            )
        )

    async def mark_step_completed(
        self,
        instance_id: str,
        step_name: str,
        status: str,
        output: dict | None = None,
    ) -> None:
        wf = self._instances.get(instance_id)
        if not wf:
            return
        for step in wf.steps:
            if step.step_name == step_name and step.completed_at is None:
                step.completed_at = utcnow()
                step.status = status
                step.output = output or {}
                break

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        wf = self._instances.get(instance_id)
        return wf.model_copy(deep=True) if wf else None

    async def list_instances(self) -> list[WorkflowInstance]:
        return [wf.model_copy(deep=True) for wf in self._instances.values()]

    async def close(self) -> None:
        pass
