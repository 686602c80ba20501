"""Repository abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Protocol

from .models import RuntimeStatus, WorkflowInstance


class WorkflowRepository(Protocol):
    """Protocol for workflow state persistence backends."""

    async def create_instance(
        self,
        instance_id: str,
        workflow_name: str,
        input: dict,
        checkpoint: dict,
    ) -> None:
        """Persist a new PENDING instance."""

    async def save_checkpoint(self, instance_id: str, checkpoint: dict) -> bool:
        """Persist the latest checkpoint of a non-terminal instance.

        Returns ``False`` when the instance is missing or already terminal.
        """

    async def set_status(
        self,
        instance_id: str,
        status: RuntimeStatus,
        output: dict | None = None,
    ) -> bool:
        """Update the runtime status, and the output when given.

        A terminal status (COMPLETED, FAILED, TERMINATED) is never replaced;
        the call returns ``False`` instead of writing.
        """

    async def mark_step_started(self, instance_id: str, step_name: str) -> None:
        """Record start of a step."""

    async def mark_step_completed(
        self,
        instance_id: str,
        step_name: str,
        status: str,
        output: dict | None = None,
    ) -> None:
        """Record completion of a step."""

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        """Retrieve the workflow instance by id."""

    async def list_instances(self) -> list[WorkflowInstance]:
        """Return all persisted instances."""

    async def close(self) -> None:
        """Release any held resources."""
