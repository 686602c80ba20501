"""The AI Cypher query generator workflow.

The workflow is an explicit state machine::

    STARTED -> VALIDATION_DONE -> GENERATION_DONE -> AUDIT_DONE -> COMPLETED
        \\              \\                 \\               \\
         `-------------`-----------------`---------------`--> FAILED

``step`` performs exactly one activity and returns the next ``Checkpoint``.
Whoever drives the workflow (``run`` in-process, or the runtime worker) is
responsible for persisting checkpoints between calls.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel, Field

from .activities import PipelineDeps, create_audit_log, generate_cypher, validate_query
from .constants import WORKFLOW_NAME
from .contracts import (
    AuditResult,
    FinalRecord,
    GenerationResult,
    QueryInput,
    ValidationResult,
)
from .errors import InvalidTransition, QueryRejected

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    STARTED = "started"
    VALIDATION_DONE = "validation_done"
    GENERATION_DONE = "generation_done"
    AUDIT_DONE = "audit_done"
    FAILED = "failed"
    COMPLETED = "completed"


TRANSITIONS: Dict[PipelineState, PipelineState] = {
    PipelineState.STARTED: PipelineState.VALIDATION_DONE,
    PipelineState.VALIDATION_DONE: PipelineState.GENERATION_DONE,
    PipelineState.GENERATION_DONE: PipelineState.AUDIT_DONE,
    PipelineState.AUDIT_DONE: PipelineState.COMPLETED,
}

TERMINAL_STATES = frozenset({PipelineState.FAILED, PipelineState.COMPLETED})

Activity = Callable[[PipelineDeps, Any], Awaitable[BaseModel]]

# state -> (activity name, activity, input record type)
STEPS: Dict[PipelineState, Tuple[str, Activity, Type[BaseModel]]] = {
    PipelineState.STARTED: ("validate_query", validate_query, QueryInput),
    PipelineState.VALIDATION_DONE: (
        "generate_cypher",
        generate_cypher,
        ValidationResult,
    ),
    PipelineState.GENERATION_DONE: (
        "create_audit_log",
        create_audit_log,
        GenerationResult,
    ),
}

STEP_NAMES = [name for name, _, _ in STEPS.values()]


def advance(current: PipelineState, target: PipelineState) -> PipelineState:
    """Return ``target`` if ``current -> target`` is allowed, else raise."""
    if current in TERMINAL_STATES:
        raise InvalidTransition(f"{current.value} is terminal")
    if target is PipelineState.FAILED or TRANSITIONS.get(current) is target:
        return target
    raise InvalidTransition(f"Cannot move from {current.value} to {target.value}")


class Checkpoint(BaseModel):
    """Durable progress of one instance: its state and the latest record."""

    state: PipelineState = PipelineState.STARTED
    record: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def initial(cls, payload: QueryInput | Dict[str, Any]) -> "Checkpoint":
        if isinstance(payload, QueryInput):
            payload = payload.model_dump(mode="json")
        return cls(record=dict(payload))

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def pending_step(self) -> Optional[str]:
        """Name of the activity the next ``step`` call will run."""
        entry = STEPS.get(self.state)
        return entry[0] if entry else None


class CypherQueryWorkflow:
    """Runs validate -> generate -> audit, short-circuiting on the first failure."""

    name = WORKFLOW_NAME

    def __init__(self, deps: PipelineDeps, enforce_validity: bool = True) -> None:
        self.deps = deps
        self.enforce_validity = enforce_validity

    async def step(
        self, checkpoint: Checkpoint, instance_id: Optional[str] = None
    ) -> Checkpoint:
        """Run the activity pending at ``checkpoint`` and return the next one."""
        if checkpoint.terminal or checkpoint.state not in STEPS:
            raise InvalidTransition(
                f"No activity pending in state {checkpoint.state.value}"
            )

        step_name, activity, input_type = STEPS[checkpoint.state]
        try:
            record = await activity(
                self.deps, input_type.model_validate(checkpoint.record)
            )
            self._check_verdict(record)
        except Exception as e:
            logger.error(
                f"Workflow failed for instance ID: {instance_id} in {step_name}: {e}"
            )
            # TODO: schedule a failure-notification compensating activity here
            # once a notification channel is configured.
            return Checkpoint(
                state=advance(checkpoint.state, PipelineState.FAILED),
                record=checkpoint.record,
                error=str(e),
            )

        state = advance(checkpoint.state, TRANSITIONS[checkpoint.state])
        if state is PipelineState.AUDIT_DONE:
            state = advance(state, PipelineState.COMPLETED)
        logger.info(f"Instance {instance_id}: {step_name} done, now {state.value}")
        return Checkpoint(state=state, record=record.to_payload())

    def _check_verdict(self, record: BaseModel) -> None:
        if (
            self.enforce_validity
            and isinstance(record, ValidationResult)
            and not record.is_valid
        ):
            raise QueryRejected(record.validity_check.reason)

    @staticmethod
    def finalize(checkpoint: Checkpoint) -> FinalRecord:
        """Turn a terminal checkpoint into the workflow's result."""
        if checkpoint.state is PipelineState.COMPLETED:
            return FinalRecord.succeeded(AuditResult.model_validate(checkpoint.record))
        if checkpoint.state is PipelineState.FAILED:
            return FinalRecord.failed(checkpoint.error or "")
        raise InvalidTransition(f"{checkpoint.state.value} is not terminal")

    async def run(
        self, payload: QueryInput, instance_id: Optional[str] = None
    ) -> FinalRecord:
        """Execute every step in order and return the final record."""
        logger.info(
            f"Starting workflow '{self.name}' with instance ID: {instance_id}"
        )
        logger.debug(f"Initial payload: {payload.model_dump_json()}")

        checkpoint = Checkpoint.initial(payload)
        while not checkpoint.terminal:
            checkpoint = await self.step(checkpoint, instance_id=instance_id)

        if checkpoint.state is PipelineState.COMPLETED:
            logger.info(f"Workflow finished successfully for instance ID: {instance_id}")
        return self.finalize(checkpoint)
