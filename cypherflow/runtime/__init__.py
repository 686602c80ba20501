"""Durable runtime: schedules instances and checkpoints every step."""

from .client import WorkflowClient
from .persistence import (
    InMemoryWorkflowRepository,
    RuntimeStatus,
    SQLiteWorkflowRepository,
    StepRecord,
    WorkflowInstance,
    WorkflowRepository,
    get_repository,
)
from .transports import BaseTransport, Delivery, InMemoryTransport
from .worker import WorkflowRuntime

__all__ = [
    "BaseTransport",
    "Delivery",
    "InMemoryTransport",
    "InMemoryWorkflowRepository",
    "RuntimeStatus",
    "SQLiteWorkflowRepository",
    "StepRecord",
    "WorkflowClient",
    "WorkflowInstance",
    "WorkflowRepository",
    "WorkflowRuntime",
    "get_repository",
]
