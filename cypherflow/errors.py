"""Exception hierarchy for cypherflow."""

from __future__ import annotations


class CypherflowError(Exception):
    """Base class for all cypherflow errors."""


class ActivityFailed(CypherflowError):
    """Raised by a pipeline activity that cannot produce its record."""

    def __init__(self, message: str, activity: str | None = None) -> None:
        super().__init__(message)
        self.activity = activity


class QueryRejected(ActivityFailed):
    """The validator judged the query unfit for data retrieval."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Query rejected: {reason}", activity="validate_query")
        self.reason = reason


class GenerationFailed(ActivityFailed):
    """The generator returned an empty or unsafe Cypher query."""

    def __init__(self, message: str) -> None:
        super().__init__(message, activity="generate_cypher")


class InvalidTransition(CypherflowError):
    """A pipeline state change outside of the allowed transitions."""


class WorkflowNotFound(CypherflowError):
    """No workflow instance exists with the given id."""

    def __init__(self, instance_id: str) -> None:
        super().__init__(f"Workflow not found: {instance_id}")
        self.instance_id = instance_id
