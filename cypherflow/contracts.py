"""Record and message contracts for the cypherflow pipeline."""

from __future__ import annotations

import inspect
import uuid
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import AUDIT_STATUS_SUCCESS

RecordT = TypeVar("RecordT", bound="PipelineRecord")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryInput(BaseModel):
    """Free-form question submitted by the HTTP caller."""

    model_config = ConfigDict(frozen=True)

    query: str


class ValidityCheck(BaseModel):
    """Structured verdict returned by the validator model."""

    model_config = ConfigDict(extra="forbid")

    is_valid_query: bool = Field(
        description=(
            "A boolean flag that is true if the user's question is a valid "
            "request for data retrieval, and false otherwise."
        )
    )
    reason: str = Field(
        description=(
            "A brief string explaining why the query is valid or invalid. This "
            "can be used for logging or for formulating a user-facing response."
        )
    )


class PipelineRecord(BaseModel):
    """Base class for the records threaded between pipeline steps.

    Each step's record subclasses the previous one, so every downstream record
    carries all upstream fields. A subclass that redeclares an inherited field
    is rejected when the class is created.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        own = set(inspect.get_annotations(cls))
        for base in cls.__mro__[1:]:
            if not (isinstance(base, type) and issubclass(base, PipelineRecord)):
                continue
            if base is PipelineRecord:
                break
            clashes = own & set(base.model_fields)
            if clashes:
                raise TypeError(
                    f"{cls.__name__} redefines fields of {base.__name__}: "
                    f"{', '.join(sorted(clashes))}"
                )

    def evolve(self, target: Type[RecordT], **fields: Any) -> RecordT:
        """Return a ``target`` record holding this record's fields plus ``fields``."""
        if not issubclass(target, type(self)):
            raise TypeError(
                f"{target.__name__} does not extend {type(self).__name__}"
            )
        return target.model_validate({**dict(self), **fields})

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True)


class ValidationResult(PipelineRecord):
    original_query: str
    validity_check: ValidityCheck
    is_valid: bool
    validated_at: datetime = Field(default_factory=utcnow)


class GenerationResult(ValidationResult):
    cypher_query: str
    generated_at: datetime = Field(default_factory=utcnow)


class AuditResult(GenerationResult):
    audit_id: str
    audited_at: datetime = Field(default_factory=utcnow)
    status: Literal["SUCCESS"] = AUDIT_STATUS_SUCCESS


class FinalRecord(BaseModel):
    """Outcome of one pipeline instance."""

    processed: bool
    error: Optional[str] = None
    result: Optional[AuditResult] = None

    @classmethod
    def succeeded(cls, result: AuditResult) -> "FinalRecord":
        return cls(processed=True, result=result)

    @classmethod
    def failed(cls, error: str) -> "FinalRecord":
        return cls(processed=False, error=error)

    def to_payload(self) -> dict[str, Any]:
        """Flatten into ``{processed, ...audit}`` or ``{processed, error}``."""
        if self.processed and self.result is not None:
            return {"processed": True, **self.result.to_payload()}
        return {"processed": False, "error": self.error}


class ActivitySpec(BaseModel):
    """Defines one step in a workflow."""

    name: str


class RoutingSlip(BaseModel):
    """Describes remaining and executed activities."""

    itinerary: List[ActivitySpec] = Field(default_factory=list)
    executed: List[ActivitySpec] = Field(default_factory=list)

    @classmethod
    def from_names(cls, names: List[str]) -> "RoutingSlip":
        return cls(itinerary=[ActivitySpec(name=name) for name in names])

    def next_step(self) -> Optional[ActivitySpec]:
        """Get the next step to execute."""
        return self.itinerary[0] if self.itinerary else None

    def mark_complete(self, step: ActivitySpec) -> None:
        """Mark a step as completed and remove from itinerary."""
        if self.itinerary and self.itinerary[0] == step:
            completed_step = self.itinerary.pop(0)
            self.executed.append(completed_step)

    def previous_step(self) -> Optional[ActivitySpec]:
        """Get the last executed step."""
        return self.executed[-1] if self.executed else None


class WorkflowMessage(BaseModel):
    """
    Envelope exchanged over the transport. Carries the instance id and the
    routing slip; the record data lives in the repository checkpoint.
    """

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    instance_id: str
    workflow_name: str
    timestamp: datetime = Field(default_factory=utcnow)
    routing_slip: RoutingSlip

    def to_json(self) -> str:
        """Serialize message to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "WorkflowMessage":
        """Deserialize message from JSON."""
        return cls.model_validate_json(data)

    def advanced(self) -> "WorkflowMessage":
        """Return a fresh message with the current step marked complete."""
        slip = self.routing_slip.model_copy(deep=True)
        current = slip.next_step()
        if current is not None:
            slip.mark_complete(current)
        return self.model_copy(
            update={
                "message_id": str(uuid.uuid4()),
                "timestamp": utcnow(),
                "routing_slip": slip,
            }
        )
