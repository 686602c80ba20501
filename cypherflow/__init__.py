"""cypherflow: validate, generate and audit Cypher queries as durable workflows."""

__version__ = "0.1.0"

from .activities import PipelineDeps, StaticCypherGenerator, AgentCypherGenerator
from .config import CypherflowConfig, load_config
from .contracts import (
    AuditResult,
    FinalRecord,
    GenerationResult,
    QueryInput,
    ValidationResult,
    ValidityCheck,
)
from .workflow import Checkpoint, CypherQueryWorkflow, PipelineState

__all__ = [
    "AgentCypherGenerator",
    "AuditResult",
    "Checkpoint",
    "CypherQueryWorkflow",
    "CypherflowConfig",
    "FinalRecord",
    "GenerationResult",
    "PipelineDeps",
    "PipelineState",
    "QueryInput",
    "StaticCypherGenerator",
    "ValidationResult",
    "ValidityCheck",
    "load_config",
]
