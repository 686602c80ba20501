"""Pipeline activities: the stateless units of work the workflow orchestrates."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Protocol

from pydantic_ai import Agent
from pydantic_ai.models import Model

from .config import ModelConfig
from .constants import AUDIT_ID_PREFIX, STATIC_CYPHER_QUERY, UNSAFE_CYPHER_CLAUSES
from .contracts import (
    AuditResult,
    GenerationResult,
    QueryInput,
    ValidationResult,
    ValidityCheck,
    utcnow,
)
from .errors import GenerationFailed

logger = logging.getLogger(__name__)

VALIDATOR_PROMPT = (
    "You are the gatekeeper of a graph database assistant. Decide whether the "
    "user's message is a question that can be answered by retrieving data from "
    "a Neo4j graph of people and movies. Report the verdict and a short reason."
)

GENERATOR_PROMPT = (
    "Translate the user's question into a single read-only Cypher query over a "
    "graph with (:Person {name})-[:ACTED_IN|DIRECTED]->(:Movie {title, released}). "
    "Return only the query text."
)

_UNSAFE_PATTERNS = [
    (clause, re.compile(r"\b" + r"\s+".join(clause.split()) + r"\b", re.IGNORECASE))
    for clause in UNSAFE_CYPHER_CLAUSES
]

# string literals, backtick identifiers and comments; their text is not Cypher
_INERT_TEXT = re.compile(
    r"'(?:[^'\\]|\\.)*'"
    r'|"(?:[^"\\]|\\.)*"'
    r"|`[^`]*`"
    r"|//[^\n]*"
    r"|/\*.*?\*/",
    re.DOTALL,
)


class CypherGenerator(Protocol):
    """Produces a Cypher query for a validated question."""

    async def generate(self, validation: ValidationResult) -> str: ...


class StaticCypherGenerator:
    """Returns the same literal query for every question."""

    def __init__(self, query: str = STATIC_CYPHER_QUERY) -> None:
        self.query = query

    async def generate(self, validation: ValidationResult) -> str:
        return self.query


class AgentCypherGenerator:
    """Asks a model to write the query."""

    def __init__(self, agent: Agent[None, str]) -> None:
        self.agent = agent

    async def generate(self, validation: ValidationResult) -> str:
        result = await self.agent.run(validation.original_query)
        return result.output


@dataclass
class PipelineDeps:
    """Collaborators the activities need, built once and passed in."""

    validator: Agent[None, ValidityCheck]
    generator: CypherGenerator = field(default_factory=StaticCypherGenerator)


def build_model(config: ModelConfig) -> Model:
    """Create the Gemini model described by ``config``."""
    if not config.api_key:
        raise RuntimeError("GEMINI_API_KEY is not configured")

    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    return GoogleModel(config.name, provider=GoogleProvider(api_key=config.api_key))


def build_validator_agent(model: Model | str) -> Agent[None, ValidityCheck]:
    return Agent(
        model,
        output_type=ValidityCheck,
        system_prompt=VALIDATOR_PROMPT,
        name="validate_query",
    )


def build_generator_agent(model: Model | str) -> Agent[None, str]:
    return Agent(
        model,
        output_type=str,
        system_prompt=GENERATOR_PROMPT,
        name="generate_cypher",
    )


def build_pipeline_deps(
    config: ModelConfig, model: Optional[Model | str] = None
) -> PipelineDeps:
    """Wire the validator and generator from configuration.

    ``model`` overrides the configured Gemini model, mainly for tests.
    """
    model = model or build_model(config)
    generator: CypherGenerator
    if config.generator == "agent":
        generator = AgentCypherGenerator(build_generator_agent(model))
    else:
        generator = StaticCypherGenerator()
    return PipelineDeps(validator=build_validator_agent(model), generator=generator)


def check_cypher(query: str) -> str:
    """Return the stripped query, or raise if it is empty or writes to the graph.

    Clause keywords inside quoted literals or comments are ignored, so a title
    such as ``"Merge Conflict"`` does not trip the check.
    """
    query = (query or "").strip()
    if not query:
        raise GenerationFailed("Generated Cypher query is empty")
    code = _INERT_TEXT.sub(" ", query)
    for clause, pattern in _UNSAFE_PATTERNS:
        if pattern.search(code):
            raise GenerationFailed(
                f"Generated Cypher query contains unsafe clause: {clause}"
            )
    return query


async def validate_query(deps: PipelineDeps, payload: QueryInput) -> ValidationResult:
    """Activity 1: ask the validator model whether the query is answerable."""
    logger.info("Activity validate_query started")
    logger.debug(f"validate_query input: {payload.model_dump_json()}")

    result = await deps.validator.run(payload.query)
    verdict = result.output

    validation = ValidationResult(
        original_query=payload.query,
        validity_check=verdict,
        is_valid=verdict.is_valid_query,
    )
    logger.info(
        f"validate_query verdict is_valid_query={verdict.is_valid_query} reason={verdict.reason!r}"
    )
    logger.debug(f"validate_query output: {validation.to_payload()}")
    return validation


async def generate_cypher(
    deps: PipelineDeps, validation: ValidationResult
) -> GenerationResult:
    """Activity 2: produce the Cypher query for the validated question."""
    logger.info("Activity generate_cypher started")
    logger.debug(f"generate_cypher input: {validation.to_payload()}")

    cypher = check_cypher(await deps.generator.generate(validation))
    generated = validation.evolve(GenerationResult, cypher_query=cypher)

    logger.debug(f"generate_cypher output: {generated.to_payload()}")
    return generated


async def create_audit_log(
    deps: PipelineDeps, generated: GenerationResult
) -> AuditResult:
    """Activity 3: stamp the run with an audit id and a success marker."""
    logger.info("Activity create_audit_log started")
    logger.debug(f"create_audit_log input: {generated.to_payload()}")

    audited_at = utcnow()
    audit_id = f"{AUDIT_ID_PREFIX}{int(audited_at.timestamp() * 1000)}"
    audited = generated.evolve(AuditResult, audit_id=audit_id, audited_at=audited_at)

    logger.info(f"Audit log created with ID: {audit_id}")
    logger.debug(f"create_audit_log output: {audited.to_payload()}")
    return audited
