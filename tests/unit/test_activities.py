"""Tests for the individual pipeline activities."""

import pytest

from cypherflow.activities import (
    AgentCypherGenerator,
    PipelineDeps,
    StaticCypherGenerator,
    build_generator_agent,
    build_pipeline_deps,
    build_validator_agent,
    check_cypher,
    create_audit_log,
    generate_cypher,
    validate_query,
)
from cypherflow.config import ModelConfig
from cypherflow.constants import STATIC_CYPHER_QUERY
from cypherflow.contracts import (
    GenerationResult,
    QueryInput,
    ValidationResult,
    ValidityCheck,
)
from cypherflow.errors import GenerationFailed


def _validation(query: str = "find movies with Keanu Reeves") -> ValidationResult:
    return ValidationResult(
        original_query=query,
        validity_check=ValidityCheck(is_valid_query=True, reason="ok"),
        is_valid=True,
    )


class FixedGenerator:
    def __init__(self, query: str):
        self.query = query

    async def generate(self, validation):
        return self.query


@pytest.mark.asyncio
async def test_validate_query_carries_verdict(make_verdict_model):
    deps = PipelineDeps(
        validator=build_validator_agent(make_verdict_model(False, "Not about movies"))
    )

    result = await validate_query(deps, QueryInput(query="what's the weather?"))

    assert result.original_query == "what's the weather?"
    assert result.validity_check == ValidityCheck(
        is_valid_query=False, reason="Not about movies"
    )
    assert result.is_valid is False


@pytest.mark.asyncio
async def test_validate_query_propagates_model_failure(make_failing_model):
    deps = PipelineDeps(validator=build_validator_agent(make_failing_model("quota exceeded")))

    with pytest.raises(RuntimeError, match="quota exceeded"):
        await validate_query(deps, QueryInput(query="find movies"))


@pytest.mark.asyncio
async def test_static_generator_ignores_question(deps):
    first = await generate_cypher(deps, _validation("find movies with Keanu Reeves"))
    second = await generate_cypher(deps, _validation("who directed The Matrix?"))

    assert first.cypher_query == STATIC_CYPHER_QUERY
    assert second.cypher_query == STATIC_CYPHER_QUERY
    assert second.original_query == "who directed The Matrix?"


@pytest.mark.asyncio
async def test_generate_cypher_rejects_unsafe_output(deps):
    deps.generator = FixedGenerator("MATCH (n) DETACH DELETE n")

    with pytest.raises(GenerationFailed, match="DELETE"):
        await generate_cypher(deps, _validation())


@pytest.mark.asyncio
async def test_agent_generator_uses_model_output():
    from pydantic_ai.models.test import TestModel

    generator = AgentCypherGenerator(
        build_generator_agent(TestModel(custom_output_text="MATCH (m:Movie) RETURN m.title;"))
    )

    assert await generator.generate(_validation()) == "MATCH (m:Movie) RETURN m.title;"


@pytest.mark.asyncio
async def test_create_audit_log_appends_audit_fields(deps):
    generated = _validation().evolve(GenerationResult, cypher_query=STATIC_CYPHER_QUERY)

    audited = await create_audit_log(deps, generated)

    assert audited.audit_id.startswith("audit_")
    assert audited.audit_id[len("audit_"):].isdigit()
    assert int(audited.audit_id[len("audit_"):]) == int(audited.audited_at.timestamp() * 1000)
    assert audited.status == "SUCCESS"
    assert audited.cypher_query == STATIC_CYPHER_QUERY


@pytest.mark.parametrize(
    "query",
    [
        "MATCH (p:Person) RETURN p.name",
        "  MATCH (m:Movie {title: 'Settlement'}) RETURN m  ",
        'MATCH (p:Person {name: "Keanu Reeves"})-[:ACTED_IN]->(m:Movie) RETURN m.title;',
    ],
)
def test_check_cypher_accepts_read_queries(query):
    assert check_cypher(query) == query.strip()


@pytest.mark.parametrize(
    "query,clause",
    [
        ("CREATE (n:Person {name: 'x'})", "CREATE"),
        ("MATCH (n) SET n.flag = true", "SET"),
        ("merge (n:Movie {title: 'x'})", "MERGE"),
        ("LOAD  CSV FROM 'file:///x.csv' AS row RETURN row", "LOAD CSV"),
        ("CALL db.labels()", "CALL"),
    ],
)
def test_check_cypher_rejects_write_clauses(query, clause):
    with pytest.raises(GenerationFailed, match=clause):
        check_cypher(query)


@pytest.mark.parametrize(
    "query",
    [
        'MATCH (m:Movie {title: "Merge Conflict"}) RETURN m',
        "MATCH (p:Person {name: 'Set Me Free'})-[:ACTED_IN]->(m) RETURN m.title",
        "MATCH (m:Movie) WHERE m.tagline = 'It\\'s a Create story' RETURN m",
        "MATCH (n:`Delete`) RETURN n",
        "MATCH (m:Movie) // call me maybe\nRETURN m",
        "MATCH (m:Movie) /* remove later */ RETURN m",
    ],
)
def test_check_cypher_ignores_keywords_in_literals_and_comments(query):
    assert check_cypher(query) == query.strip()


@pytest.mark.parametrize(
    "query,clause",
    [
        ("MATCH (m {title: 'Merge'}) SET m.seen = true", "SET"),
        ('MATCH (m {title: "x"}) DETACH DELETE m', "DELETE"),
        ("MATCH (m) // harmless\nDELETE m", "DELETE"),
    ],
)
def test_check_cypher_finds_clauses_next_to_literals(query, clause):
    with pytest.raises(GenerationFailed, match=clause):
        check_cypher(query)


@pytest.mark.parametrize("query", ["", "   ", None])
def test_check_cypher_rejects_empty(query):
    with pytest.raises(GenerationFailed, match="empty"):
        check_cypher(query)


def test_build_pipeline_deps_selects_generator(make_verdict_model):
    static = build_pipeline_deps(ModelConfig(), model=make_verdict_model())
    agent = build_pipeline_deps(ModelConfig(generator="agent"), model=make_verdict_model())

    assert isinstance(static.generator, StaticCypherGenerator)
    assert isinstance(agent.generator, AgentCypherGenerator)


def test_build_pipeline_deps_requires_api_key():
    with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
        build_pipeline_deps(ModelConfig())
