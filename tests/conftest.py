from __future__ import annotations

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, ToolCallPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from cypherflow.activities import PipelineDeps, build_validator_agent
from cypherflow.runtime import InMemoryTransport, InMemoryWorkflowRepository
from cypherflow.workflow import CypherQueryWorkflow


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "CYPHERFLOW_CONFIG",
        "CYPHERFLOW_DATABASE_URL",
        "CYPHERFLOW_TRANSPORT",
        "DATABASE_URL",
        "PORT",
        "GEMINI_API_KEY",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def verdict_model(is_valid: bool = True, reason: str = "Asks for graph data") -> TestModel:
    return TestModel(custom_output_args={"is_valid_query": is_valid, "reason": reason})


class CountingVerdict:
    """Verdict-returning FunctionModel that counts how often it is called."""

    def __init__(self, is_valid: bool = True, reason: str = "Asks for graph data"):
        self.calls = 0
        self.is_valid = is_valid
        self.reason = reason
        self.model = FunctionModel(self._respond)

    def _respond(self, messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        self.calls += 1
        return ModelResponse(
            parts=[
                ToolCallPart(
                    info.output_tools[0].name,
                    {"is_valid_query": self.is_valid, "reason": self.reason},
                )
            ]
        )


def failing_model(message: str = "Gemini service unavailable") -> FunctionModel:
    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        raise RuntimeError(message)

    return FunctionModel(respond)


@pytest.fixture
def deps() -> PipelineDeps:
    return PipelineDeps(validator=build_validator_agent(verdict_model()))


@pytest.fixture
def workflow(deps) -> CypherQueryWorkflow:
    return CypherQueryWorkflow(deps)


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport(poll_interval=0.01)


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def make_verdict_model():
    return verdict_model


@pytest.fixture
def make_counting_model():
    return CountingVerdict


@pytest.fixture
def make_failing_model():
    return failing_model
