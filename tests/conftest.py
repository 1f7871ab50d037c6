"""Shared fakes for agent-tuner tests."""

from typing import Any, Callable, Dict, List, Optional

import pytest

from agent_tuner.clients import BaseLLMClient
from agent_tuner.evaluation import EvaluationStrategy
from agent_tuner.execution import AgentOutput, AgentRunner
from agent_tuner.models import (
    Configuration,
    DatasetSample,
    DetailedEvaluation,
    DetailedFeedback,
    EvaluationResult,
)
from agent_tuner.repositories import (
    InMemoryConfigurationRepository,
    InMemoryDatasetRepository,
    InMemoryPromptRepository,
)

Responder = Callable[[Any, Configuration], Any]


class FakeAgentRunner(AgentRunner):
    """Answers with respond(input, configuration) for the configuration stored under the key."""

    def __init__(self, configurations: InMemoryConfigurationRepository, respond: Responder):
        self.configurations = configurations
        self.respond = respond
        self.calls: List[tuple] = []

    async def run(self, input: Any, configuration_key: str) -> AgentOutput:
        configuration = await self.configurations.find_by_key(configuration_key)
        self.calls.append((input, configuration_key))
        return AgentOutput(output=self.respond(input, configuration))


class FailingJudge(AgentRunner):
    """Judge whose every call raises."""

    def __init__(self):
        self.calls = 0

    async def run(self, input: Any, configuration_key: str) -> AgentOutput:
        self.calls += 1
        raise RuntimeError("judge unavailable")


class StaticJudge(AgentRunner):
    """Judge returning a fixed raw output."""

    def __init__(self, output: Any):
        self.output = output

    async def run(self, input: Any, configuration_key: str) -> AgentOutput:
        return AgentOutput(output=self.output)


class FakeLLMClient(BaseLLMClient):
    """Returns queued replies in order."""

    def __init__(self, replies: Optional[List[str]] = None):
        self.replies = list(replies or [])
        self.requests: List[Dict[str, Any]] = []

    async def achat_completion(self, messages, model=None, temperature=None, max_tokens=None, json_mode=False) -> str:
        self.requests.append({"messages": messages, "model": model, "temperature": temperature})
        return self.replies.pop(0) if self.replies else ""


class FixedStrategy(EvaluationStrategy):
    """Evaluation strategy that always returns the same score."""

    def __init__(self, name: str, score: float = 0.5, type: str = "custom", applicable: bool = False):
        self.name = name
        self.type = type
        self.score = score
        self.applicable = applicable

    def is_applicable(self, context) -> bool:
        return self.applicable

    async def evaluate(self, data, ground_truth, config) -> EvaluationResult:
        return EvaluationResult(score=self.score, metrics={"strategy": self.name})

    def generate_feedback(self, result) -> DetailedFeedback:
        return DetailedFeedback(summary=self.name)


class ScriptedEvaluator:
    """Stands in for ConfigurationEvaluator, returning scores in order."""

    def __init__(self, scores: List[float], feedback: Optional[DetailedFeedback] = None):
        self.scores = list(scores)
        self.feedback = feedback or DetailedFeedback(summary="scripted")
        self.evaluated: List[Configuration] = []
        self.resets = 0

    def reset_history(self) -> None:
        self.resets += 1

    async def evaluate(self, configuration, dataset, config=None, options=None) -> DetailedEvaluation:
        self.evaluated.append(configuration)
        score = self.scores.pop(0)
        if isinstance(score, Exception):
            raise score
        return DetailedEvaluation(
            result=EvaluationResult(score=score),
            strategy_name="numeric-score",
            feedback=self.feedback
        )

    async def evaluate_with_history(self, configuration, dataset, history, config=None, options=None) -> DetailedEvaluation:
        return await self.evaluate(configuration, dataset, config, options)


def make_configuration(**overrides: Any) -> Configuration:
    fields: Dict[str, Any] = {
        "key": "base",
        "model": "gpt-4o-mini",
        "temperature": 0.5,
        "max_tokens": 200,
        "prompt_id": "rating_v1",
        "output_schema": {"type": "object", "properties": {"score": {"type": "number"}}},
    }
    fields.update(overrides)
    return Configuration(**fields)


def make_samples(count: int, score: float = 7.0) -> List[DatasetSample]:
    return [
        DatasetSample(input={"text": f"review {i}"}, expected_output={"score": score})
        for i in range(count)
    ]


@pytest.fixture
def base_configuration() -> Configuration:
    return make_configuration()


@pytest.fixture
def configurations(base_configuration) -> InMemoryConfigurationRepository:
    return InMemoryConfigurationRepository([base_configuration])


@pytest.fixture
def prompts() -> InMemoryPromptRepository:
    return InMemoryPromptRepository({"rating_v1": "Rate this review from 0 to 10: {input}"})


@pytest.fixture
def samples() -> List[DatasetSample]:
    return make_samples(10)


@pytest.fixture
def datasets(samples) -> InMemoryDatasetRepository:
    return InMemoryDatasetRepository(samples)
