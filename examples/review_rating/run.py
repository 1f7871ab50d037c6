"""Minimal agent-tuner example: grid search, then optimize the best review-rating configuration."""

import asyncio

from agent_tuner import (
    ConfigurationEvaluator,
    ConfigurationTester,
    FlowOrchestrator,
    GridSearchEngine,
    LLMClient,
    OptimizationParams,
    OutputComparator,
)
from agent_tuner.config import Settings
from agent_tuner.core import ConfigurationProposer, PromptRewriter, TestOptions
from agent_tuner.execution import LLMAgentRunner
from agent_tuner.models import (
    ComparisonConfig,
    Configuration,
    ConfigurationVariations,
    DatasetFilter,
    DatasetSample,
    GridSearchParams,
)
from agent_tuner.repositories import (
    InMemoryConfigurationRepository,
    InMemoryDatasetRepository,
    InMemoryPromptRepository,
)

REVIEWS = [
    ("This product is amazing, I love it!", 9),
    ("Terrible experience, would not recommend.", 1),
    ("It works fine, nothing special.", 5),
    ("Good value, but shipping took forever.", 6),
    ("Broke after two days.", 2),
]

settings = Settings(model="gpt-4o-mini")

prompts = InMemoryPromptRepository({
    "rating_v1": (
        "Rate how positive the following review is on a scale from 0 to 10.\n\n"
        "Review: {input}\n\n"
        'Reply with JSON: {"score": <number>}'
    ),
})
configurations = InMemoryConfigurationRepository([
    Configuration(
        key="rating_v1",
        model="gpt-4o-mini",
        temperature=0.7,
        max_tokens=100,
        prompt_id="rating_v1",
        output_schema={"type": "object", "properties": {"score": {"type": "number"}}},
    ),
])
datasets = InMemoryDatasetRepository([
    DatasetSample(input=text, expected_output={"score": score}) for text, score in REVIEWS
])

llm_client = LLMClient(settings)
runner = LLMAgentRunner(llm_client, configurations, prompts)
tester = ConfigurationTester(runner, configurations, OutputComparator())
comparison = ComparisonConfig(method="numeric", field="score")

grid = GridSearchEngine(tester, configurations, datasets)
grid_result = asyncio.run(grid.run(GridSearchParams(
    base_configuration_key="rating_v1",
    variations=ConfigurationVariations(temperatures=[0.0, 0.3, 0.7]),
    comparison=comparison,
)))

best = grid_result.best_result
print(f"\nBest grid configuration: {best.configuration} ({best.metrics.score:.1%})")
print(f"Recommendation: {grid_result.recommendation.summary}")

flow = FlowOrchestrator(
    ConfigurationEvaluator(tester),
    proposer=ConfigurationProposer(PromptRewriter(llm_client, prompts)),
)
dataset = asyncio.run(datasets.find_many(DatasetFilter()))
result = asyncio.run(flow.run(
    best.configuration,
    dataset,
    params=OptimizationParams.from_profile("fast"),
    options=TestOptions(comparison=comparison),
))

print(f"\nStopped: {result.stopped_reason} after {result.iterations} iterations")
print(f"Best score: {result.best_score:.1%} with {result.best_configuration}")
