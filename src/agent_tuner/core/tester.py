"""Run one configuration against a dataset and aggregate similarity."""

import asyncio
import math
import time
import uuid
from typing import Any, List, Optional, Sequence, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from ..errors import ConfigurationError, SampleExecutionError
from ..execution import AgentRunner
from ..models import (
    ComparisonConfig,
    Configuration,
    DatasetSample,
    SampleResult,
    TestMetrics,
    TestResult,
)
from ..parsing import parse_output
from ..repositories import ConfigurationRepository
from .comparator import ComparisonOutcome, OutputComparator

TEMP_KEY_PREFIX = "temp_eval"


class TestOptions(BaseModel):
    """Per-test execution options."""

    __test__ = False

    comparison: Optional[ComparisonConfig] = None
    configuration_key: Optional[str] = None
    include_details: bool = False
    max_concurrent_samples: int = Field(default=1, ge=1)


def compute_metrics(sample_results: Sequence[SampleResult]) -> TestMetrics:
    """Aggregate per-sample similarity into score, error and RMSE."""
    count = len(sample_results)
    if count == 0:
        return TestMetrics(score=0.0, error=0.0, rmse=0.0, sample_count=0)

    total_similarity = sum(r.similarity for r in sample_results)
    squared_errors = sum(r.error ** 2 for r in sample_results)
    return TestMetrics(
        score=min(1.0, total_similarity / count),
        error=min(1.0, (count - total_similarity) / count),
        rmse=min(1.0, math.sqrt(squared_errors / count)),
        sample_count=count
    )


class ConfigurationTester:
    """Executes a configuration per sample and scores it with the comparator."""

    __test__ = False

    def __init__(
        self,
        runner: AgentRunner,
        configurations: ConfigurationRepository,
        comparator: OutputComparator
    ):
        """Initialize tester with execution and comparison collaborators."""
        self.runner = runner
        self.configurations = configurations
        self.comparator = comparator

    async def test(
        self,
        configuration: Configuration,
        dataset: Sequence[DatasetSample],
        options: Optional[TestOptions] = None
    ) -> TestResult:
        """Test configuration on dataset; sample failures score zero."""
        options = options or TestOptions()
        comparison = options.comparison or ComparisonConfig.infer(configuration)
        if comparison is None:
            raise ConfigurationError(
                f"No comparison method for configuration {configuration}; "
                "pass one explicitly or declare a numeric output schema"
            )

        logger.info(f"Testing {configuration} on {len(dataset)} samples ({comparison.method})")
        start_time = time.time()
        key, temporary = await self._acquire_key(configuration, options)

        try:
            semaphore = asyncio.Semaphore(options.max_concurrent_samples)
            tasks = [
                self._run_sample(index, sample, key, comparison, semaphore)
                for index, sample in enumerate(dataset)
            ]
            sample_results: List[SampleResult] = list(await asyncio.gather(*tasks))
        finally:
            if temporary:
                await self.configurations.delete_by_key(key)
                logger.debug(f"Removed temporary configuration {key}")

        metrics = compute_metrics(sample_results)
        duration_ms = (time.time() - start_time) * 1000
        logger.info(f"Test complete in {duration_ms:.0f}ms: {metrics}")

        return TestResult(
            configuration=configuration,
            metrics=metrics,
            duration_ms=duration_ms,
            sample_results=sample_results if options.include_details else None
        )

    async def _acquire_key(
        self,
        configuration: Configuration,
        options: TestOptions
    ) -> Tuple[str, bool]:
        """Return an execution key and whether it is temporary."""
        if options.configuration_key:
            return options.configuration_key, False

        key = f"{TEMP_KEY_PREFIX}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        await self.configurations.create(configuration.with_overrides(key=key))
        return key, True

    async def _run_sample(
        self,
        index: int,
        sample: DatasetSample,
        key: str,
        comparison: ComparisonConfig,
        semaphore: asyncio.Semaphore
    ) -> SampleResult:
        """Score one sample, recording failures as zero similarity."""
        expected = parse_output(sample.expected_output)

        async with semaphore:
            try:
                actual, outcome = await self._execute_sample(index, sample, key, expected, comparison)
            except SampleExecutionError as e:
                logger.error(f"Sample failed: {e}")
                return SampleResult(
                    input=sample.input,
                    expected=expected,
                    similarity=0.0,
                    reasoning=str(e),
                    failed=True
                )

        return SampleResult(
            input=sample.input,
            expected=expected,
            actual=actual,
            similarity=outcome.similarity,
            reasoning=outcome.reasoning
        )

    async def _execute_sample(
        self,
        index: int,
        sample: DatasetSample,
        key: str,
        expected: Any,
        comparison: ComparisonConfig
    ) -> Tuple[Any, ComparisonOutcome]:
        try:
            response = await self.runner.run(sample.input, key)
            actual = parse_output(response.output)
            outcome = await self.comparator.compare(actual, expected, comparison)
        except ConfigurationError:
            raise
        except Exception as e:
            raise SampleExecutionError(f"sample {index + 1}: {e}", sample_index=index) from e
        return actual, outcome
