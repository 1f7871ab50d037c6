"""Exhaustive grid search over configuration variations."""

import asyncio
import itertools
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from ..errors import BudgetExceededError, ConfigurationError
from ..models import (
    DEFAULT_MAX_TOKENS,
    Configuration,
    ConfigurationVariations,
    CostLimits,
    DatasetSample,
    GridSearchParams,
    GridSearchResult,
    GridSearchStatistics,
    ParameterImpact,
    ProgressSink,
    Recommendation,
    TestResult,
)
from ..pricing import CostEstimator, tokens_per_request
from ..repositories import ConfigurationRepository, DatasetRepository
from .events import EventEmitter
from .tester import ConfigurationTester, TestOptions

AVERAGE_TOKENS_PER_REQUEST = 500
DEPLOY_IMPROVEMENT_PCT = 10.0
MIN_RESULTS_FOR_COVERAGE = 10

PARAMETER_AXES: List[Tuple[str, Callable[[Configuration], Any]]] = [
    ("model", lambda c: c.model),
    ("temperature", lambda c: c.temperature),
    ("prompt_id", lambda c: c.prompt_id),
    ("max_tokens", lambda c: c.max_tokens),
]


def generate_configurations(
    base: Configuration,
    variations: ConfigurationVariations
) -> List[Configuration]:
    """Cartesian product of variation axes; empty axes keep the base value."""
    models = variations.models or [base.model]
    temperatures = variations.temperatures or [base.temperature]
    prompt_ids = variations.prompt_ids or [base.prompt_id]
    max_tokens = variations.max_tokens or [base.max_tokens or DEFAULT_MAX_TOKENS]

    return [
        base.with_overrides(
            key=None,
            model=model,
            temperature=temperature,
            prompt_id=prompt_id,
            max_tokens=tokens
        )
        for model, temperature, prompt_id, tokens in itertools.product(
            models, temperatures, prompt_ids, max_tokens
        )
    ]


def estimate_total_cost(configuration_count: int, sample_count: int, cost_per_token: float) -> float:
    """Aggregate estimate with a flat token count per request."""
    return configuration_count * sample_count * AVERAGE_TOKENS_PER_REQUEST * cost_per_token


def estimate_configuration_cost(model: str, sample_count: int, cost_per_token: float) -> float:
    """Per-configuration estimate from the flat per-model token table."""
    return sample_count * tokens_per_request(model) * cost_per_token


def is_baseline(configuration: Configuration, base: Configuration) -> bool:
    """Check whether configuration is the base combination."""
    return (
        configuration.model == base.model
        and configuration.temperature == base.temperature
        and configuration.prompt_id == base.prompt_id
        and configuration.max_tokens == (base.max_tokens or DEFAULT_MAX_TOKENS)
    )


def analyze_parameter_impact(results: List[TestResult]) -> List[ParameterImpact]:
    """Average score per axis value and report the best value per axis."""
    impacts: List[ParameterImpact] = []
    if not results:
        return impacts

    for parameter, getter in PARAMETER_AXES:
        grouped: Dict[str, List[float]] = {}
        raw_values: Dict[str, Any] = {}
        for result in results:
            value = getter(result.configuration)
            grouped.setdefault(str(value), []).append(result.metrics.score)
            raw_values.setdefault(str(value), value)

        averages = {value: sum(scores) / len(scores) for value, scores in grouped.items()}
        best_value = None
        best_score = -1.0
        for value, score in averages.items():
            if score > best_score:
                best_value, best_score = value, score

        impacts.append(ParameterImpact(
            parameter=parameter,
            best_value=raw_values[best_value],
            best_score=best_score,
            scores_by_value=averages
        ))
    return impacts


def compute_statistics(results: List[TestResult]) -> GridSearchStatistics:
    """Summarize scores, samples, durations and costs."""
    scores = [r.metrics.score for r in results]
    average = sum(scores) / len(scores) if scores else 0.0
    variance = sum((s - average) ** 2 for s in scores) / len(scores) if scores else 0.0
    return GridSearchStatistics(
        total_configurations=len(results),
        total_samples=sum(r.metrics.sample_count for r in results),
        total_duration_ms=sum(r.duration_ms for r in results),
        total_estimated_cost=sum(r.estimated_cost for r in results),
        average_score=average,
        score_variance=variance
    )


def build_recommendation(
    best: TestResult,
    baseline: Optional[TestResult],
    impacts: List[ParameterImpact],
    result_count: int
) -> Recommendation:
    """Compare best against baseline and derive next steps."""
    improvement_pct = 0.0
    if baseline is not None:
        baseline_score = baseline.metrics.score
        if baseline_score > 0:
            improvement_pct = (best.metrics.score - baseline_score) / baseline_score * 100
        elif best.metrics.score > 0:
            improvement_pct = 100.0

    next_steps: List[str] = []
    if improvement_pct > DEPLOY_IMPROVEMENT_PCT:
        action = "deploy"
        summary = (
            f"Best configuration improves on baseline by {improvement_pct:.1f}% "
            f"(score {best.metrics.score:.3f})"
        )
        next_steps.append("Deploy best configuration")
    elif improvement_pct > 0:
        action = "ab_test"
        summary = f"Best configuration shows {improvement_pct:.1f}% improvement over baseline"
        next_steps.append("Consider A/B testing best configuration against baseline")
    else:
        action = "already_optimal"
        if baseline is None:
            summary = f"Baseline not in grid; best configuration scored {best.metrics.score:.3f}"
        else:
            summary = "Baseline configuration is already optimal"
        next_steps.append("Keep current configuration")

    if result_count < MIN_RESULTS_FOR_COVERAGE:
        next_steps.append("Consider expanding search space")
    next_steps.append("Monitor performance on production data")

    parameter_insights = [
        f"Best {impact.parameter}: {impact.best_value} (avg score {impact.best_score:.3f})"
        for impact in impacts
        if len(impact.scores_by_value) > 1
    ]

    return Recommendation(
        action=action,
        summary=summary,
        improvement_pct=improvement_pct,
        parameter_insights=parameter_insights,
        next_steps=next_steps
    )


class GridSearchEngine:
    """Tests every configuration combination and ranks the results."""

    def __init__(
        self,
        tester: ConfigurationTester,
        configurations: ConfigurationRepository,
        datasets: DatasetRepository,
        cost_estimator: Optional[CostEstimator] = None
    ):
        """Initialize engine with tester, repositories and optional pricing."""
        self.tester = tester
        self.configurations = configurations
        self.datasets = datasets
        self.cost_estimator = cost_estimator

    async def run(
        self,
        params: GridSearchParams,
        on_progress: Optional[ProgressSink] = None
    ) -> GridSearchResult:
        """Run grid search and return ranked results with insights."""
        emitter = EventEmitter(on_progress, enabled=params.progress.enable_streaming)
        self._validate(params)

        base = await self.configurations.find_by_key(params.base_configuration_key)
        if base is None:
            raise ConfigurationError(
                f"Base configuration '{params.base_configuration_key}' not found"
            )

        dataset = await self.datasets.find_many(params.dataset)
        if not dataset:
            raise ConfigurationError("No test data available for the dataset filters")

        configurations = generate_configurations(base, params.variations)
        estimated_cost = estimate_total_cost(
            len(configurations), len(dataset), params.cost_limits.cost_per_token
        )
        logger.info(
            f"Grid search: {len(configurations)} configurations x {len(dataset)} samples, "
            f"estimated cost ${estimated_cost:.4f}"
        )

        if params.cost_limits.estimate_only:
            return GridSearchResult(estimated_cost=estimated_cost, estimate_only=True)

        self._check_budget(estimated_cost, params.cost_limits, emitter)

        emitter.emit(
            "started",
            f"Testing {len(configurations)} configurations",
            total=len(configurations),
            data={"estimated_cost": estimated_cost}
        )
        start_time = time.time()

        try:
            results = await self._execute(configurations, dataset, params, emitter)
        except Exception as e:
            emitter.emit("error", str(e))
            raise

        ranked = sorted(results, key=lambda r: r.metrics.score, reverse=True)
        baseline = next((r for r in ranked if is_baseline(r.configuration, base)), None)
        impacts = analyze_parameter_impact(ranked)
        statistics = compute_statistics(ranked)
        if self.cost_estimator is not None:
            models = list(dict.fromkeys(c.model for c in configurations))
            statistics.cost_breakdown = self.cost_estimator.estimate_grid_search(
                models,
                len(configurations),
                len(dataset),
                parallelism=params.concurrency.max_concurrent_tests
            )
        recommendation = build_recommendation(ranked[0], baseline, impacts, len(ranked))

        elapsed = time.time() - start_time
        logger.success(
            f"Grid search complete in {elapsed:.1f}s: best score "
            f"{ranked[0].metrics.score:.3f} ({ranked[0].configuration})"
        )
        emitter.emit(
            "completed",
            recommendation.summary,
            completed=len(ranked),
            total=len(configurations),
            best_score=ranked[0].metrics.score
        )

        return GridSearchResult(
            estimated_cost=estimated_cost,
            results=ranked,
            best_result=ranked[0],
            baseline_result=baseline,
            statistics=statistics,
            parameter_impact=impacts,
            recommendation=recommendation
        )

    def _validate(self, params: GridSearchParams) -> None:
        """Reject missing base key, empty variations and non-positive concurrency."""
        if not params.base_configuration_key:
            raise ConfigurationError("Base configuration key is required")
        if params.variations.is_empty():
            raise ConfigurationError("At least one variation axis must be non-empty")
        if params.concurrency.max_concurrent_tests < 1:
            raise ConfigurationError("max_concurrent_tests must be at least 1")
        if params.concurrency.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")

    def _check_budget(
        self,
        estimated_cost: float,
        limits: CostLimits,
        emitter: EventEmitter
    ) -> None:
        """Enforce the cost ceiling before any test runs."""
        if limits.max_estimated_cost is None or estimated_cost <= limits.max_estimated_cost:
            return
        if limits.enforce_hard_limit:
            raise BudgetExceededError(estimated_cost, limits.max_estimated_cost)

        message = (
            f"Estimated cost ${estimated_cost:.4f} exceeds soft limit "
            f"${limits.max_estimated_cost:.4f}; continuing"
        )
        logger.warning(message)
        emitter.emit("progress", message, data={"estimated_cost": estimated_cost})

    async def _execute(
        self,
        configurations: List[Configuration],
        dataset: List[DatasetSample],
        params: GridSearchParams,
        emitter: EventEmitter
    ) -> List[TestResult]:
        """Run configurations in batches with bounded in-flight tests."""
        total = len(configurations)
        batch_size = params.concurrency.batch_size
        report_interval = params.progress.report_interval
        semaphore = asyncio.Semaphore(params.concurrency.max_concurrent_tests)
        options = TestOptions(
            comparison=params.comparison,
            max_concurrent_samples=params.max_concurrent_samples
        )

        results: List[TestResult] = []
        best_score = 0.0
        next_report = report_interval

        for start in range(0, total, batch_size):
            batch = configurations[start:start + batch_size]
            tasks = [
                asyncio.ensure_future(
                    self._test_one(configuration, dataset, options, semaphore, params.cost_limits)
                )
                for configuration in batch
            ]
            batch_results = await asyncio.gather(*tasks)
            results.extend(batch_results)
            best_score = max([best_score] + [r.metrics.score for r in batch_results])

            logger.info(f"Completed {len(results)}/{total} configurations, best score {best_score:.3f}")
            if len(results) >= next_report or len(results) == total:
                emitter.emit(
                    "progress",
                    f"{len(results)}/{total} configurations tested",
                    completed=len(results),
                    total=total,
                    best_score=best_score
                )
                next_report = (len(results) // report_interval + 1) * report_interval

        return results

    async def _test_one(
        self,
        configuration: Configuration,
        dataset: List[DatasetSample],
        options: TestOptions,
        semaphore: asyncio.Semaphore,
        limits: CostLimits
    ) -> TestResult:
        async with semaphore:
            result = await self.tester.test(configuration, dataset, options)
        cost = estimate_configuration_cost(
            configuration.model, result.metrics.sample_count, limits.cost_per_token
        )
        return result.model_copy(update={"estimated_cost": cost})
