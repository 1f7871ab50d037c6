"""Evaluates a configuration end to end: test, score, analyze, explain."""

from typing import Any, List, Optional, Sequence

from loguru import logger

from ..core.tester import ConfigurationTester, TestOptions
from ..errors import ConfigurationError
from ..models import (
    Configuration,
    DatasetSample,
    DetailedEvaluation,
    EvaluationConfig,
    EvaluationContext,
    EvaluationResult,
)
from ..parsing import extract_number
from .base import EvaluationStrategy
from .feedback_synthesizer import FeedbackSynthesizer
from .pattern_analyzer import PatternAnalyzer
from .registry import EvaluationRegistry, create_default_registry


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def infer_data_type(data: Sequence[Any]) -> str:
    """Coarse label for the shape of agent outputs."""
    if not data:
        return "unknown"
    sample = data[0]
    if _is_number(sample):
        return "numeric"
    if isinstance(sample, str):
        return "text"
    if isinstance(sample, dict):
        if "score" in sample:
            return "scored"
        if "response" in sample:
            return "response"
        if "facts" in sample:
            return "factual"
    return "mixed"


def analyze_context(data: Sequence[Any], ground_truth: Sequence[Any]) -> EvaluationContext:
    """Describe outputs and ground truth so a strategy can be selected."""
    return EvaluationContext(
        has_numeric_ground_truth=any(
            not isinstance(gt, str) and extract_number(gt) is not None
            for gt in ground_truth
        ),
        has_textual_content=any(
            isinstance(d, str) or (isinstance(d, dict) and isinstance(d.get("response"), str))
            for d in data
        ),
        has_fact_requirements=any(isinstance(gt, dict) and gt.get("facts") for gt in ground_truth),
        data_type=infer_data_type(data),
        sample_size=len(data)
    )


class ConfigurationEvaluator:
    """Runs the tester, applies evaluation strategies and synthesizes feedback."""

    def __init__(
        self,
        tester: ConfigurationTester,
        registry: Optional[EvaluationRegistry] = None,
        pattern_analyzer: Optional[PatternAnalyzer] = None,
        synthesizer: Optional[FeedbackSynthesizer] = None
    ):
        """Initialize evaluator; the default registry carries the built-in strategies."""
        self.tester = tester
        self.registry = registry or create_default_registry()
        self.pattern_analyzer = pattern_analyzer or PatternAnalyzer()
        self.synthesizer = synthesizer or FeedbackSynthesizer()

    async def evaluate(
        self,
        configuration: Configuration,
        dataset: Sequence[DatasetSample],
        config: Optional[EvaluationConfig] = None,
        options: Optional[TestOptions] = None
    ) -> DetailedEvaluation:
        """Test configuration and explain the result with the chosen strategy."""
        config = config or EvaluationConfig()
        test_options = (options or TestOptions()).model_copy(update={"include_details": True})
        test_result = await self.tester.test(configuration, dataset, test_options)

        samples = test_result.sample_results or []
        data = [s.actual for s in samples]
        ground_truth = [s.expected for s in samples]
        context = analyze_context(data, ground_truth)

        if config.combine_strategies:
            combined = await self.registry.combine_strategies(
                config.combine_strategies,
                data,
                ground_truth,
                config,
                aggregation=config.aggregation,
                weights=config.weights
            )
            result = combined.result
            strategy_name = combined.strategy_name
        else:
            strategy = self._choose_strategy(config, context)
            result = await strategy.evaluate(data, ground_truth, config)
            strategy_name = strategy.name

        primary = self._primary_strategy(strategy_name)
        patterns = []
        if config.include_pattern_analysis:
            patterns = self.pattern_analyzer.analyze_patterns([result], primary)
        feedback = self.synthesizer.synthesize(result, primary, config.verbosity)

        logger.info(
            f"Evaluated {configuration.model} with {strategy_name}: "
            f"score={result.score:.3f}, patterns={len(patterns)}"
        )

        return DetailedEvaluation(
            result=result,
            strategy_name=strategy_name,
            feedback=feedback,
            patterns=patterns,
            test_result=test_result
        )

    async def evaluate_with_history(
        self,
        configuration: Configuration,
        dataset: Sequence[DatasetSample],
        history: List[DetailedEvaluation],
        config: Optional[EvaluationConfig] = None,
        options: Optional[TestOptions] = None
    ) -> DetailedEvaluation:
        """Evaluate and fold in pattern evolution and progress since earlier iterations."""
        evaluation = await self.evaluate(configuration, dataset, config, options)

        self.pattern_analyzer.track_pattern_evolution(evaluation.patterns, len(history) + 1)
        persistent = self.pattern_analyzer.persistent_patterns()

        primary = self._primary_strategy(evaluation.strategy_name)
        previous: List[EvaluationResult] = [h.result for h in history]
        iterative = self.synthesizer.generate_iterative_feedback(evaluation.result, previous, primary)
        pattern_feedback = self.synthesizer.generate_pattern_feedback(persistent)
        feedback = self.synthesizer.combine_feedback(
            {"current": iterative, "patterns": pattern_feedback},
            primary="current"
        )

        return evaluation.model_copy(update={
            "feedback": feedback,
            "patterns": evaluation.patterns + persistent,
        })

    def reset_history(self) -> None:
        """Forget pattern counts from earlier runs."""
        self.pattern_analyzer.clear_history()

    def _choose_strategy(self, config: EvaluationConfig, context: EvaluationContext) -> EvaluationStrategy:
        if config.strategy:
            strategy = self.registry.get(config.strategy)
            if strategy is None:
                raise ConfigurationError(f"Evaluation strategy '{config.strategy}' is not registered")
            return strategy
        if config.auto_select:
            return self.registry.select_strategy(context)
        default = self.registry.get_default()
        if default is None:
            raise ConfigurationError("No evaluation strategy available")
        return default

    def _primary_strategy(self, strategy_name: str) -> EvaluationStrategy:
        name = strategy_name.split("+")[0]
        strategy = self.registry.get(name)
        if strategy is None:
            raise ConfigurationError(f"Strategy '{name}' not found")
        return strategy
