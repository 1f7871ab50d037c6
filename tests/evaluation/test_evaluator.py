"""Tests for ConfigurationEvaluator."""

import asyncio

import pytest

from agent_tuner.core import ConfigurationTester, OutputComparator
from agent_tuner.errors import ConfigurationError
from agent_tuner.evaluation import ConfigurationEvaluator, analyze_context
from agent_tuner.models import EvaluationConfig

from conftest import FakeAgentRunner


def make_evaluator(configurations, answer):
    runner = FakeAgentRunner(configurations, lambda i, c: answer)
    return ConfigurationEvaluator(ConfigurationTester(runner, configurations, OutputComparator()))


class TestAnalyzeContext:
    """analyze_context"""

    def test_numeric(self):
        context = analyze_context([7, 5], [{"score": 7}, {"score": 5}])
        assert context.has_numeric_ground_truth
        assert not context.has_textual_content
        assert context.data_type == "numeric"
        assert context.sample_size == 2

    def test_textual_with_facts(self):
        context = analyze_context(["the date is Monday"], [{"facts": ["date"]}])
        assert not context.has_numeric_ground_truth
        assert context.has_textual_content
        assert context.has_fact_requirements
        assert context.data_type == "text"

    def test_string_ground_truth_is_not_numeric(self):
        assert not analyze_context(["7"], ["7"]).has_numeric_ground_truth


class TestConfigurationEvaluator:
    """evaluate / evaluate_with_history"""

    def test_perfect_numeric(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "7")
        evaluation = asyncio.run(evaluator.evaluate(base_configuration, samples))

        assert evaluation.strategy_name == "numeric-score"
        assert evaluation.result.score == 1.0
        assert evaluation.patterns == []
        assert evaluation.feedback.summary == "Numeric evaluation score: 100.0%"
        assert len(evaluation.test_result.sample_results) == 10
        assert configurations.keys() == ["base"]

    def test_underestimation(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "5")
        evaluation = asyncio.run(evaluator.evaluate(
            base_configuration, samples, EvaluationConfig(score_scale=10)
        ))

        assert evaluation.result.score == pytest.approx(0.8)
        assert [p.type for p in evaluation.patterns] == ["consistent-underestimation"]
        assert evaluation.patterns[0].source == "numeric-score"

    def test_pattern_analysis_can_be_disabled(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "5")
        config = EvaluationConfig(score_scale=10, include_pattern_analysis=False)
        assert asyncio.run(evaluator.evaluate(base_configuration, samples, config)).patterns == []

    def test_combined_strategies(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "7")
        config = EvaluationConfig(combine_strategies=["numeric-score", "fact-based"])
        evaluation = asyncio.run(evaluator.evaluate(base_configuration, samples, config))

        assert evaluation.strategy_name == "numeric-score+fact-based"
        assert evaluation.result.score == pytest.approx(0.5)

    def test_explicit_strategy(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "7")
        evaluation = asyncio.run(evaluator.evaluate(
            base_configuration, samples, EvaluationConfig(strategy="fact-based")
        ))
        assert evaluation.strategy_name == "fact-based"

    def test_unknown_strategy(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "7")
        with pytest.raises(ConfigurationError):
            asyncio.run(evaluator.evaluate(base_configuration, samples, EvaluationConfig(strategy="nope")))

    def test_with_history(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "5")
        config = EvaluationConfig(score_scale=10)
        first = asyncio.run(evaluator.evaluate(base_configuration, samples, config))
        second = asyncio.run(evaluator.evaluate_with_history(base_configuration, samples, [first], config))

        assert second.result.score == pytest.approx(0.8)
        assert second.feedback.summary.startswith("[Primary] Numeric evaluation score: 80.0% | Iteration 2")
        assert "Performance plateau detected" in second.feedback.patterns
        assert evaluator.pattern_analyzer.statistics()["total_iterations"] == 1

    def test_reset_history_drops_persistent_patterns(self, configurations, base_configuration, samples):
        evaluator = make_evaluator(configurations, "5")
        config = EvaluationConfig(score_scale=10)
        first = asyncio.run(evaluator.evaluate(base_configuration, samples, config))
        for _ in range(3):
            repeated = asyncio.run(evaluator.evaluate_with_history(base_configuration, samples, [first], config))
        assert "persistent-consistent-underestimation" in [p.type for p in repeated.patterns]

        evaluator.reset_history()
        fresh = asyncio.run(evaluator.evaluate_with_history(base_configuration, samples, [first], config))
        assert [p.type for p in fresh.patterns] == ["consistent-underestimation"]
