"""Tests for PatternAnalyzer."""

import pytest

from agent_tuner.evaluation import NumericScoreStrategy, PatternAnalyzer
from agent_tuner.models import EvaluationResult, FailurePattern

from conftest import FixedStrategy


def scores(*values):
    return [EvaluationResult(score=v) for v in values]


def variance_pattern(frequency):
    return FailurePattern(type="high-variance", frequency=frequency, suggested_fix="Lower temperature")


class TestGenericPatterns:
    """generic_patterns and analyze_patterns"""

    def test_low_scores_and_missing_metrics(self):
        patterns = PatternAnalyzer().generic_patterns(scores(0.2, 0.3, 0.9), "custom")

        assert [p.type for p in patterns] == ["low-scores", "missing-metrics"]
        assert patterns[0].frequency == pytest.approx(2 / 3)
        assert all(p.source == "custom" for p in patterns)

    def test_high_variance_and_clusters(self):
        results = [
            EvaluationResult(score=0.05, metrics={"rmse": 0.5}),
            EvaluationResult(score=0.1, metrics={"rmse": 0.5}),
            EvaluationResult(score=0.95, metrics={"rmse": 0.05}),
        ]
        types = [p.type for p in PatternAnalyzer().generic_patterns(results, "numeric-score")]

        assert "high-score-variance" in types
        assert "error-cluster-very-low" in types
        assert "error-cluster-high-rmse" in types

    def test_empty(self):
        assert PatternAnalyzer().generic_patterns([], "x") == []

    def test_strategy_specific_patterns_get_source(self):
        result = EvaluationResult(
            score=0.6,
            details=[{"predicted": 0.9, "actual": 0.5, "error": 0.4, "absolute_error": 0.4}]
        )
        patterns = PatternAnalyzer().analyze_patterns([result], NumericScoreStrategy())
        assert patterns[0].type == "consistent-overestimation"
        assert patterns[0].source == "numeric-score"

    def test_falls_back_to_generic(self):
        patterns = PatternAnalyzer().analyze_patterns(scores(0.1, 0.2), FixedStrategy("custom"))
        assert patterns[0].type == "low-scores"

    def test_cross_strategy_patterns(self):
        patterns = PatternAnalyzer().cross_strategy_patterns({
            "a": scores(0.1, 0.2),
            "b": scores(0.2, 0.3),
        })
        low = next(p for p in patterns if p.type == "cross-strategy-low-scores")
        assert low.source == "a, b"


class TestEvolution:
    """Iteration tracking"""

    def test_trajectory_trend(self):
        analyzer = PatternAnalyzer()
        analyzer.track_pattern_evolution([variance_pattern(0.8)], 1)
        evolution = analyzer.track_pattern_evolution([variance_pattern(0.4)], 2)

        assert evolution["high-variance"]["frequencies"] == [0.8, 0.4]
        assert evolution["high-variance"]["trend"] == "improving"

    def test_absent_pattern_counts_as_zero(self):
        analyzer = PatternAnalyzer()
        analyzer.track_pattern_evolution([], 1)
        evolution = analyzer.track_pattern_evolution([variance_pattern(0.5)], 2)
        assert evolution["high-variance"]["frequencies"] == [0.0, 0.5]
        assert evolution["high-variance"]["trend"] == "worsening"

    def test_persistent_patterns(self):
        analyzer = PatternAnalyzer()
        for iteration in (1, 2, 3):
            analyzer.track_pattern_evolution([variance_pattern(0.3 * iteration)], iteration)

        persistent = analyzer.persistent_patterns()
        assert len(persistent) == 1
        assert persistent[0].type == "persistent-high-variance"
        assert persistent[0].frequency == 1.0
        assert analyzer.statistics()["persistent_count"] == 1

    def test_not_persistent_below_threshold(self):
        analyzer = PatternAnalyzer()
        analyzer.track_pattern_evolution([variance_pattern(0.5)], 1)
        analyzer.track_pattern_evolution([variance_pattern(0.5)], 2)
        assert analyzer.persistent_patterns() == []

    def test_clear_history(self):
        analyzer = PatternAnalyzer()
        analyzer.track_pattern_evolution([variance_pattern(0.5)], 1)
        analyzer.clear_history()
        assert analyzer.statistics()["unique_patterns"] == 0


class TestSuggestions:
    """suggest_improvements"""

    def test_grouped_by_base_type(self):
        patterns = [
            FailurePattern(type="persistent-high-variance", frequency=0.8, suggested_fix="Lower temperature"),
            FailurePattern(type="consistent-overestimation", frequency=0.2, suggested_fix="Calibrate"),
        ]
        assert PatternAnalyzer().suggest_improvements(patterns) == [
            "Stabilize predictions through temperature adjustment or few-shot examples",
            "Priority fix: Lower temperature",
            "Implement calibration mechanism to correct systematic bias",
        ]
