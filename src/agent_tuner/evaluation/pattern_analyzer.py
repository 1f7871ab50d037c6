"""Failure pattern discovery across evaluation results and iterations."""

import re
from typing import Any, Dict, List, Tuple

from ..models import EvaluationResult, FailurePattern
from .base import EvaluationStrategy
from .stats import variance

LOW_SCORE_THRESHOLD = 0.5
LOW_SCORE_SHARE = 0.3
HIGH_VARIANCE_THRESHOLD = 0.1
MISSING_METRICS_SHARE = 0.2
CLUSTER_SHARE = 0.4
METRIC_CLUSTER_SHARE = 0.3
HIGH_RMSE = 0.2
LOW_CORRELATION = 0.5
PRIORITY_FREQUENCY = 0.5
MAX_EXAMPLES = 3
MAX_FREQUENT_TYPES = 5
TREND_DELTA = 0.05

SCORE_RANGES: List[Tuple[float, float, str]] = [
    (0.0, 0.3, "very-low"),
    (0.3, 0.5, "low"),
    (0.5, 0.7, "medium"),
    (0.7, 0.9, "high"),
    (0.9, 1.0, "very-high"),
]

SCORE_RANGE_FIXES: Dict[str, str] = {
    "very-low": "Major revision needed - consider complete prompt restructuring",
    "low": "Significant improvements required - review core evaluation logic",
    "medium": "Moderate adjustments needed - fine-tune parameters and prompts",
    "high": "Minor optimizations - focus on edge cases and consistency",
    "very-high": "Maintain current approach - monitor for regression",
}

PATTERN_PREFIXES = re.compile(r"^(persistent-|cross-strategy-)")


def _score_examples(results: List[EvaluationResult], label: str, limit: int = MAX_EXAMPLES) -> List[Dict[str, Any]]:
    return [
        {"expected": "Higher score", "actual": f"Score: {r.score:.3f}", "error": label}
        for r in results[:limit]
    ]


class PatternAnalyzer:
    """Finds recurring failures and tracks them across iterations."""

    def __init__(self):
        self._history: Dict[int, List[FailurePattern]] = {}
        self._frequency: Dict[str, int] = {}

    def analyze_patterns(
        self,
        results: List[EvaluationResult],
        strategy: EvaluationStrategy
    ) -> List[FailurePattern]:
        """Strategy-specific patterns when available, generic analysis otherwise."""
        specific = strategy.analyze_patterns(results)
        if specific is not None:
            return [p if p.source else p.model_copy(update={"source": strategy.name}) for p in specific]
        return self.generic_patterns(results, strategy.name)

    def generic_patterns(self, results: List[EvaluationResult], source: str) -> List[FailurePattern]:
        """Score-level patterns that apply to any strategy."""
        if not results:
            return []

        patterns = []
        total = len(results)

        low = [r for r in results if r.score < LOW_SCORE_THRESHOLD]
        if len(low) > total * LOW_SCORE_SHARE:
            patterns.append(FailurePattern(
                type="low-scores",
                frequency=len(low) / total,
                examples=_score_examples(low, "Low score"),
                suggested_fix="Review evaluation criteria and prompt effectiveness",
                source=source
            ))

        scores = [r.score for r in results]
        if variance(scores) > HIGH_VARIANCE_THRESHOLD:
            ranked = sorted(results, key=lambda r: r.score, reverse=True)
            examples = [{"expected": "Consistent scoring", "actual": f"High score: {ranked[0].score:.3f}"}]
            if len(ranked) > 1:
                examples.append({"expected": "Consistent scoring", "actual": f"Low score: {ranked[-1].score:.3f}"})
            if len(ranked) > 2:
                median = ranked[len(ranked) // 2]
                examples.append({"expected": "Consistent scoring", "actual": f"Median score: {median.score:.3f}"})
            patterns.append(FailurePattern(
                type="high-score-variance",
                frequency=1.0,
                examples=examples,
                suggested_fix="Improve consistency in evaluation approach",
                source=source
            ))

        missing = [r for r in results if not r.metrics]
        if len(missing) > total * MISSING_METRICS_SHARE:
            patterns.append(FailurePattern(
                type="missing-metrics",
                frequency=len(missing) / total,
                suggested_fix="Ensure comprehensive metric calculation",
                source=source
            ))

        patterns.extend(self._error_clusters(results, source))
        return patterns

    def cross_strategy_patterns(
        self,
        results_by_strategy: Dict[str, List[EvaluationResult]]
    ) -> List[FailurePattern]:
        """Patterns reported by more than one strategy."""
        merged: Dict[str, Tuple[FailurePattern, List[str]]] = {}
        for name, results in results_by_strategy.items():
            for pattern in self.generic_patterns(results, name):
                key = f"{pattern.type}:{pattern.suggested_fix}"
                if key not in merged:
                    merged[key] = (pattern, [name])
                    continue
                existing, sources = merged[key]
                if name not in sources:
                    sources.append(name)
                merged[key] = (existing.model_copy(update={
                    "frequency": max(existing.frequency, pattern.frequency),
                    "examples": existing.examples + pattern.examples[:1],
                }), sources)

        return [
            pattern.model_copy(update={
                "type": f"cross-strategy-{pattern.type}",
                "source": ", ".join(sources),
            })
            for pattern, sources in merged.values()
            if len(sources) > 1
        ]

    def track_pattern_evolution(
        self,
        patterns: List[FailurePattern],
        iteration: int
    ) -> Dict[str, Dict[str, Any]]:
        """Record patterns for an iteration and return per-type trajectories."""
        self._history[iteration] = list(patterns)
        for pattern in patterns:
            self._frequency[pattern.type] = self._frequency.get(pattern.type, 0) + 1
        return self.trajectories()

    def trajectories(self) -> Dict[str, Dict[str, Any]]:
        """Frequency of each pattern type per recorded iteration, with a trend."""
        evolution: Dict[str, Dict[str, Any]] = {}
        iterations = sorted(self._history)
        for pattern_type in self._frequency:
            series = []
            for iteration in iterations:
                found = next((p for p in self._history[iteration] if p.type == pattern_type), None)
                series.append(found.frequency if found else 0.0)

            trend = "stable"
            if len(series) > 1:
                delta = series[-1] - series[0]
                if delta < -TREND_DELTA:
                    trend = "improving"
                elif delta > TREND_DELTA:
                    trend = "worsening"

            evolution[pattern_type] = {
                "iterations": iterations,
                "frequencies": series,
                "trend": trend,
            }
        return evolution

    def persistent_patterns(self, min_iterations: int = 3) -> List[FailurePattern]:
        """Patterns seen in at least min_iterations iterations, latest occurrence first."""
        persistent = []
        recorded = len(self._history)
        for pattern_type, count in self._frequency.items():
            if count < min_iterations:
                continue
            for iteration in sorted(self._history, reverse=True):
                found = next((p for p in self._history[iteration] if p.type == pattern_type), None)
                if found:
                    persistent.append(found.model_copy(update={
                        "type": f"persistent-{found.type}",
                        "frequency": min(1.0, count / recorded),
                    }))
                    break
        return persistent

    def suggest_improvements(self, patterns: List[FailurePattern]) -> List[str]:
        """Improvement suggestions grouped by base pattern type."""
        by_type: Dict[str, List[FailurePattern]] = {}
        for pattern in patterns:
            by_type.setdefault(PATTERN_PREFIXES.sub("", pattern.type), []).append(pattern)

        improvements: List[str] = []

        def add(item: str) -> None:
            if item not in improvements:
                improvements.append(item)

        for pattern_type, group in by_type.items():
            if "overestimation" in pattern_type or "underestimation" in pattern_type:
                add("Implement calibration mechanism to correct systematic bias")
            if "variance" in pattern_type or "inconsistent" in pattern_type:
                add("Stabilize predictions through temperature adjustment or few-shot examples")
            if "missing" in pattern_type or "incomplete" in pattern_type:
                add("Enhance prompt with explicit requirements and structure")
            if "edge-case" in pattern_type:
                add("Add specialized handling for boundary conditions")

            average = sum(p.frequency for p in group) / len(group)
            if average > PRIORITY_FREQUENCY:
                add(f"Priority fix: {group[0].suggested_fix}")

        return improvements

    def statistics(self) -> Dict[str, Any]:
        ranked = sorted(self._frequency.items(), key=lambda item: item[1], reverse=True)
        return {
            "total_iterations": len(self._history),
            "unique_patterns": len(self._frequency),
            "most_frequent": [name for name, _ in ranked[:MAX_FREQUENT_TYPES]],
            "persistent_count": len(self.persistent_patterns()),
        }

    def clear_history(self) -> None:
        self._history = {}
        self._frequency = {}

    def _error_clusters(self, results: List[EvaluationResult], source: str) -> List[FailurePattern]:
        clusters = []
        total = len(results)

        for low, high, label in SCORE_RANGES:
            in_range = [
                r for r in results
                if low <= r.score < high or (high == 1.0 and r.score == 1.0)
            ]
            if len(in_range) > total * CLUSTER_SHARE:
                clusters.append(FailurePattern(
                    type=f"error-cluster-{label}",
                    frequency=len(in_range) / total,
                    examples=_score_examples(in_range, f"Score in {label} range", 2),
                    suggested_fix=SCORE_RANGE_FIXES[label],
                    source=source
                ))

        high_rmse = [r for r in results if (r.metrics.get("rmse") or 0) > HIGH_RMSE]
        if len(high_rmse) > total * METRIC_CLUSTER_SHARE:
            clusters.append(FailurePattern(
                type="error-cluster-high-rmse",
                frequency=len(high_rmse) / total,
                examples=_score_examples(high_rmse, "High RMSE", 2),
                suggested_fix="Improve model accuracy through prompt engineering or parameter tuning",
                source=source
            ))

        low_correlation = [
            r for r in results
            if isinstance(r.metrics.get("correlation"), (int, float))
            and r.metrics["correlation"] < LOW_CORRELATION
        ]
        if len(low_correlation) > total * METRIC_CLUSTER_SHARE:
            clusters.append(FailurePattern(
                type="error-cluster-low-correlation",
                frequency=len(low_correlation) / total,
                examples=_score_examples(low_correlation, "Low correlation", 2),
                suggested_fix="Align evaluation criteria with ground truth expectations",
                source=source
            ))

        return clusters
