"""Turns evaluation results and patterns into prioritized feedback."""

from typing import Dict, List, Optional, Tuple

from ..models import DetailedFeedback, EvaluationResult, FailurePattern, Verbosity
from .base import EvaluationStrategy
from .stats import variance

CRITICAL_FREQUENCY = 0.7
MAJOR_FREQUENCY = 0.4
CRITICAL_SCORE = 0.3
EXCEPTIONAL_SCORE = 0.9
DIVERGENCE_THRESHOLD = 0.3
SIGNIFICANT_GAIN = 0.1
REGRESSION_DROP = -0.05
CONVERGENCE_VARIANCE = 0.01
CONVERGENCE_WINDOW = 3

MINIMAL_ACTIONS = 3
STANDARD_LIMITS = {
    "strengths": 3,
    "weaknesses": 3,
    "action_items": 5,
    "improvements": 3,
    "risks": 3,
    "patterns": 5,
}

ACTION_KEYWORDS: Dict[str, int] = {
    "critical": 3,
    "immediately": 3,
    "major": 2,
    "fix": 2,
    "address": 1,
}

RISK_KEYWORDS: Dict[str, int] = {
    "critical": 5,
    "failure": 4,
    "high": 3,
    "significant": 2,
    "performance": 2,
}


def deduplicate(items: List[str]) -> List[str]:
    """Drop case-insensitive duplicates, keeping first-seen order."""
    seen = set()
    unique = []
    for item in items:
        normalized = item.strip().lower()
        if normalized not in seen:
            seen.add(normalized)
            unique.append(item)
    return unique


def prioritize(items: List[str], keywords: Dict[str, int]) -> List[str]:
    """Stable sort by keyword weight, then deduplicate."""
    def weight(item: str) -> int:
        lowered = item.lower()
        return sum(points for word, points in keywords.items() if word in lowered)

    return deduplicate(sorted(items, key=weight, reverse=True))


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


class FeedbackSynthesizer:
    """Builds DetailedFeedback for a strategy result and across iterations."""

    def synthesize(
        self,
        result: EvaluationResult,
        strategy: EvaluationStrategy,
        verbosity: Verbosity = "standard"
    ) -> DetailedFeedback:
        feedback = strategy.generate_feedback(result)
        enhanced = self._cross_strategy_analysis(result, feedback)
        return self.format_feedback(enhanced, verbosity)

    def format_feedback(self, feedback: DetailedFeedback, verbosity: Verbosity) -> DetailedFeedback:
        """Trim feedback to the verbosity level after prioritizing it."""
        action_items = prioritize(feedback.action_items, ACTION_KEYWORDS)
        risks = prioritize(feedback.risks, RISK_KEYWORDS)

        if verbosity == "minimal":
            return DetailedFeedback(
                summary=feedback.summary,
                action_items=action_items[:MINIMAL_ACTIONS]
            )

        if verbosity == "standard":
            return DetailedFeedback(
                summary=feedback.summary,
                strengths=feedback.strengths[:STANDARD_LIMITS["strengths"]],
                weaknesses=feedback.weaknesses[:STANDARD_LIMITS["weaknesses"]],
                action_items=action_items[:STANDARD_LIMITS["action_items"]],
                improvements=feedback.improvements[:STANDARD_LIMITS["improvements"]],
                risks=risks[:STANDARD_LIMITS["risks"]],
                patterns=feedback.patterns[:STANDARD_LIMITS["patterns"]]
            )

        return feedback.model_copy(update={"action_items": action_items, "risks": risks})

    def combine_feedback(
        self,
        feedbacks: Dict[str, DetailedFeedback],
        primary: Optional[str] = None
    ) -> DetailedFeedback:
        """Merge feedback from several sources into one deduplicated report."""
        summaries = []
        for name, feedback in feedbacks.items():
            if not feedback.summary:
                continue
            prefix = "[Primary]" if name == primary else f"[{name}]"
            summaries.append(f"{prefix} {feedback.summary}")

        values = list(feedbacks.values())
        return DetailedFeedback(
            summary=" | ".join(summaries),
            strengths=deduplicate([s for f in values for s in f.strengths]),
            weaknesses=deduplicate([w for f in values for w in f.weaknesses]),
            action_items=prioritize([a for f in values for a in f.action_items], ACTION_KEYWORDS),
            improvements=deduplicate([i for f in values for i in f.improvements]),
            risks=prioritize([r for f in values for r in f.risks], RISK_KEYWORDS),
            patterns=deduplicate([p for f in values for p in f.patterns])
        )

    def generate_iterative_feedback(
        self,
        current: EvaluationResult,
        history: List[EvaluationResult],
        strategy: EvaluationStrategy
    ) -> DetailedFeedback:
        """Strategy feedback annotated with progress relative to earlier iterations."""
        feedback = strategy.generate_feedback(current)
        patterns, improvements = self.analyze_progress(current.score, [r.score for r in history])
        return feedback.model_copy(update={
            "summary": f"{feedback.summary} | Iteration {len(history) + 1}",
            "patterns": feedback.patterns + patterns,
            "improvements": feedback.improvements + improvements,
        })

    def analyze_progress(self, current: float, previous: List[float]) -> Tuple[List[str], List[str]]:
        """Trend, convergence and oscillation notes for a score series."""
        patterns: List[str] = []
        improvements: List[str] = []
        if not previous:
            return patterns, improvements

        delta = current - previous[-1]
        if delta > SIGNIFICANT_GAIN:
            patterns.append(f"Significant improvement: +{delta * 100:.1f}%")
        elif delta > 0:
            patterns.append(f"Moderate improvement: +{delta * 100:.1f}%")
        elif delta < REGRESSION_DROP:
            patterns.append(f"Performance regression: {delta * 100:.1f}%")
            improvements.append("Review recent changes - performance has degraded")
        else:
            patterns.append("Performance plateau detected")
            improvements.append("Consider alternative optimization strategies")

        if len(previous) >= CONVERGENCE_WINDOW:
            window = previous[-CONVERGENCE_WINDOW:] + [current]
            if variance(window) < CONVERGENCE_VARIANCE:
                patterns.append("Optimization has converged")
                improvements.append("Current approach may have reached its limit")

        if len(previous) >= 2:
            series = previous + [current]
            deltas = [b - a for a, b in zip(series, series[1:])]
            flips = sum(1 for a, b in zip(deltas, deltas[1:]) if _sign(a) != _sign(b))
            if flips > len(deltas) * 0.5:
                patterns.append("Oscillating performance detected")
                improvements.append("Stabilize optimization approach to prevent oscillation")

        return patterns, improvements

    def generate_pattern_feedback(self, patterns: List[FailurePattern]) -> DetailedFeedback:
        """Weaknesses and action items derived from failure patterns."""
        critical = [p for p in patterns if p.frequency > CRITICAL_FREQUENCY]
        major = [p for p in patterns if MAJOR_FREQUENCY < p.frequency <= CRITICAL_FREQUENCY]

        weaknesses = []
        if critical:
            weaknesses.append(f"Critical issues: {', '.join(p.type for p in critical)}")
        if major:
            weaknesses.append(f"Major issues: {', '.join(p.type for p in major)}")

        improvements = []
        if critical:
            improvements.append("Address critical patterns immediately")
        if any("persistent" in p.type for p in patterns):
            improvements.append("Focus on breaking persistent failure patterns")

        return DetailedFeedback(
            summary=f"Identified {len(patterns)} failure patterns",
            weaknesses=weaknesses,
            action_items=deduplicate([p.suggested_fix for p in patterns]),
            improvements=improvements,
            patterns=[f"{p.type} ({p.frequency * 100:.0f}% frequency)" for p in patterns]
        )

    def _cross_strategy_analysis(self, result: EvaluationResult, feedback: DetailedFeedback) -> DetailedFeedback:
        patterns = list(feedback.patterns)
        improvements = list(feedback.improvements)
        risks = list(feedback.risks)
        strengths = list(feedback.strengths)

        numeric = result.metrics.get("numeric_analysis")
        facts = result.metrics.get("fact_analysis")
        if isinstance(numeric, dict) and isinstance(facts, dict):
            difference = abs(numeric.get("score", 0.0) - facts.get("score", 0.0))
            if difference > DIVERGENCE_THRESHOLD:
                patterns.append(
                    f"Significant divergence between evaluation methods ({difference * 100:.0f}% difference)"
                )
                improvements.append(
                    "Consider balancing optimization efforts across different evaluation dimensions"
                )

        if result.score < CRITICAL_SCORE:
            risks.append("Performance critically below acceptable threshold")
        elif result.score > EXCEPTIONAL_SCORE:
            strengths.append("Exceptional performance achieved")

        return feedback.model_copy(update={
            "patterns": patterns,
            "improvements": improvements,
            "risks": risks,
            "strengths": strengths,
        })
