"""Hybrid evaluation combining numeric accuracy and fact coverage."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from ...errors import ConfigurationError
from ...models import (
    DetailedFeedback,
    EvaluationConfig,
    EvaluationContext,
    EvaluationResult,
    FailurePattern,
)
from ..base import NONE_IDENTIFIED, EvaluationStrategy
from .fact_based import FactBasedStrategy
from .numeric import NumericScoreStrategy

DIVERGENCE_THRESHOLD = 0.3
IMBALANCE_RISK_THRESHOLD = 0.4
CRITICAL_SCORE = 0.4


class HybridStrategy(EvaluationStrategy):
    """Weighted blend of numeric-score and fact-based evaluation."""

    name = "hybrid"
    type = "hybrid"
    description = "Blends numeric accuracy with fact coverage"

    def __init__(
        self,
        numeric: Optional[NumericScoreStrategy] = None,
        facts: Optional[FactBasedStrategy] = None,
        numeric_weight: float = 0.5,
        fact_weight: float = 0.5
    ):
        """Initialize with sub-strategies and relative weights."""
        total = numeric_weight + fact_weight
        if total <= 0:
            raise ConfigurationError("Hybrid weights must sum to a positive value")
        self.numeric = numeric or NumericScoreStrategy()
        self.facts = facts or FactBasedStrategy()
        self.numeric_weight = numeric_weight / total
        self.fact_weight = fact_weight / total

    def is_applicable(self, context: EvaluationContext) -> bool:
        return context.has_numeric_ground_truth and (
            context.has_textual_content or context.has_fact_requirements
        )

    async def evaluate(
        self,
        data: List[Any],
        ground_truth: List[Any],
        config: EvaluationConfig
    ) -> EvaluationResult:
        if len(data) != len(ground_truth):
            raise ConfigurationError("Data and ground truth must have the same length")

        numeric_result, fact_result = await asyncio.gather(
            self.numeric.evaluate(data, ground_truth, config),
            self.facts.evaluate(data, ground_truth, config)
        )
        score = numeric_result.score * self.numeric_weight + fact_result.score * self.fact_weight

        metrics: Dict[str, Any] = {}
        metrics.update(numeric_result.metrics)
        metrics.update(fact_result.metrics)
        metrics.update({
            "numeric_score": numeric_result.score,
            "fact_score": fact_result.score,
            "numeric_weight": self.numeric_weight,
            "fact_weight": self.fact_weight,
            "numeric_analysis": numeric_result.model_dump(),
            "fact_analysis": fact_result.model_dump(),
        })

        details = [
            {
                "numeric": numeric_result.details[i] if i < len(numeric_result.details) else None,
                "facts": fact_result.details[i] if i < len(fact_result.details) else None,
            }
            for i in range(len(data))
        ]

        return EvaluationResult(
            score=min(1.0, score),
            metrics=metrics,
            details=details,
            insights=self._insights(numeric_result, fact_result)
        )

    def generate_feedback(self, result: EvaluationResult) -> DetailedFeedback:
        numeric_result, fact_result = self._sub_results(result)
        numeric_feedback = self.numeric.generate_feedback(numeric_result)
        fact_feedback = self.facts.generate_feedback(fact_result)

        strengths = [f"[Numeric] {s}" for s in numeric_feedback.strengths if s != NONE_IDENTIFIED]
        strengths += [f"[Facts] {s}" for s in fact_feedback.strengths if s != NONE_IDENTIFIED]
        weaknesses = [f"[Numeric] {w}" for w in numeric_feedback.weaknesses if w != NONE_IDENTIFIED]
        weaknesses += [f"[Facts] {w}" for w in fact_feedback.weaknesses if w != NONE_IDENTIFIED]

        # weaker dimension's actions first
        if numeric_result.score < fact_result.score:
            actions = numeric_feedback.action_items + fact_feedback.action_items
        else:
            actions = fact_feedback.action_items + numeric_feedback.action_items

        improvements: List[str] = []
        if numeric_result.score < 0.7:
            improvements.extend(numeric_feedback.improvements)
        if fact_result.score < 0.7:
            improvements.extend(fact_feedback.improvements)
        if abs(numeric_result.score - fact_result.score) > DIVERGENCE_THRESHOLD:
            improvements.append(
                "Balance improvement efforts between numeric accuracy and factual completeness"
            )
        if not improvements and result.score < 0.8:
            improvements.append("Consider adjusting the weights between numeric and fact-based evaluation")

        return DetailedFeedback(
            summary=(
                f"Hybrid evaluation score: {result.score * 100:.1f}% "
                f"(Numeric: {numeric_result.score * 100:.0f}%, Facts: {fact_result.score * 100:.0f}%)"
            ),
            strengths=strengths or [NONE_IDENTIFIED],
            weaknesses=weaknesses or [NONE_IDENTIFIED],
            patterns=numeric_feedback.patterns + fact_feedback.patterns,
            action_items=list(dict.fromkeys(actions)),
            improvements=list(dict.fromkeys(improvements)),
            risks=self._risks(result, numeric_result, fact_result)
        )

    def analyze_patterns(self, results: List[EvaluationResult]) -> Optional[List[FailurePattern]]:
        if not results:
            return []
        split = [self._sub_results(r) for r in results]
        patterns = list(self.numeric.analyze_patterns([n for n, _ in split]) or [])
        patterns += self.facts.analyze_patterns([f for _, f in split]) or []

        divergent = [
            (n, f) for n, f in split
            if abs(n.score - f.score) > DIVERGENCE_THRESHOLD
        ]
        if len(divergent) > len(results) * 0.3:
            patterns.append(FailurePattern(
                type="numeric-fact-divergence",
                frequency=len(divergent) / len(results),
                examples=[f"Numeric: {n.score:.2f}, Facts: {f.score:.2f}" for n, f in divergent[:3]],
                suggested_fix="Review prompt to ensure both accuracy and completeness are addressed",
                description="Numeric accuracy and fact coverage disagree"
            ))

        underperforming = [r for r in results if r.score < 0.5]
        if len(underperforming) > len(results) * 0.5:
            patterns.append(FailurePattern(
                type="consistent-underperformance",
                frequency=len(underperforming) / len(results),
                examples=[f"Score: {r.score:.2f}" for r in underperforming[:3]],
                suggested_fix="Major prompt revision needed - consider restructuring approach",
                description="Most evaluations score below 0.5"
            ))
        return patterns

    def _sub_results(self, result: EvaluationResult) -> Tuple[EvaluationResult, EvaluationResult]:
        numeric = result.metrics.get("numeric_analysis") or {"score": 0.0}
        facts = result.metrics.get("fact_analysis") or {"score": 0.0}
        return EvaluationResult.model_validate(numeric), EvaluationResult.model_validate(facts)

    def _insights(self, numeric: EvaluationResult, facts: EvaluationResult) -> List[str]:
        insights: List[str] = []
        if abs(numeric.score - facts.score) > DIVERGENCE_THRESHOLD:
            if numeric.score > facts.score:
                insights.append(
                    "Strong numeric performance but weak factual accuracy; improve content completeness"
                )
            else:
                insights.append(
                    "Good factual coverage but poor numeric accuracy; improve scoring calibration"
                )
        if numeric.score > 0.8 and facts.score > 0.8:
            insights.append("Excellent overall performance across both dimensions")
        elif numeric.score < 0.5 and facts.score < 0.5:
            insights.append("Significant improvement needed in both scoring accuracy and content quality")
        if numeric.metrics.get("consistency", 1.0) < 0.7:
            insights.append("Inconsistent numeric scoring may be affecting overall reliability")
        if 0 < facts.metrics.get("average_confidence", 0.0) < 0.6:
            insights.append("Low confidence in fact detection suggests response ambiguity")
        return insights

    def _risks(
        self,
        result: EvaluationResult,
        numeric: EvaluationResult,
        facts: EvaluationResult
    ) -> List[str]:
        risks: List[str] = []
        if abs(numeric.score - facts.score) > IMBALANCE_RISK_THRESHOLD:
            risks.append("Significant performance imbalance between evaluation dimensions")
        if numeric.score < CRITICAL_SCORE:
            risks.append("Critical: Numeric accuracy below acceptable threshold")
        if facts.score < CRITICAL_SCORE:
            risks.append("Critical: Factual accuracy below acceptable threshold")
        if result.metrics.get("consistency", 1.0) < 0.6:
            risks.append("Low consistency may lead to unpredictable results")
        return risks
