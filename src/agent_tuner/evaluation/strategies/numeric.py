"""Numeric score evaluation: error metrics between predicted and true scores."""

from typing import Any, Dict, List, Optional

from ...parsing import extract_number
from ...errors import ConfigurationError
from ...models import (
    DetailedFeedback,
    EvaluationConfig,
    EvaluationContext,
    EvaluationResult,
    FailurePattern,
)
from ..base import NONE_IDENTIFIED, EvaluationStrategy
from ..stats import mean, pearson, std_dev, variance

OVERESTIMATION_ERROR = 0.1
OVERESTIMATION_SHARE = 0.3
HIGH_VARIANCE_STD = 0.2
EDGE_CASE_ERROR = 0.2
CONSISTENCY_BUCKET = 0.1


class NumericScoreStrategy(EvaluationStrategy):
    """RMSE-based scoring for numeric ground truth."""

    name = "numeric-score"
    type = "numeric"
    description = "Compares predicted scores with ground truth using RMSE, MAE and correlation"

    def is_applicable(self, context: EvaluationContext) -> bool:
        return context.has_numeric_ground_truth and not context.has_fact_requirements

    async def evaluate(
        self,
        data: List[Any],
        ground_truth: List[Any],
        config: EvaluationConfig
    ) -> EvaluationResult:
        if len(data) != len(ground_truth):
            raise ConfigurationError("Predictions and ground truth must have the same length")

        scale = config.score_scale
        pairs = []
        for predicted, actual in zip(data, ground_truth):
            p, a = extract_number(predicted), extract_number(actual)
            if p is not None and a is not None:
                pairs.append((p / scale, a / scale))

        if not pairs:
            return EvaluationResult(
                score=0.0,
                metrics={"parsed_count": 0, "total_count": len(data)},
                insights=["No numeric predictions could be parsed"]
            )

        predictions = [p for p, _ in pairs]
        truths = [a for _, a in pairs]
        errors = [p - a for p, a in pairs]
        absolute_errors = [abs(e) for e in errors]

        rmse = mean([e * e for e in errors]) ** 0.5
        parsed_ratio = len(pairs) / len(data)
        score = max(0.0, 1.0 - rmse) * parsed_ratio

        details = [
            {
                "predicted": p,
                "actual": a,
                "error": p - a,
                "absolute_error": abs(p - a),
                "percentage_error": (p - a) / a * 100 if a != 0 else None,
            }
            for p, a in pairs
        ]

        return EvaluationResult(
            score=min(1.0, score),
            metrics={
                "rmse": rmse,
                "mae": mean(absolute_errors),
                "correlation": pearson(predictions, truths),
                "bias": mean(errors),
                "consistency": self._consistency(predictions, truths),
                "max_error": max(absolute_errors),
                "min_error": min(absolute_errors),
                "error_std_dev": std_dev(errors),
                "parsed_count": len(pairs),
                "total_count": len(data),
            },
            details=details
        )

    def generate_feedback(self, result: EvaluationResult) -> DetailedFeedback:
        metrics = result.metrics
        strengths: List[str] = []
        weaknesses: List[str] = []
        action_items: List[str] = []

        correlation = metrics.get("correlation")
        mae = metrics.get("mae")
        consistency = metrics.get("consistency")
        bias = metrics.get("bias", 0.0)

        if correlation is not None and correlation > 0.8:
            strengths.append("Strong correlation with ground truth")
        if mae is not None and mae < 0.1:
            strengths.append("Low average error rate")
        if consistency is not None and consistency > 0.9:
            strengths.append("High prediction consistency")
        if "bias" in metrics and abs(bias) < 0.05:
            strengths.append("Minimal systematic bias")

        if correlation is not None and correlation < 0.5:
            weaknesses.append("Poor correlation with ground truth")
            action_items.append("Review the scoring logic and criteria")
        if mae is not None and mae > 0.2:
            weaknesses.append("High average error rate")
            action_items.append("Consider adjusting model parameters or prompt")
        if consistency is not None and consistency < 0.7:
            weaknesses.append("Inconsistent predictions")
            action_items.append("Improve stability through temperature adjustment")
        if abs(bias) > 0.1:
            direction = "overestimating" if bias > 0 else "underestimating"
            weaknesses.append(f"Systematic bias: {direction} scores")
            action_items.append(f"Adjust calibration to correct for {direction}")
        if metrics.get("parsed_count", 0) < metrics.get("total_count", 0):
            weaknesses.append("Some outputs could not be parsed as numbers")
            action_items.append("Fix output format so every response contains a numeric score")

        return DetailedFeedback(
            summary=f"Numeric evaluation score: {result.score * 100:.1f}%",
            strengths=strengths or [NONE_IDENTIFIED],
            weaknesses=weaknesses or [NONE_IDENTIFIED],
            patterns=self._error_patterns(result.details),
            action_items=action_items or ["Continue monitoring performance"],
            improvements=self._improvements(metrics)
        )

    def analyze_patterns(self, results: List[EvaluationResult]) -> Optional[List[FailurePattern]]:
        patterns: List[FailurePattern] = []
        details = [d for r in results for d in r.details if "error" in d]
        if not details:
            return patterns

        over = [d for d in details if d["error"] > OVERESTIMATION_ERROR]
        under = [d for d in details if d["error"] < -OVERESTIMATION_ERROR]
        if len(over) > len(details) * OVERESTIMATION_SHARE:
            patterns.append(FailurePattern(
                type="consistent-overestimation",
                frequency=len(over) / len(details),
                examples=over[:3],
                suggested_fix="Reduce model confidence or adjust temperature downward",
                description=f"{len(over)}/{len(details)} predictions overestimate by more than {OVERESTIMATION_ERROR}"
            ))
        if len(under) > len(details) * OVERESTIMATION_SHARE:
            patterns.append(FailurePattern(
                type="consistent-underestimation",
                frequency=len(under) / len(details),
                examples=under[:3],
                suggested_fix="Add calibration examples with higher expected scores",
                description=f"{len(under)}/{len(details)} predictions underestimate by more than {OVERESTIMATION_ERROR}"
            ))

        if std_dev([d["error"] for d in details]) > HIGH_VARIANCE_STD:
            ranked = sorted(details, key=lambda d: d["absolute_error"], reverse=True)
            patterns.append(FailurePattern(
                type="high-variance",
                frequency=1.0,
                examples=ranked[:2] + ranked[-1:] if len(ranked) > 2 else ranked,
                suggested_fix="Improve prompt consistency or use more structured output format",
                description="Prediction errors vary widely across samples"
            ))

        edge_cases = [d for d in details if d["actual"] < 0.1 or d["actual"] > 0.9]
        edge_errors = [d for d in edge_cases if abs(d["error"]) > EDGE_CASE_ERROR]
        if edge_cases and len(edge_errors) > len(edge_cases) * 0.5:
            patterns.append(FailurePattern(
                type="edge-case-failures",
                frequency=len(edge_errors) / len(edge_cases),
                examples=edge_errors[:3],
                suggested_fix="Add specific handling for edge cases in prompt",
                description="Extreme ground-truth scores are predicted poorly"
            ))

        return patterns

    def _consistency(self, predictions: List[float], truths: List[float]) -> float:
        """Mean of 1 - variance of predictions within ground-truth buckets."""
        groups: Dict[float, List[float]] = {}
        for predicted, actual in zip(predictions, truths):
            bucket = round(actual / CONSISTENCY_BUCKET) * CONSISTENCY_BUCKET
            groups.setdefault(round(bucket, 6), []).append(predicted)

        scores = [max(0.0, 1.0 - variance(group)) for group in groups.values() if len(group) > 1]
        return mean(scores) if scores else 1.0

    def _error_patterns(self, details: List[Dict[str, Any]]) -> List[str]:
        patterns: List[str] = []
        if not details:
            return patterns

        high_errors = [d for d in details if d["absolute_error"] > 0.2]
        if len(high_errors) > len(details) * 0.3:
            patterns.append(
                f"High error rate: {len(high_errors)}/{len(details)} predictions have >20% error"
            )

        low_values = [d for d in details if d["actual"] < 0.3]
        low_errors = [d for d in low_values if d["absolute_error"] > 0.15]
        if low_values and len(low_errors) > len(low_values) * 0.5:
            patterns.append("Poor performance on low-value predictions")

        high_values = [d for d in details if d["actual"] > 0.7]
        high_value_errors = [d for d in high_values if d["absolute_error"] > 0.15]
        if high_values and len(high_value_errors) > len(high_values) * 0.5:
            patterns.append("Poor performance on high-value predictions")

        return patterns

    def _improvements(self, metrics: Dict[str, Any]) -> List[str]:
        suggestions: List[str] = []
        if metrics.get("rmse", 0.0) > 0.15:
            suggestions.append("Consider using a more powerful model or refining the prompt")
        if abs(metrics.get("bias", 0.0)) > 0.1:
            suggestions.append("Add calibration examples to correct systematic bias")
        if metrics.get("consistency", 1.0) < 0.8:
            suggestions.append("Reduce temperature for more consistent predictions")
        if metrics.get("correlation", 1.0) < 0.7:
            suggestions.append("Review scoring criteria alignment with ground truth")
        return suggestions
