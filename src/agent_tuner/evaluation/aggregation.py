"""Combining results from several evaluation strategies."""

from typing import Any, Dict, List, Optional, Tuple

from ..errors import ConfigurationError
from ..models import AggregationMethod, EvaluationResult
from .stats import mean, variance

VOTING_BANDS: List[Tuple[float, str]] = [
    (0.9, "excellent"),
    (0.7, "good"),
    (0.5, "fair"),
    (0.3, "poor"),
]
LOWEST_BAND = "very-poor"
MIN_ENSEMBLE_CONFIDENCE = 0.5


def score_band(score: float) -> str:
    """Voting band label for a score."""
    for threshold, label in VOTING_BANDS:
        if score >= threshold:
            return label
    return LOWEST_BAND


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _merge_first_seen(results: List[EvaluationResult]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for result in results:
        for key, value in result.metrics.items():
            merged.setdefault(key, value)
    return merged


def _merge_insights(results: List[EvaluationResult], note: str) -> List[str]:
    insights = [insight for r in results for insight in r.insights]
    return list(dict.fromkeys(insights)) + [note]


def aggregate_weighted(
    results: List[EvaluationResult],
    weights: Optional[List[float]] = None
) -> EvaluationResult:
    """Weighted mean of scores and numeric metrics; equal weights when absent."""
    if weights is None:
        weights = [1.0] * len(results)
    if len(weights) != len(results):
        raise ConfigurationError(
            f"Got {len(weights)} weights for {len(results)} strategies"
        )
    total = sum(weights)
    if total <= 0:
        raise ConfigurationError("Aggregation weights must sum to a positive value")
    normalized = [w / total for w in weights]

    score = sum(r.score * w for r, w in zip(results, normalized))

    metrics: Dict[str, Any] = {}
    weight_by_key: Dict[str, float] = {}
    for result, weight in zip(results, normalized):
        for key, value in result.metrics.items():
            if _is_number(value):
                if key not in metrics or _is_number(metrics[key]):
                    metrics[key] = metrics.get(key, 0.0) + value * weight
                    weight_by_key[key] = weight_by_key.get(key, 0.0) + weight
            else:
                metrics.setdefault(key, value)
    for key, weight in weight_by_key.items():
        if weight > 0:
            metrics[key] = metrics[key] / weight

    return EvaluationResult(
        score=min(1.0, max(0.0, score)),
        metrics=metrics,
        details=[d for r in results for d in r.details],
        insights=_merge_insights(results, "Aggregated using weighted method")
    )


def aggregate_voting(results: List[EvaluationResult]) -> EvaluationResult:
    """Majority score band wins; ties go to the first band seen."""
    bands: Dict[str, List[float]] = {}
    for result in results:
        bands.setdefault(score_band(result.score), []).append(result.score)

    winner = None
    for band, scores in bands.items():
        if winner is None or len(scores) > len(bands[winner]):
            winner = band

    winning_scores = bands[winner]
    confidence = len(winning_scores) / len(results)
    metrics = _merge_first_seen(results)
    metrics["voting_category"] = winner
    metrics["voting_confidence"] = confidence

    return EvaluationResult(
        score=mean(winning_scores),
        metrics=metrics,
        details=[d for r in results for d in r.details],
        insights=_merge_insights(
            results,
            f"Voting selected '{winner}' with {confidence:.0%} agreement"
        )
    )


def aggregate_ensemble(results: List[EvaluationResult]) -> EvaluationResult:
    """Mean score discounted by disagreement, never below half the mean."""
    scores = [r.score for r in results]
    average = mean(scores)
    spread = variance(scores)
    confidence = max(MIN_ENSEMBLE_CONFIDENCE, 1.0 - spread)

    metrics = _merge_first_seen(results)
    metrics["ensemble_mean"] = average
    metrics["ensemble_variance"] = spread
    metrics["ensemble_confidence"] = confidence

    return EvaluationResult(
        score=average * confidence,
        metrics=metrics,
        details=[d for r in results for d in r.details],
        insights=_merge_insights(results, "Aggregated using ensemble method")
    )


def aggregate_results(
    results: List[EvaluationResult],
    method: AggregationMethod = "weighted",
    weights: Optional[List[float]] = None
) -> EvaluationResult:
    """Merge strategy results with one aggregation method."""
    if not results:
        raise ConfigurationError("Nothing to aggregate")
    if method == "weighted":
        return aggregate_weighted(results, weights)
    if method == "voting":
        return aggregate_voting(results)
    if method == "ensemble":
        return aggregate_ensemble(results)
    raise ConfigurationError(f"Unknown aggregation method '{method}'")
