"""Tests for result aggregation."""

import pytest

from agent_tuner.errors import ConfigurationError
from agent_tuner.evaluation import aggregate_results, score_band
from agent_tuner.models import EvaluationResult


def results(*scores, **metrics):
    return [EvaluationResult(score=s, metrics=dict(metrics), insights=[f"insight {s}"]) for s in scores]


class TestScoreBand:
    """Voting bands"""

    @pytest.mark.parametrize("score,band", [
        (1.0, "excellent"),
        (0.9, "excellent"),
        (0.89, "good"),
        (0.5, "fair"),
        (0.3, "poor"),
        (0.29, "very-poor"),
        (0.0, "very-poor"),
    ])
    def test_bands(self, score, band):
        assert score_band(score) == band


class TestWeighted:
    """aggregate_results(method='weighted')"""

    def test_equal_weights_is_mean(self):
        items = [
            EvaluationResult(score=0.8, metrics={"rmse": 0.1, "label": "first"}),
            EvaluationResult(score=0.4, metrics={"rmse": 0.3, "label": "second"}),
        ]
        combined = aggregate_results(items)
        assert combined.score == pytest.approx(0.6)
        assert combined.metrics["rmse"] == pytest.approx(0.2)
        assert combined.metrics["label"] == "first"
        assert combined.insights[-1] == "Aggregated using weighted method"

    def test_explicit_weights(self):
        combined = aggregate_results(results(0.8, 0.4), "weighted", [3, 1])
        assert combined.score == pytest.approx(0.7)

    def test_weight_count_mismatch(self):
        with pytest.raises(ConfigurationError):
            aggregate_results(results(0.8, 0.4), "weighted", [1.0])

    def test_weights_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            aggregate_results(results(0.8, 0.4), "weighted", [0.0, 0.0])


class TestVoting:
    """aggregate_results(method='voting')"""

    def test_majority_band_wins(self):
        combined = aggregate_results(results(0.95, 0.92, 0.6), "voting")
        assert combined.score == pytest.approx(0.935)
        assert combined.metrics["voting_category"] == "excellent"
        assert combined.metrics["voting_confidence"] == pytest.approx(2 / 3)

    def test_tie_goes_to_first_seen_band(self):
        combined = aggregate_results(results(0.6, 0.95), "voting")
        assert combined.metrics["voting_category"] == "fair"
        assert combined.score == pytest.approx(0.6)
        assert combined.metrics["voting_confidence"] == 0.5


class TestEnsemble:
    """aggregate_results(method='ensemble')"""

    def test_discounted_by_disagreement(self):
        combined = aggregate_results(results(0.8, 0.4), "ensemble")
        assert combined.metrics["ensemble_mean"] == pytest.approx(0.6)
        assert combined.metrics["ensemble_variance"] == pytest.approx(0.04)
        assert combined.score == pytest.approx(0.576)

    def test_agreement_keeps_mean(self):
        combined = aggregate_results(results(0.7, 0.7, 0.7), "ensemble")
        assert combined.score == pytest.approx(0.7)

    def test_never_above_mean(self):
        for scores in [(0.1, 0.9), (0.0, 1.0), (0.5, 0.6, 0.7)]:
            combined = aggregate_results(results(*scores), "ensemble")
            assert combined.score <= combined.metrics["ensemble_mean"] + 1e-12
            assert combined.score >= combined.metrics["ensemble_mean"] * 0.5


class TestErrors:
    """Invalid aggregation input"""

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError):
            aggregate_results(results(0.5), "median")

    def test_empty(self):
        with pytest.raises(ConfigurationError):
            aggregate_results([])
