"""Tests for OutputComparator."""

import asyncio

import pytest

from agent_tuner.core import OutputComparator, numeric_similarity
from agent_tuner.errors import ConfigurationError
from agent_tuner.models import ComparisonConfig

from conftest import FailingJudge, StaticJudge, make_configuration


def compare(comparator, actual, expected, method="numeric", field=None):
    return asyncio.run(comparator.compare(actual, expected, ComparisonConfig(method=method, field=field)))


class TestNumericSimilarity:
    """numeric_similarity decay"""

    def test_equal_values(self):
        assert numeric_similarity(7.0, 7.0) == 1.0
        assert numeric_similarity(0.0, 0.0) == 1.0

    def test_symmetric(self):
        assert numeric_similarity(3.0, 8.0) == pytest.approx(numeric_similarity(8.0, 3.0))

    def test_relative_difference(self):
        assert numeric_similarity(5.0, 10.0) == pytest.approx(0.36787944, rel=1e-6)

    def test_bounds(self):
        for a, b in [(1.0, 100.0), (-5.0, 5.0), (0.0, 3.0), (0.1, 0.11)]:
            assert 0.0 <= numeric_similarity(a, b) <= 1.0


class TestNumericComparison:
    """numeric method"""

    def test_unwraps_containers(self):
        outcome = compare(OutputComparator(), {"score": 8}, {"value": "8"})
        assert outcome.similarity == 1.0
        assert outcome.method == "numeric"

    def test_reads_leading_number_of_text_reply(self):
        assert compare(OutputComparator(), "8 out of 10", 8).similarity == 1.0
        assert compare(OutputComparator(), "7.5 points", {"score": 7.5}).similarity == 1.0

    def test_unparsable_scores_zero(self):
        outcome = compare(OutputComparator(), "not a number", 5)
        assert outcome.similarity == 0.0
        assert outcome.reasoning

    def test_idempotent(self):
        comparator = OutputComparator()
        first = compare(comparator, 6, 9)
        second = compare(comparator, 6, 9)
        assert first.similarity == second.similarity

    def test_field_selection(self):
        outcome = compare(OutputComparator(), {"rating": 4, "score": 1}, {"rating": 4, "score": 9}, field="rating")
        assert outcome.similarity == 1.0


class TestExactComparison:
    """exact method"""

    def test_key_order_ignored(self):
        outcome = compare(OutputComparator(), {"a": 1, "b": [1, 2]}, {"b": [1, 2], "a": 1}, method="exact")
        assert outcome.similarity == 1.0

    def test_mismatch(self):
        outcome = compare(OutputComparator(), "positive", "negative", method="exact")
        assert outcome.similarity == 0.0


class TestJudgeComparison:
    """llm and auto methods"""

    def test_judge_verdict(self):
        judge = StaticJudge('{"similarity": 0.8, "reasoning": "close"}')
        outcome = compare(OutputComparator(judge=judge), "good", "great", method="llm")
        assert outcome.similarity == pytest.approx(0.8)
        assert outcome.reasoning == "close"
        assert outcome.method == "llm"

    def test_failing_judge_falls_back_to_exact(self):
        judge = FailingJudge()
        comparator = OutputComparator(judge=judge)
        equal = compare(comparator, "same", "same", method="llm")
        different = compare(comparator, "one", "other", method="llm")
        assert equal.similarity == 1.0
        assert different.similarity == 0.0
        assert equal.method == "exact"
        assert equal.reasoning.startswith("Judge fallback")
        assert judge.calls == 2

    @pytest.mark.parametrize("output", [
        '{"similarity": 1.5}',
        '{"similarity": "high"}',
        '["not", "an", "object"]',
        "plain text",
    ])
    def test_malformed_judge_output_falls_back(self, output):
        outcome = compare(OutputComparator(judge=StaticJudge(output)), "x", "x", method="llm")
        assert outcome.similarity == 1.0
        assert outcome.method == "exact"

    def test_llm_without_judge_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            compare(OutputComparator(), "a", "b", method="llm")

    def test_auto_uses_numeric_for_numbers(self):
        judge = FailingJudge()
        outcome = compare(OutputComparator(judge=judge), "7", 7, method="auto")
        assert outcome.method == "numeric"
        assert judge.calls == 0

    def test_auto_uses_judge_for_text(self):
        judge = StaticJudge('{"similarity": 0.4, "reasoning": "partial"}')
        outcome = compare(OutputComparator(judge=judge), "ok", "fine", method="auto")
        assert outcome.method == "llm"


class TestComparisonConfig:
    """Explicit comparison requirement and schema inference"""

    def test_missing_comparison_raises(self):
        with pytest.raises(ConfigurationError):
            asyncio.run(OutputComparator().compare(1, 1, None))

    def test_infer_from_score_property(self):
        inferred = ComparisonConfig.infer(make_configuration())
        assert inferred.method == "numeric"
        assert inferred.field is None

    def test_infer_single_numeric_property(self):
        configuration = make_configuration(
            output_schema={"type": "object", "properties": {"rating": {"type": "integer"}}}
        )
        assert ComparisonConfig.infer(configuration).field == "rating"

    def test_infer_plain_number(self):
        configuration = make_configuration(output_schema={"type": "number"})
        assert ComparisonConfig.infer(configuration).method == "numeric"

    def test_no_inference_for_text(self):
        configuration = make_configuration(output_schema={"type": "string"})
        assert ComparisonConfig.infer(configuration) is None
        assert ComparisonConfig.infer(make_configuration(output_schema=None)) is None
