"""Tests for proposal, research and prompt rewriting."""

import asyncio

import pytest

from agent_tuner.core import ConfigurationProposer, PromptRewriter, ResearchAdvisor
from agent_tuner.models import (
    DetailedEvaluation,
    DetailedFeedback,
    EvaluationResult,
    FailurePattern,
    ResearchInsight,
    SampleResult,
    TestMetrics,
    TestResult,
)

from conftest import FakeLLMClient, make_configuration


def evaluation(score=0.6, weaknesses=None, patterns=None, sample_results=None):
    test_result = None
    if sample_results is not None:
        test_result = TestResult(
            configuration=make_configuration(),
            metrics=TestMetrics(score=score, error=1 - score, rmse=0.0, sample_count=len(sample_results)),
            duration_ms=1.0,
            sample_results=sample_results
        )
    return DetailedEvaluation(
        result=EvaluationResult(score=score),
        strategy_name="numeric-score",
        feedback=DetailedFeedback(weaknesses=weaknesses or []),
        patterns=patterns or [],
        test_result=test_result
    )


def temperature_insight():
    return ResearchInsight(
        source="knowledge-base:stability",
        strategy="Test different temperature settings",
        confidence=0.85,
        applicability=0.6,
        implementation="Adjust temperature parameter"
    )


class BrokenLLMClient(FakeLLMClient):
    async def achat_completion(self, messages, model=None, temperature=None, max_tokens=None, json_mode=False) -> str:
        raise RuntimeError("rate limited")


class TestSelectStrategy:
    """ConfigurationProposer.select_strategy"""

    def test_prompt_for_unclear_instructions(self):
        proposer = ConfigurationProposer()
        strategy = proposer.select_strategy(
            make_configuration(), evaluation(weaknesses=["Output format is unclear"]), []
        )
        assert strategy == "prompt"

    def test_parameter_for_inconsistency(self):
        proposer = ConfigurationProposer()
        strategy = proposer.select_strategy(
            make_configuration(), evaluation(weaknesses=["Inconsistent predictions"]), []
        )
        assert strategy == "parameter"

    def test_model_for_poor_score(self):
        proposer = ConfigurationProposer()
        assert proposer.select_strategy(make_configuration(), evaluation(score=0.3), []) == "model"

    def test_several_needs_become_hybrid(self):
        proposer = ConfigurationProposer()
        strategy = proposer.select_strategy(
            make_configuration(), evaluation(score=0.3, weaknesses=["High variance"]), []
        )
        assert strategy == "hybrid"

    def test_defaults_to_prompt(self):
        proposer = ConfigurationProposer()
        assert proposer.select_strategy(make_configuration(model="custom"), evaluation(), []) == "prompt"


class TestParameterAndModel:
    """tune_parameters and select_model"""

    def test_inconsistency_lowers_temperature_with_floor(self):
        proposer = ConfigurationProposer()
        unstable = evaluation(weaknesses=["Unstable scores"])
        assert proposer.tune_parameters(make_configuration(temperature=0.5), unstable, []).temperature == 0.3
        assert proposer.tune_parameters(make_configuration(temperature=0.1), unstable, []).temperature == 0.1

    def test_creativity_raises_temperature(self):
        proposer = ConfigurationProposer()
        repetitive = evaluation(weaknesses=["Repetitive answers"])
        assert proposer.tune_parameters(make_configuration(temperature=0.5), repetitive, []).temperature == 0.7

    def test_temperature_insight_moves_to_candidate(self):
        proposer = ConfigurationProposer()
        tuned = proposer.tune_parameters(make_configuration(temperature=0.2), evaluation(), [temperature_insight()])
        assert tuned.temperature == 0.5

    def test_no_signal_keeps_configuration(self):
        proposer = ConfigurationProposer()
        configuration = make_configuration()
        assert proposer.tune_parameters(configuration, evaluation(), []) is configuration

    def test_select_model(self):
        proposer = ConfigurationProposer()
        assert proposer.select_model(make_configuration(), 0.3).model == "gpt-4o"
        assert proposer.select_model(make_configuration(), 0.6).model == "gpt-4o-mini"
        assert proposer.select_model(make_configuration(model="custom"), 0.1).model == "custom"

    def test_expected_improvement(self):
        proposer = ConfigurationProposer()
        configuration = make_configuration()
        insight = ResearchInsight(source="kb", strategy="x", confidence=0.9, applicability=0.5)

        assert proposer.expected_improvement(configuration, configuration, evaluation(), []) == pytest.approx(0.1)
        assert proposer.expected_improvement(
            configuration, configuration, evaluation(), [insight]
        ) == pytest.approx(0.135)
        assert proposer.expected_improvement(
            configuration,
            configuration.with_overrides(temperature=0.3),
            evaluation(weaknesses=["High variance"]),
            [insight]
        ) == pytest.approx(0.15)


class TestPromptProposal:
    """Prompt changes through PromptRewriter"""

    def test_prompt_rewrite(self, prompts):
        llm = FakeLLMClient(["Missing rating scale", "Rate this review from 0 to 10, integers only: {input}"])
        proposer = ConfigurationProposer(PromptRewriter(llm, prompts))
        failures = [SampleResult(input={"text": "meh"}, expected={"score": 5}, actual={"score": 9}, similarity=0.2)]

        proposal = asyncio.run(proposer.propose(
            make_configuration(),
            evaluation(weaknesses=["Output format is unclear"], sample_results=failures),
            []
        ))

        assert proposal.strategy == "prompt"
        assert proposal.configuration.prompt_id == "rating_v1_v1"
        assert proposal.changes == ["Prompt: rating_v1 → rating_v1_v1"]
        assert asyncio.run(prompts.get("rating_v1_v1")).startswith("Rate this review")
        assert "meh" in llm.requests[0]["messages"][1]["content"]

    def test_rewrite_failure_keeps_prompt(self, prompts):
        proposer = ConfigurationProposer(PromptRewriter(BrokenLLMClient(), prompts))
        proposal = asyncio.run(proposer.propose(
            make_configuration(), evaluation(weaknesses=["Vague instructions"]), []
        ))
        assert proposal.configuration == make_configuration()
        assert proposal.changes == []

    def test_unchanged_rewrite_returns_none(self, prompts):
        llm = FakeLLMClient(["fine", "Rate this review from 0 to 10: {input}"])
        rewriter = PromptRewriter(llm, prompts)
        assert asyncio.run(rewriter.rewrite("rating_v1", [], [])) is None

    def test_missing_prompt_returns_none(self, prompts):
        llm = FakeLLMClient()
        rewriter = PromptRewriter(llm, prompts)
        assert asyncio.run(rewriter.rewrite("unknown", [], [])) is None
        assert llm.requests == []


class TestResearchAdvisor:
    """ResearchAdvisor"""

    def test_extract_topics(self):
        advisor = ResearchAdvisor()
        feedback = DetailedFeedback(
            weaknesses=["Weak correlation with expected scores", "Positive bias detected"],
            patterns=["consistent-overestimation (60%)"]
        )
        assert advisor.extract_topics(feedback) == [
            "correlation-improvement", "bias-correction", "calibration",
        ]
        assert advisor.extract_topics(DetailedFeedback()) == ["general-optimization"]

    def test_find_strategies_ranks_applicable_insights(self):
        advisor = ResearchAdvisor()
        insights = advisor.find_strategies(DetailedFeedback(weaknesses=["Poor consistency between runs"]))

        assert [i.strategy for i in insights] == [
            "Use structured output format for consistency",
            "Add consistency checks to the prompt",
        ]
        assert insights[0].source == "knowledge-base:consistency-enhancement"
        assert insights[0].confidence == 0.75
        assert insights[0].applicability == pytest.approx(0.7)

    def test_insights_without_evidence_are_dropped(self):
        assert ResearchAdvisor().find_strategies(DetailedFeedback()) == []

    def test_research_patterns(self):
        advisor = ResearchAdvisor()
        patterns = [
            FailurePattern(type="persistent-high-variance", frequency=0.5, suggested_fix="Lower temperature"),
            FailurePattern(type="odd-one", frequency=1.0, suggested_fix="Inspect outliers"),
        ]
        insights = advisor.research_patterns(patterns)

        assert len(insights) == 4
        assert insights[0].source == "pattern-research-high-variance"
        assert insights[0].confidence == pytest.approx(0.7)
        assert insights[0].applicability == 0.5
        assert insights[-1].strategy == "Inspect outliers"

    def test_rank_with_limit(self):
        advisor = ResearchAdvisor()
        low = ResearchInsight(source="kb", strategy="low", confidence=0.2, applicability=0.2)
        high = ResearchInsight(source="kb", strategy="high", confidence=0.9, applicability=0.9)
        assert [i.strategy for i in advisor.rank([low, high], limit=1)] == ["high"]

    def test_topic_cache(self):
        advisor = ResearchAdvisor({"general-optimization": ["Add few-shot examples"]})
        feedback = DetailedFeedback(action_items=["Add few-shot examples"])
        assert len(advisor.find_strategies(feedback)) == 1

        advisor.knowledge_base = {"general-optimization": []}
        assert len(advisor.find_strategies(feedback)) == 1
        advisor.clear_cache()
        assert advisor.find_strategies(feedback) == []
