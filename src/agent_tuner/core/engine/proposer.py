"""Proposes the next configuration from an evaluation and research insights."""

from typing import Dict, List, Literal, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ...models import Configuration, DetailedEvaluation, ResearchInsight, SampleResult
from .prompt_rewriter import PromptRewriter

ProposalStrategy = Literal["prompt", "parameter", "model", "hybrid"]

MODEL_UPGRADES: Dict[str, str] = {
    "gpt-4o-mini": "gpt-4o",
    "claude-3-haiku": "claude-3-sonnet",
    "gpt-3.5-turbo": "gpt-4o-mini",
}

MODEL_UPGRADE_SCORE = 0.5
TEMPERATURE_STEP = 0.2
MIN_TEMPERATURE = 0.1
MAX_TEMPERATURE = 1.0
TEMPERATURE_CANDIDATES = [0.1, 0.3, 0.5, 0.7, 0.9]
MIN_TEMPERATURE_CHANGE = 0.1

BASE_EXPECTED_IMPROVEMENT = 0.1
INSIGHT_IMPROVEMENT_SCALE = 0.3
CONSISTENCY_TEMPERATURE_GAIN = 0.15
TEMPERATURE_GAIN = 0.05
FAILURE_SIMILARITY = 1.0

PROMPT_KEYWORDS = ("prompt", "instruction", "format", "clarity", "unclear", "vague")
PROMPT_PATTERN_KEYWORDS = ("missing", "edge-case", "estimation", "fact", "incomplete", "low-scores")
INCONSISTENCY_KEYWORDS = ("consisten", "variance", "stability", "unstable")
CREATIVITY_KEYWORDS = ("creativ", "divers", "repetit")
TEMPERATURE_KEYWORDS = ("temperature",)


def _mentions(texts: List[str], keywords) -> bool:
    return any(keyword in text.lower() for text in texts for keyword in keywords)


class Proposal(BaseModel):
    """Next configuration with the reasoning behind it."""

    configuration: Configuration
    strategy: ProposalStrategy
    changes: List[str] = Field(default_factory=list)
    expected_improvement: float = 0.0


class ConfigurationProposer:
    """Chooses prompt, parameter or model changes for the next iteration."""

    def __init__(self, rewriter: Optional[PromptRewriter] = None):
        """Initialize proposer; prompt changes need a rewriter."""
        self.rewriter = rewriter

    def select_strategy(
        self,
        configuration: Configuration,
        evaluation: DetailedEvaluation,
        insights: List[ResearchInsight]
    ) -> ProposalStrategy:
        """Pick one strategy; several needs combine into hybrid, none defaults to prompt."""
        needs: List[ProposalStrategy] = []
        if self._needs_prompt(evaluation, insights):
            needs.append("prompt")
        if self._needs_parameter(evaluation, insights):
            needs.append("parameter")
        if self._needs_model(configuration, evaluation):
            needs.append("model")

        if len(needs) > 1:
            return "hybrid"
        return needs[0] if needs else "prompt"

    async def propose(
        self,
        configuration: Configuration,
        evaluation: DetailedEvaluation,
        insights: List[ResearchInsight]
    ) -> Proposal:
        """Build the next configuration and document what changed."""
        strategy = self.select_strategy(configuration, evaluation, insights)
        proposed = configuration

        if strategy in ("prompt", "hybrid"):
            proposed = await self._optimize_prompt(proposed, evaluation, insights)
        if strategy in ("parameter", "hybrid"):
            proposed = self.tune_parameters(proposed, evaluation, insights)
        if strategy in ("model", "hybrid"):
            proposed = self.select_model(proposed, evaluation.result.score)

        changes = self.document_changes(configuration, proposed)
        expected = self.expected_improvement(configuration, proposed, evaluation, insights)
        logger.info(
            f"Proposed {strategy} change: {'; '.join(changes) or 'no change'} "
            f"(expected +{expected:.2f})"
        )

        return Proposal(
            configuration=proposed,
            strategy=strategy,
            changes=changes,
            expected_improvement=expected
        )

    def tune_parameters(
        self,
        configuration: Configuration,
        evaluation: DetailedEvaluation,
        insights: List[ResearchInsight]
    ) -> Configuration:
        """Move temperature by one step, or toward the closest suggested setting."""
        current = configuration.temperature
        if self._inconsistent(evaluation):
            temperature = max(MIN_TEMPERATURE, current - TEMPERATURE_STEP)
        elif _mentions(evaluation.feedback.weaknesses, CREATIVITY_KEYWORDS):
            temperature = min(MAX_TEMPERATURE, current + TEMPERATURE_STEP)
        elif self._temperature_insights(insights):
            candidates = [t for t in TEMPERATURE_CANDIDATES if abs(t - current) > MIN_TEMPERATURE_CHANGE]
            if not candidates:
                return configuration
            temperature = min(candidates, key=lambda t: abs(t - current))
        else:
            return configuration

        return configuration.with_overrides(temperature=round(temperature, 2))

    def select_model(self, configuration: Configuration, score: float) -> Configuration:
        """Upgrade to the next stronger model when the score is poor."""
        upgrade = MODEL_UPGRADES.get(configuration.model)
        if score < MODEL_UPGRADE_SCORE and upgrade:
            return configuration.with_overrides(model=upgrade)
        return configuration

    def document_changes(self, original: Configuration, proposed: Configuration) -> List[str]:
        changes = []
        if original.model != proposed.model:
            changes.append(f"Model: {original.model} → {proposed.model}")
        if original.temperature != proposed.temperature:
            changes.append(f"Temperature: {original.temperature} → {proposed.temperature}")
        if original.prompt_id != proposed.prompt_id:
            changes.append(f"Prompt: {original.prompt_id} → {proposed.prompt_id}")
        if original.max_tokens != proposed.max_tokens:
            changes.append(f"Max tokens: {original.max_tokens} → {proposed.max_tokens}")
        return changes

    def expected_improvement(
        self,
        original: Configuration,
        proposed: Configuration,
        evaluation: DetailedEvaluation,
        insights: List[ResearchInsight]
    ) -> float:
        """Research-weighted estimate of the gain from the proposal."""
        expected = BASE_EXPECTED_IMPROVEMENT
        if insights:
            confidence = sum(i.confidence for i in insights) / len(insights)
            applicability = sum(i.applicability for i in insights) / len(insights)
            expected = confidence * applicability * INSIGHT_IMPROVEMENT_SCALE

        if original.temperature != proposed.temperature:
            gain = CONSISTENCY_TEMPERATURE_GAIN if self._inconsistent(evaluation) else TEMPERATURE_GAIN
            expected = max(expected, gain)
        return expected

    async def _optimize_prompt(
        self,
        configuration: Configuration,
        evaluation: DetailedEvaluation,
        insights: List[ResearchInsight]
    ) -> Configuration:
        if self.rewriter is None:
            logger.info("No prompt rewriter configured, skipping prompt change")
            return configuration

        try:
            new_prompt_id = await self.rewriter.rewrite(
                configuration.prompt_id,
                self._failures(evaluation),
                insights
            )
        except Exception as e:
            logger.warning(f"Prompt rewrite failed, keeping {configuration.prompt_id}: {e}")
            return configuration

        if new_prompt_id is None:
            return configuration
        return configuration.with_overrides(prompt_id=new_prompt_id)

    def _failures(self, evaluation: DetailedEvaluation) -> List[SampleResult]:
        if evaluation.test_result is None or not evaluation.test_result.sample_results:
            return []
        failed = [s for s in evaluation.test_result.sample_results if s.similarity < FAILURE_SIMILARITY]
        return sorted(failed, key=lambda s: s.similarity)

    def _needs_prompt(self, evaluation: DetailedEvaluation, insights: List[ResearchInsight]) -> bool:
        if _mentions(evaluation.feedback.weaknesses, PROMPT_KEYWORDS):
            return True
        if any(keyword in p.type for p in evaluation.patterns for keyword in PROMPT_PATTERN_KEYWORDS):
            return True
        return any("prompt" in (i.implementation or "").lower() for i in insights)

    def _needs_parameter(self, evaluation: DetailedEvaluation, insights: List[ResearchInsight]) -> bool:
        return self._inconsistent(evaluation) or self._temperature_insights(insights)

    def _needs_model(self, configuration: Configuration, evaluation: DetailedEvaluation) -> bool:
        return evaluation.result.score < MODEL_UPGRADE_SCORE and configuration.model in MODEL_UPGRADES

    def _inconsistent(self, evaluation: DetailedEvaluation) -> bool:
        if _mentions(evaluation.feedback.weaknesses, INCONSISTENCY_KEYWORDS):
            return True
        return any("variance" in p.type for p in evaluation.patterns)

    def _temperature_insights(self, insights: List[ResearchInsight]) -> bool:
        return any(
            _mentions([i.implementation or "", i.strategy], TEMPERATURE_KEYWORDS)
            for i in insights
        )
