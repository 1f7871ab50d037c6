"""Iterative optimization loop: evaluate, research, propose, commit."""

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from loguru import logger

from ...errors import BudgetExceededError, ConfigurationError, IterationError
from ...evaluation.evaluator import ConfigurationEvaluator
from ...models import (
    Configuration,
    DatasetSample,
    DetailedEvaluation,
    FlowConfig,
    OptimizationParams,
    OptimizationResult,
    ProgressSink,
    ResearchInsight,
)
from ..events import EventEmitter
from ..state import OptimizationState
from ..tester import TestOptions
from .proposer import ConfigurationProposer
from .research import ResearchAdvisor

CheckpointCallback = Callable[[OptimizationState], Union[None, Awaitable[None]]]

RECENT_STEPS = 3
IMPROVING_RATIO = 1.2
DECLINING_RATIO = 0.8
LIMITED_IMPROVEMENT = 0.1


def deduplicate_insights(insights: List[ResearchInsight]) -> List[ResearchInsight]:
    """Keep the first insight per (source, strategy)."""
    seen = set()
    unique = []
    for insight in insights:
        key = (insight.source, insight.strategy)
        if key not in seen:
            seen.add(key)
            unique.append(insight)
    return unique


class FlowOrchestrator:
    """Runs optimization iterations until a stopping condition holds."""

    def __init__(
        self,
        evaluator: ConfigurationEvaluator,
        proposer: Optional[ConfigurationProposer] = None,
        advisor: Optional[ResearchAdvisor] = None
    ):
        """Initialize orchestrator with evaluation, proposal and research collaborators."""
        self.evaluator = evaluator
        self.proposer = proposer or ConfigurationProposer()
        self.advisor = advisor or ResearchAdvisor()

    async def run(
        self,
        initial_configuration: Configuration,
        dataset: Sequence[DatasetSample],
        params: Optional[OptimizationParams] = None,
        flow_config: Optional[FlowConfig] = None,
        checkpoint: Optional[CheckpointCallback] = None,
        on_progress: Optional[ProgressSink] = None,
        options: Optional[TestOptions] = None
    ) -> OptimizationResult:
        """Optimize initial_configuration against dataset."""
        params = params or OptimizationParams()
        state = OptimizationState(params, initial_configuration)
        logger.info(
            f"Starting optimization {state.run_id}: target={params.target_score}, "
            f"max_iterations={params.max_iterations}"
        )
        return await self._loop(state, dataset, flow_config, checkpoint, on_progress, options)

    async def resume(
        self,
        state_data: Dict[str, Any],
        dataset: Sequence[DatasetSample],
        flow_config: Optional[FlowConfig] = None,
        checkpoint: Optional[CheckpointCallback] = None,
        on_progress: Optional[ProgressSink] = None,
        options: Optional[TestOptions] = None
    ) -> OptimizationResult:
        """Continue a run from a to_dict snapshot."""
        state = OptimizationState.from_dict(state_data)
        logger.info(
            f"Resuming optimization {state.run_id} from iteration {state.iteration_count} "
            f"(score {state.score:.3f})"
        )
        return await self._loop(state, dataset, flow_config, checkpoint, on_progress, options)

    async def _loop(
        self,
        state: OptimizationState,
        dataset: Sequence[DatasetSample],
        flow_config: Optional[FlowConfig],
        checkpoint: Optional[CheckpointCallback],
        on_progress: Optional[ProgressSink],
        options: Optional[TestOptions]
    ) -> OptimizationResult:
        flow_config = flow_config or FlowConfig()
        params = state.params
        self.evaluator.reset_history()
        events = EventEmitter(on_progress, enabled=flow_config.emit_progress)
        events.emit(
            "started",
            f"Optimization {state.run_id} started",
            completed=state.iteration_count,
            total=params.max_iterations
        )

        early_stopped = False
        while not state.is_complete():
            iteration = state.iteration_count + 1
            logger.info(f"Iteration {iteration}/{params.max_iterations}")
            try:
                await self._run_iteration(state, dataset, options)
                if checkpoint is not None:
                    await self._checkpoint(checkpoint, state)
            except Exception as e:
                if state.iteration_count == 0:
                    logger.error(f"Iteration {iteration} failed: {e}")
                    events.emit("error", str(e), completed=0, total=params.max_iterations)
                    if isinstance(e, (ConfigurationError, BudgetExceededError)):
                        raise
                    raise IterationError(iteration, str(e)) from e
                logger.warning(f"Iteration {iteration} failed, stopping early: {e}")
                events.emit(
                    "early_stop",
                    f"Iteration {iteration} failed: {e}",
                    completed=state.iteration_count,
                    total=params.max_iterations,
                    best_score=state.score
                )
                early_stopped = True
                break

            summary = state.summary()
            if flow_config.verbose:
                for recommendation in state.recommendations():
                    logger.info(f"Recommendation: {recommendation}")
            logger.info(summary)
            events.emit(
                "progress",
                summary,
                completed=state.iteration_count,
                total=params.max_iterations,
                best_score=state.score
            )

        result = state.finalize(early_stopped=early_stopped)
        logger.success(
            f"Optimization finished ({result.stopped_reason}): "
            f"score={result.final_score:.3f}, iterations={result.iterations}, "
            f"improvement={result.total_improvement:+.3f}"
        )
        events.emit(
            "completed",
            f"Stopped: {result.stopped_reason}",
            completed=result.iterations,
            total=params.max_iterations,
            best_score=result.best_score
        )
        return result

    async def _run_iteration(
        self,
        state: OptimizationState,
        dataset: Sequence[DatasetSample],
        options: Optional[TestOptions]
    ) -> None:
        params = state.params
        evaluation = await self._evaluate(state, dataset, options)
        logger.info(f"Evaluation score: {evaluation.result.score:.3f} ({evaluation.strategy_name})")

        if evaluation.result.score >= params.target_score:
            state.update(state.current_configuration, evaluation)
            logger.success(f"Target score {params.target_score} reached")
            return

        insights: List[ResearchInsight] = []
        if params.enable_research:
            insights = self._research(evaluation, params.max_insights)
            logger.info(f"Found {len(insights)} research insights")

        proposal = await self.proposer.propose(state.current_configuration, evaluation, insights)
        state.update(proposal.configuration, evaluation, insights)

    async def _evaluate(
        self,
        state: OptimizationState,
        dataset: Sequence[DatasetSample],
        options: Optional[TestOptions]
    ) -> DetailedEvaluation:
        config = state.params.evaluation
        if state.evaluation_history:
            return await self.evaluator.evaluate_with_history(
                state.current_configuration,
                dataset,
                state.evaluation_history,
                config,
                options
            )
        return await self.evaluator.evaluate(state.current_configuration, dataset, config, options)

    def _research(self, evaluation: DetailedEvaluation, max_insights: int) -> List[ResearchInsight]:
        insights = self.advisor.find_strategies(evaluation.feedback)
        if evaluation.patterns:
            insights = insights + self.advisor.research_patterns(evaluation.patterns)
        return self.advisor.rank(deduplicate_insights(insights), limit=max_insights)

    async def _checkpoint(self, checkpoint: CheckpointCallback, state: OptimizationState) -> None:
        outcome = checkpoint(state)
        if inspect.isawaitable(outcome):
            await outcome

    def analyze_history(self, result: OptimizationResult) -> Dict[str, Any]:
        """Best and worst iterations, improvement trend and follow-up advice."""
        history = result.history
        if not history:
            return {
                "best_iteration": -1,
                "worst_iteration": -1,
                "average_improvement": 0.0,
                "trend": "stable",
                "recommendations": ["No optimization history available"],
            }

        best = max(history, key=lambda step: step.score)
        worst = min(history, key=lambda step: step.score)
        average = sum(step.improvement for step in history) / len(history)
        recent = history[-RECENT_STEPS:]
        recent_average = sum(step.improvement for step in recent) / len(recent)

        if recent_average > average * IMPROVING_RATIO:
            trend = "improving"
        elif recent_average < average * DECLINING_RATIO:
            trend = "declining"
        else:
            trend = "stable"

        recommendations = []
        if result.converged:
            recommendations.append("Optimization converged - consider more aggressive strategies")
        if result.stopped_reason == "no-improvement":
            recommendations.append("Optimization stuck - try different evaluation methods")
        if trend == "declining":
            recommendations.append("Performance declining - review recent changes")
        if result.total_improvement < LIMITED_IMPROVEMENT:
            recommendations.append("Limited improvement achieved - consider alternative approaches")

        return {
            "best_iteration": best.iteration,
            "worst_iteration": worst.iteration,
            "average_improvement": average,
            "trend": trend,
            "recommendations": recommendations,
        }
