"""Mutable state of an iterative optimization run."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ...models import (
    Configuration,
    ConvergenceMetrics,
    DetailedEvaluation,
    DetailedFeedback,
    ImprovementStep,
    OptimizationParams,
    OptimizationResult,
    ResearchInsight,
)
from ...evaluation.stats import variance

MIN_CONVERGENCE_SCORES = 3
MAX_NO_IMPROVEMENT = 3
STUCK_RECOMMENDATION_AFTER = 2
NEAR_TARGET_DISTANCE = 0.1
SLOW_IMPROVEMENT = 0.02

TARGET_REACHED = "target-reached"
MAX_ITERATIONS = "max-iterations"
CONVERGED = "converged"
NO_IMPROVEMENT = "no-improvement"
ITERATION_ERROR = "iteration-error"


class OptimizationState:
    """Score, history and convergence bookkeeping across iterations."""

    def __init__(
        self,
        params: OptimizationParams,
        initial_configuration: Configuration,
        run_id: Optional[str] = None
    ):
        """Initialize state at iteration zero with the starting configuration."""
        self.params = params
        self.run_id = run_id or f"tune_run_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.current_configuration = initial_configuration
        self.iteration_count = 0
        self.score = 0.0
        self.last_improvement = 0.0
        self.feedback: Optional[DetailedFeedback] = None
        self.history: List[ImprovementStep] = []
        self.research_findings: List[ResearchInsight] = []
        self.convergence = ConvergenceMetrics()
        self.evaluation_history: List[DetailedEvaluation] = []
        self.started_at = datetime.now()

    def has_converged(self) -> bool:
        """Low variance across the recent score window."""
        scores = self.convergence.recent_scores
        if len(scores) < MIN_CONVERGENCE_SCORES:
            return False
        return variance(scores) < self.params.convergence_threshold

    def is_complete(self) -> bool:
        return (
            self.score >= self.params.target_score
            or self.iteration_count >= self.params.max_iterations
            or self.has_converged()
            or self.convergence.consecutive_no_improvement >= MAX_NO_IMPROVEMENT
        )

    def update(
        self,
        configuration: Configuration,
        evaluation: DetailedEvaluation,
        insights: Optional[List[ResearchInsight]] = None
    ) -> ImprovementStep:
        """Commit one evaluated iteration; configuration becomes the next candidate."""
        evaluated = self.current_configuration
        previous_score = self.score
        self.score = evaluation.result.score
        self.feedback = evaluation.feedback
        self.evaluation_history.append(evaluation)
        if insights:
            self.research_findings.extend(insights)

        improvement = self.score - previous_score
        self._update_convergence(improvement)

        step = ImprovementStep(
            iteration=self.iteration_count,
            configuration=evaluated,
            score=self.score,
            improvement=improvement,
            strategies_used=self._strategies_used(evaluation),
            feedback=evaluation.feedback.summary or None
        )
        self.history.append(step)
        self.iteration_count += 1
        self.current_configuration = configuration
        return step

    def best(self) -> Optional[Tuple[Configuration, float]]:
        """Highest-scoring evaluated configuration; earliest wins ties."""
        if not self.history:
            return None
        best_step = self.history[0]
        for step in self.history[1:]:
            if step.score > best_step.score:
                best_step = step
        return best_step.configuration, best_step.score

    def stopped_reason(self, early_stopped: bool = False) -> str:
        if self.score >= self.params.target_score:
            return TARGET_REACHED
        if self.iteration_count >= self.params.max_iterations:
            return MAX_ITERATIONS
        if self.has_converged():
            return CONVERGED
        if self.convergence.consecutive_no_improvement >= MAX_NO_IMPROVEMENT:
            return NO_IMPROVEMENT
        return ITERATION_ERROR if early_stopped else "incomplete"

    def finalize(self, early_stopped: bool = False) -> OptimizationResult:
        """Build the final result from the current state."""
        first_score = self.history[0].score if self.history else 0.0
        best = self.best()
        insights = list(dict.fromkeys(
            f"{i.strategy}: {i.description}" if i.description else i.strategy
            for i in self.research_findings
        ))
        final_configuration = self.history[-1].configuration if self.history else self.current_configuration

        return OptimizationResult(
            run_id=self.run_id,
            final_configuration=final_configuration,
            final_score=self.score,
            iterations=self.iteration_count,
            history=list(self.history),
            total_improvement=self.score - first_score,
            converged=self.has_converged(),
            stopped_reason=self.stopped_reason(early_stopped),
            best_configuration=best[0] if best else None,
            best_score=best[1] if best else 0.0,
            insights=insights
        )

    def summary(self) -> str:
        improvement = self.last_improvement
        trend = "↑" if improvement > 0 else "↓" if improvement < 0 else "→"
        sign = "+" if improvement > 0 else ""
        return (
            f"Iteration {self.iteration_count}: Score {self.score * 100:.1f}% {trend} "
            f"({sign}{improvement * 100:.1f}%) | "
            f"Avg improvement: {self.convergence.average_improvement * 100:.1f}%"
        )

    def recommendations(self) -> List[str]:
        recommendations = []
        if self.convergence.consecutive_no_improvement >= STUCK_RECOMMENDATION_AFTER:
            recommendations.append("Consider more aggressive optimization strategies")
            recommendations.append("Try different evaluation methods")
        if self.params.target_score - self.score < NEAR_TARGET_DISTANCE:
            recommendations.append("Fine-tune parameters for final optimization")
        if self.convergence.average_improvement < SLOW_IMPROVEMENT:
            recommendations.append("Optimization may be reaching limits - consider alternative approaches")
        return recommendations

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible snapshot for checkpointing."""
        return {
            "run_id": self.run_id,
            "params": self.params.model_dump(mode="json"),
            "current_configuration": self.current_configuration.model_dump(mode="json"),
            "iteration_count": self.iteration_count,
            "score": self.score,
            "last_improvement": self.last_improvement,
            "feedback": self.feedback.model_dump(mode="json") if self.feedback else None,
            "history": [step.model_dump(mode="json") for step in self.history],
            "research_findings": [i.model_dump(mode="json") for i in self.research_findings],
            "convergence": self.convergence.model_dump(mode="json"),
            "started_at": self.started_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizationState":
        """Restore a snapshot produced by to_dict."""
        state = cls(
            params=OptimizationParams.model_validate(data["params"]),
            initial_configuration=Configuration.model_validate(data["current_configuration"]),
            run_id=data.get("run_id")
        )
        state.iteration_count = data["iteration_count"]
        state.score = data["score"]
        state.last_improvement = data.get("last_improvement", 0.0)
        if data.get("feedback"):
            state.feedback = DetailedFeedback.model_validate(data["feedback"])
        state.history = [ImprovementStep.model_validate(step) for step in data.get("history", [])]
        state.research_findings = [
            ResearchInsight.model_validate(item) for item in data.get("research_findings", [])
        ]
        state.convergence = ConvergenceMetrics.model_validate(data.get("convergence", {}))
        if data.get("started_at"):
            state.started_at = datetime.fromisoformat(data["started_at"])
        return state

    def _update_convergence(self, improvement: float) -> None:
        self.last_improvement = improvement
        if improvement < self.params.min_improvement:
            self.convergence.consecutive_no_improvement += 1
        else:
            self.convergence.consecutive_no_improvement = 0

        self.convergence.push(self.score)
        improvements = [step.improvement for step in self.history] + [improvement]
        self.convergence.average_improvement = sum(improvements) / len(improvements)
        self.convergence.converged = self.has_converged()

    def _strategies_used(self, evaluation: DetailedEvaluation) -> List[str]:
        strategies = [f"eval:{evaluation.strategy_name}"]
        if evaluation.patterns:
            strategies.append(f"patterns:{len(evaluation.patterns)}")
        if evaluation.feedback.action_items:
            strategies.append(f"actions:{len(evaluation.feedback.action_items)}")
        return strategies
