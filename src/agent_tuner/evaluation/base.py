"""Evaluation strategy interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Literal, Optional

from ..models import (
    DetailedFeedback,
    EvaluationConfig,
    EvaluationContext,
    EvaluationResult,
    FailurePattern,
)

StrategyType = Literal["hybrid", "fact-based", "numeric", "custom"]

STRATEGY_TYPE_PRIORITY: Dict[str, int] = {
    "hybrid": 4,
    "fact-based": 3,
    "numeric": 2,
    "custom": 1,
}

NONE_IDENTIFIED = "None identified"


class EvaluationStrategy(ABC):
    """Turns predictions and ground truth into a scored, explainable result."""

    name: str = "custom"
    type: StrategyType = "custom"
    description: str = ""

    @abstractmethod
    def is_applicable(self, context: EvaluationContext) -> bool:
        """Whether this strategy can evaluate data of the given shape."""
        pass

    @abstractmethod
    async def evaluate(
        self,
        data: List[Any],
        ground_truth: List[Any],
        config: EvaluationConfig
    ) -> EvaluationResult:
        """Score predictions against ground truth."""
        pass

    @abstractmethod
    def generate_feedback(self, result: EvaluationResult) -> DetailedFeedback:
        """Explain a result as strengths, weaknesses and actions."""
        pass

    def analyze_patterns(self, results: List[EvaluationResult]) -> Optional[List[FailurePattern]]:
        """Strategy-specific failure patterns, or None to use generic analysis."""
        return None
