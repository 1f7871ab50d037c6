"""Iterative optimization parameters and convergence tracking."""

from typing import Any, Dict, List, Set

from pydantic import BaseModel, Field

from .evaluation import EvaluationConfig

CONVERGENCE_WINDOW = 5

SUPPORTED_PROFILES: Set[str] = {"fast", "balanced", "thorough", "advanced"}

PROFILE_PRESETS: Dict[str, Dict[str, Any]] = {
    "fast": {
        "max_iterations": 3,
        "target_score": 0.85,
        "convergence_threshold": 0.01,
        "min_improvement": 0.02,
        "enable_research": False,
        "max_insights": 3,
    },
    "balanced": {
        "max_iterations": 5,
        "target_score": 0.9,
        "convergence_threshold": 0.005,
        "min_improvement": 0.01,
        "enable_research": True,
        "max_insights": 5,
    },
    "thorough": {
        "max_iterations": 10,
        "target_score": 0.95,
        "convergence_threshold": 0.001,
        "min_improvement": 0.005,
        "enable_research": True,
        "max_insights": 8,
    },
    "advanced": {},
}


class OptimizationParams(BaseModel):
    """Stopping conditions and behaviour of an iterative optimization run."""

    target_score: float = Field(default=0.9, ge=0.0, le=1.0)
    max_iterations: int = Field(default=5, ge=1, le=100)
    convergence_threshold: float = Field(default=0.005, gt=0.0)
    min_improvement: float = Field(default=0.01, ge=0.0)
    enable_research: bool = True
    max_insights: int = Field(default=5, ge=1)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)

    @classmethod
    def from_profile(cls, profile: str, **overrides: Any) -> "OptimizationParams":
        """Create params from a named profile with optional overrides."""
        if profile not in SUPPORTED_PROFILES:
            raise ValueError(
                f"Unknown profile '{profile}'. "
                f"Supported: {', '.join(sorted(SUPPORTED_PROFILES))}"
            )
        defaults = dict(PROFILE_PRESETS.get(profile, {}))
        defaults.update(overrides)
        return cls(**defaults)


class ConvergenceMetrics(BaseModel):
    """Sliding-window view of recent scores."""

    recent_scores: List[float] = Field(default_factory=list)
    average_improvement: float = 0.0
    consecutive_no_improvement: int = 0
    converged: bool = False

    def push(self, score: float) -> None:
        self.recent_scores.append(score)
        if len(self.recent_scores) > CONVERGENCE_WINDOW:
            self.recent_scores = self.recent_scores[-CONVERGENCE_WINDOW:]


class FlowConfig(BaseModel):
    """Run-time switches for the optimization flow."""

    emit_progress: bool = True
    verbose: bool = False
