"""Test and optimization result models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .configuration import Configuration
from .metrics import SampleResult, TestMetrics


class TestResult(BaseModel):
    """Outcome of testing one configuration against a dataset."""

    __test__ = False

    configuration: Configuration
    metrics: TestMetrics
    duration_ms: float = Field(ge=0.0)
    estimated_cost: float = Field(default=0.0, ge=0.0)
    sample_results: Optional[List[SampleResult]] = None


class ImprovementStep(BaseModel):
    """Immutable record of one optimization iteration."""

    model_config = ConfigDict(frozen=True)

    iteration: int
    configuration: Configuration
    score: float
    improvement: float
    strategies_used: List[str] = Field(default_factory=list)
    feedback: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class OptimizationResult(BaseModel):
    """Final outcome of an iterative optimization run."""

    run_id: Optional[str] = None
    final_configuration: Configuration
    final_score: float
    iterations: int
    history: List[ImprovementStep] = Field(default_factory=list)
    total_improvement: float
    converged: bool
    stopped_reason: str
    best_configuration: Optional[Configuration] = None
    best_score: float = 0.0
    insights: List[str] = Field(default_factory=list)
