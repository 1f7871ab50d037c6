"""Evaluation strategy inputs and outputs."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .result import TestResult

AggregationMethod = Literal["weighted", "voting", "ensemble"]
Verbosity = Literal["minimal", "standard", "detailed"]


class EvaluationResult(BaseModel):
    """Score, metrics and details produced by an evaluation strategy."""

    score: float = Field(ge=0.0, le=1.0)
    metrics: Dict[str, Any] = Field(default_factory=dict)
    details: List[Dict[str, Any]] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)


class FailurePattern(BaseModel):
    """Recurring failure observed across samples."""

    type: str
    frequency: float = Field(ge=0.0, le=1.0)
    suggested_fix: str
    description: str = ""
    examples: List[Any] = Field(default_factory=list)
    source: str = ""


class DetailedFeedback(BaseModel):
    """Structured feedback synthesized from an evaluation."""

    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)


class EvaluationContext(BaseModel):
    """Shape of the data being evaluated, used for strategy selection."""

    has_numeric_ground_truth: bool = False
    has_textual_content: bool = False
    has_fact_requirements: bool = False
    data_type: str = "unknown"
    sample_size: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EvaluationConfig(BaseModel):
    """How an evaluation picks, combines and reports strategies."""

    strategy: Optional[str] = None
    auto_select: bool = True
    combine_strategies: Optional[List[str]] = None
    aggregation: AggregationMethod = "weighted"
    weights: Optional[List[float]] = None
    verbosity: Verbosity = "standard"
    include_pattern_analysis: bool = True
    score_scale: float = Field(default=1.0, gt=0.0, description="Range of numeric ground truth")


class DetailedEvaluation(BaseModel):
    """Evaluation result together with its feedback and patterns."""

    result: EvaluationResult
    strategy_name: str
    feedback: DetailedFeedback
    patterns: List[FailurePattern] = Field(default_factory=list)
    test_result: Optional[TestResult] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ResearchInsight(BaseModel):
    """Improvement idea gathered from a knowledge source."""

    source: str
    strategy: str
    confidence: float = Field(ge=0.0, le=1.0)
    applicability: float = Field(ge=0.0, le=1.0)
    description: str = ""
    implementation: Optional[str] = None

    @property
    def rank_score(self) -> float:
        return self.confidence * 0.4 + self.applicability * 0.6
