"""Grid search parameters and results."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .comparison import ComparisonConfig
from .dataset import DatasetFilter
from .result import TestResult

DEFAULT_MAX_CONCURRENT_TESTS = 3
DEFAULT_BATCH_SIZE = 3
DEFAULT_REPORT_INTERVAL = 10
DEFAULT_COST_PER_TOKEN = 0.00002

RecommendationAction = Literal["deploy", "ab_test", "already_optimal"]


class ConfigurationVariations(BaseModel):
    """Values to vary per axis; an empty axis keeps the base value."""

    models: List[str] = Field(default_factory=list)
    temperatures: List[float] = Field(default_factory=list)
    prompt_ids: List[str] = Field(default_factory=list)
    max_tokens: List[int] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.models or self.temperatures or self.prompt_ids or self.max_tokens)


class ConcurrencySettings(BaseModel):
    """Batch size and in-flight bound for configuration tests."""

    max_concurrent_tests: int = DEFAULT_MAX_CONCURRENT_TESTS
    batch_size: int = DEFAULT_BATCH_SIZE


class CostLimits(BaseModel):
    """Pre-execution budget guard."""

    estimate_only: bool = False
    max_estimated_cost: Optional[float] = Field(default=None, ge=0.0)
    enforce_hard_limit: bool = True
    cost_per_token: float = Field(default=DEFAULT_COST_PER_TOKEN, ge=0.0)


class ProgressSettings(BaseModel):
    """Progress event cadence."""

    enable_streaming: bool = True
    report_interval: int = Field(default=DEFAULT_REPORT_INTERVAL, ge=1)


class GridSearchParams(BaseModel):
    """Parameters of one grid search run."""

    base_configuration_key: str = ""
    variations: ConfigurationVariations = Field(default_factory=ConfigurationVariations)
    dataset: DatasetFilter = Field(default_factory=DatasetFilter)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    cost_limits: CostLimits = Field(default_factory=CostLimits)
    progress: ProgressSettings = Field(default_factory=ProgressSettings)
    comparison: Optional[ComparisonConfig] = None
    max_concurrent_samples: int = Field(default=1, ge=1)


class ModelCostBreakdown(BaseModel):
    """Estimated spend for one model."""

    estimated_tokens: int
    estimated_cost: float
    operations: int


class CostEstimate(BaseModel):
    """Pricing-table based cost estimate."""

    total_cost: float
    cost_range: Dict[str, float] = Field(default_factory=dict)
    model_breakdown: Dict[str, ModelCostBreakdown] = Field(default_factory=dict)
    estimated_duration_seconds: float = 0.0
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    assumptions: List[str] = Field(default_factory=list)


class ParameterImpact(BaseModel):
    """Average score per value of one variation axis."""

    parameter: str
    best_value: Any = None
    best_score: float = 0.0
    scores_by_value: Dict[str, float] = Field(default_factory=dict)


class GridSearchStatistics(BaseModel):
    """Aggregate statistics over all tested configurations."""

    total_configurations: int
    total_samples: int
    total_duration_ms: float
    total_estimated_cost: float
    average_score: float
    score_variance: float
    cost_breakdown: Optional[CostEstimate] = None


class Recommendation(BaseModel):
    """Deployment recommendation derived from the ranked results."""

    action: RecommendationAction
    summary: str
    improvement_pct: float = 0.0
    parameter_insights: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class GridSearchResult(BaseModel):
    """Ranked outcome of a grid search."""

    estimated_cost: float
    estimate_only: bool = False
    results: List[TestResult] = Field(default_factory=list)
    best_result: Optional[TestResult] = None
    baseline_result: Optional[TestResult] = None
    statistics: Optional[GridSearchStatistics] = None
    parameter_impact: List[ParameterImpact] = Field(default_factory=list)
    recommendation: Optional[Recommendation] = None
