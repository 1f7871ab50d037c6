"""Data models for configuration tuning."""

from .configuration import DEFAULT_MAX_TOKENS, Configuration
from .comparison import ComparisonConfig, ComparisonMethod
from .dataset import DatasetFilter, DatasetSample
from .events import ProgressEvent, ProgressSink
from .metrics import SampleResult, TestMetrics
from .result import ImprovementStep, OptimizationResult, TestResult
from .evaluation import (
    AggregationMethod,
    DetailedEvaluation,
    DetailedFeedback,
    EvaluationConfig,
    EvaluationContext,
    EvaluationResult,
    FailurePattern,
    ResearchInsight,
    Verbosity,
)
from .grid import (
    ConcurrencySettings,
    ConfigurationVariations,
    CostEstimate,
    CostLimits,
    GridSearchParams,
    GridSearchResult,
    GridSearchStatistics,
    ModelCostBreakdown,
    ParameterImpact,
    ProgressSettings,
    Recommendation,
)
from .optimization import (
    PROFILE_PRESETS,
    SUPPORTED_PROFILES,
    ConvergenceMetrics,
    FlowConfig,
    OptimizationParams,
)

__all__ = [
    "DEFAULT_MAX_TOKENS",
    "Configuration",
    "ComparisonConfig",
    "ComparisonMethod",
    "DatasetFilter",
    "DatasetSample",
    "ProgressEvent",
    "ProgressSink",
    "SampleResult",
    "TestMetrics",
    "TestResult",
    "ImprovementStep",
    "OptimizationResult",
    "AggregationMethod",
    "DetailedEvaluation",
    "DetailedFeedback",
    "EvaluationConfig",
    "EvaluationContext",
    "EvaluationResult",
    "FailurePattern",
    "ResearchInsight",
    "Verbosity",
    "ConcurrencySettings",
    "ConfigurationVariations",
    "CostEstimate",
    "CostLimits",
    "GridSearchParams",
    "GridSearchResult",
    "GridSearchStatistics",
    "ModelCostBreakdown",
    "ParameterImpact",
    "ProgressSettings",
    "Recommendation",
    "PROFILE_PRESETS",
    "SUPPORTED_PROFILES",
    "ConvergenceMetrics",
    "FlowConfig",
    "OptimizationParams",
]
