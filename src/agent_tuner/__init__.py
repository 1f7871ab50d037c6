"""agent-tuner - grid search and iterative optimization of LLM agent configurations."""

from .errors import (
    BudgetExceededError,
    ConfigurationError,
    IterationError,
    JudgeFailure,
    NoStrategyError,
    SampleExecutionError,
    TunerError,
)
from .config import Settings, get_settings
from .clients import BaseLLMClient, LLMClient
from .core import (
    CheckpointStore,
    ConfigurationTester,
    FlowOrchestrator,
    GridSearchEngine,
    OutputComparator,
    ProgressTracker,
    ResultWriter,
)
from .evaluation import ConfigurationEvaluator, EvaluationRegistry, create_default_registry
from .models import (
    ComparisonConfig,
    Configuration,
    DatasetSample,
    GridSearchParams,
    GridSearchResult,
    OptimizationParams,
    OptimizationResult,
    TestResult,
)
from .pricing import CostEstimator, PricingTable

__version__ = "0.1.0"

__all__ = [
    "TunerError",
    "ConfigurationError",
    "NoStrategyError",
    "BudgetExceededError",
    "SampleExecutionError",
    "JudgeFailure",
    "IterationError",
    "Settings",
    "get_settings",
    "BaseLLMClient",
    "LLMClient",
    "OutputComparator",
    "ConfigurationTester",
    "GridSearchEngine",
    "FlowOrchestrator",
    "CheckpointStore",
    "ProgressTracker",
    "ResultWriter",
    "ConfigurationEvaluator",
    "EvaluationRegistry",
    "create_default_registry",
    "ComparisonConfig",
    "Configuration",
    "DatasetSample",
    "GridSearchParams",
    "GridSearchResult",
    "OptimizationParams",
    "OptimizationResult",
    "TestResult",
    "CostEstimator",
    "PricingTable",
]
