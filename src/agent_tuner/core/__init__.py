"""Core tuning components: comparison, testing, grid search and optimization."""

from .comparator import ComparisonOutcome, OutputComparator, numeric_similarity
from .tester import ConfigurationTester, TestOptions, compute_metrics
from .events import EventEmitter
from .grid_search import GridSearchEngine, generate_configurations
from .state import CheckpointStore, OptimizationState
from .engine import (
    ConfigurationProposer,
    FlowOrchestrator,
    PromptRewriter,
    Proposal,
    ResearchAdvisor,
)
from .ui import ProgressTracker
from .io import ResultWriter

__all__ = [
    "ComparisonOutcome",
    "OutputComparator",
    "numeric_similarity",
    "ConfigurationTester",
    "TestOptions",
    "compute_metrics",
    "EventEmitter",
    "GridSearchEngine",
    "generate_configurations",
    "CheckpointStore",
    "OptimizationState",
    "ConfigurationProposer",
    "FlowOrchestrator",
    "PromptRewriter",
    "Proposal",
    "ResearchAdvisor",
    "ProgressTracker",
    "ResultWriter",
]
