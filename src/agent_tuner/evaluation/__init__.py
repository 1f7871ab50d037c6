"""Evaluation strategies, aggregation, pattern analysis and feedback."""

from .base import STRATEGY_TYPE_PRIORITY, EvaluationStrategy, StrategyType
from .aggregation import aggregate_results, score_band
from .strategies import FactBasedStrategy, HybridStrategy, NumericScoreStrategy
from .registry import (
    CombinedEvaluation,
    EvaluationRegistry,
    EvaluationRule,
    create_default_registry,
)
from .pattern_analyzer import PatternAnalyzer
from .feedback_synthesizer import FeedbackSynthesizer
from .evaluator import ConfigurationEvaluator, analyze_context

__all__ = [
    "STRATEGY_TYPE_PRIORITY",
    "EvaluationStrategy",
    "StrategyType",
    "aggregate_results",
    "score_band",
    "FactBasedStrategy",
    "HybridStrategy",
    "NumericScoreStrategy",
    "CombinedEvaluation",
    "EvaluationRegistry",
    "EvaluationRule",
    "create_default_registry",
    "PatternAnalyzer",
    "FeedbackSynthesizer",
    "ConfigurationEvaluator",
    "analyze_context",
]
