"""Registry of evaluation strategies with rule-based selection."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..errors import ConfigurationError, NoStrategyError
from ..models import (
    AggregationMethod,
    EvaluationConfig,
    EvaluationContext,
    EvaluationResult,
)
from .aggregation import aggregate_results
from .base import STRATEGY_TYPE_PRIORITY, EvaluationStrategy
from .strategies import FactBasedStrategy, HybridStrategy, NumericScoreStrategy

RulePredicate = Callable[[EvaluationContext], bool]


class EvaluationRule(BaseModel):
    """Routes contexts matching predicate to a named strategy."""

    name: str
    priority: int = 0
    predicate: RulePredicate
    strategy_name: str


class CombinedEvaluation(BaseModel):
    """Aggregated result of several strategies."""

    strategy_name: str
    strategies_used: List[str]
    result: EvaluationResult
    individual_results: List[EvaluationResult] = Field(default_factory=list)


class EvaluationRegistry:
    """Holds strategies, selection rules and a default."""

    def __init__(self):
        self._strategies: Dict[str, EvaluationStrategy] = {}
        self._rules: List[EvaluationRule] = []
        self._default: Optional[str] = None

    def register(self, strategy: EvaluationStrategy, name: Optional[str] = None) -> None:
        key = name or strategy.name
        if key in self._strategies:
            logger.warning(f"Overwriting evaluation strategy '{key}'")
        self._strategies[key] = strategy

    def unregister(self, name: str) -> bool:
        if name not in self._strategies:
            return False
        del self._strategies[name]
        if self._default == name:
            self._default = None
        self._rules = [r for r in self._rules if r.strategy_name != name]
        return True

    def get(self, name: str) -> Optional[EvaluationStrategy]:
        return self._strategies.get(name)

    def get_all(self) -> List[EvaluationStrategy]:
        return list(self._strategies.values())

    def names(self) -> List[str]:
        return list(self._strategies)

    def has(self, name: str) -> bool:
        return name in self._strategies

    def set_default(self, name: str) -> None:
        if name not in self._strategies:
            raise ConfigurationError(f"Cannot set default: strategy '{name}' is not registered")
        self._default = name

    def get_default(self) -> Optional[EvaluationStrategy]:
        return self._strategies.get(self._default) if self._default else None

    def add_rule(self, rule: EvaluationRule) -> None:
        """Add rule, keeping rules ordered by descending priority."""
        if rule.strategy_name not in self._strategies:
            raise ConfigurationError(
                f"Rule '{rule.name}' targets unknown strategy '{rule.strategy_name}'"
            )
        self._rules.append(rule)
        self._rules.sort(key=lambda r: -r.priority)

    def remove_rule(self, name: str) -> bool:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.name != name]
        return len(self._rules) < before

    def get_rules(self) -> List[EvaluationRule]:
        return list(self._rules)

    def clear_rules(self) -> None:
        self._rules = []

    def find_applicable(self, context: EvaluationContext) -> List[EvaluationStrategy]:
        """Applicable strategies, highest type priority first."""
        applicable = [s for s in self._strategies.values() if s.is_applicable(context)]
        return sorted(applicable, key=lambda s: -STRATEGY_TYPE_PRIORITY.get(s.type, 0))

    def select_strategy(self, context: EvaluationContext) -> EvaluationStrategy:
        """Pick a strategy: first matching rule, then applicability, then default."""
        for rule in self._rules:
            if rule.predicate(context):
                logger.debug(f"Rule '{rule.name}' selected strategy '{rule.strategy_name}'")
                return self._strategies[rule.strategy_name]

        applicable = self.find_applicable(context)
        if applicable:
            return applicable[0]

        default = self.get_default()
        if default is not None:
            return default

        raise NoStrategyError(
            f"No evaluation strategy applicable to {context.data_type} data and no default set"
        )

    async def combine_strategies(
        self,
        names: List[str],
        data: List[Any],
        ground_truth: List[Any],
        config: EvaluationConfig,
        aggregation: AggregationMethod = "weighted",
        weights: Optional[List[float]] = None
    ) -> CombinedEvaluation:
        """Run named strategies independently and aggregate their results."""
        if not names:
            raise ConfigurationError("No strategies to combine")
        missing = [name for name in names if name not in self._strategies]
        if missing:
            raise ConfigurationError(f"Unknown strategies: {', '.join(missing)}")

        results = await asyncio.gather(*(
            self._strategies[name].evaluate(data, ground_truth, config)
            for name in names
        ))
        combined = aggregate_results(list(results), aggregation, weights)
        logger.debug(f"Combined {len(names)} strategies with {aggregation}: {combined.score:.3f}")

        return CombinedEvaluation(
            strategy_name="+".join(names),
            strategies_used=list(names),
            result=combined,
            individual_results=list(results)
        )

    def clear(self) -> None:
        self._strategies = {}
        self._rules = []
        self._default = None

    def stats(self) -> Dict[str, Any]:
        by_type: Dict[str, int] = {}
        for strategy in self._strategies.values():
            by_type[strategy.type] = by_type.get(strategy.type, 0) + 1
        return {
            "total_strategies": len(self._strategies),
            "total_rules": len(self._rules),
            "default_strategy": self._default,
            "strategies_by_type": by_type,
        }


def create_default_registry() -> EvaluationRegistry:
    """Registry with the built-in strategies and numeric-score as default."""
    registry = EvaluationRegistry()
    registry.register(NumericScoreStrategy())
    registry.register(FactBasedStrategy())
    registry.register(HybridStrategy())
    registry.set_default(NumericScoreStrategy.name)
    return registry
