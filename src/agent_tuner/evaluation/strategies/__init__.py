"""Built-in evaluation strategies."""

from .fact_based import FactBasedStrategy
from .hybrid import HybridStrategy
from .numeric import NumericScoreStrategy

__all__ = ["FactBasedStrategy", "HybridStrategy", "NumericScoreStrategy"]
