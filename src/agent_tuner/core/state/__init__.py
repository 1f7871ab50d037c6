"""Optimization state and checkpointing."""

from .optimization_state import OptimizationState
from .checkpoint import CheckpointStore

__all__ = ["OptimizationState", "CheckpointStore"]
