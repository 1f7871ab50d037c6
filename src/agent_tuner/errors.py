"""Error types raised by the tuning engine."""

from typing import Optional


class TunerError(Exception):
    """Base class for agent-tuner errors."""


class ConfigurationError(TunerError):
    """Missing or invalid required parameters."""


class NoStrategyError(ConfigurationError):
    """No evaluation strategy matches the context and no default is set."""


class BudgetExceededError(TunerError):
    """Estimated cost exceeds an enforced hard limit."""

    def __init__(self, estimated_cost: float, limit: float):
        """Initialize with estimated cost and the configured limit."""
        self.estimated_cost = estimated_cost
        self.limit = limit
        super().__init__(
            f"Estimated cost ${estimated_cost:.4f} exceeds limit ${limit:.4f}"
        )


class SampleExecutionError(TunerError):
    """Single sample failed to execute or compare."""

    def __init__(self, message: str, sample_index: Optional[int] = None):
        """Initialize with message and optional sample index."""
        self.sample_index = sample_index
        super().__init__(message)


class JudgeFailure(TunerError):
    """External judge raised or returned malformed output."""


class IterationError(TunerError):
    """Optimization iteration failed."""

    def __init__(self, iteration: int, message: str):
        """Initialize with the failing iteration number."""
        self.iteration = iteration
        super().__init__(f"Iteration {iteration} failed: {message}")
