"""Per-sample and per-test scoring metrics."""

from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field


class SampleResult(BaseModel):
    """Outcome of one sample within a configuration test."""

    input: Any
    expected: Any
    actual: Any = None
    similarity: float = Field(ge=0.0, le=1.0, description="Agreement with ground truth")
    reasoning: Optional[str] = None
    failed: bool = False

    @computed_field
    @property
    def error(self) -> float:
        return 1.0 - self.similarity


class TestMetrics(BaseModel):
    """Aggregate metrics for one tested configuration."""

    __test__ = False

    score: float = Field(ge=0.0, le=1.0, description="Mean similarity")
    error: float = Field(ge=0.0, le=1.0, description="Mean of 1 - similarity")
    rmse: float = Field(ge=0.0, le=1.0, description="Root mean squared error")
    sample_count: int = Field(ge=0, description="Samples processed, failures included")

    def __str__(self) -> str:
        return (
            f"Score={self.score:.3f}, Error={self.error:.3f}, "
            f"RMSE={self.rmse:.3f}, Samples={self.sample_count}"
        )
