"""Evaluation dataset models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DATASET_LIMIT = 100


class DatasetSample(BaseModel):
    """Labeled ground-truth sample."""

    model_config = ConfigDict(frozen=True)

    input: Any
    expected_output: Any
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DatasetFilter(BaseModel):
    """Dataset query filters."""

    version: Optional[str] = None
    split: Optional[str] = None
    limit: int = Field(default=DEFAULT_DATASET_LIMIT, ge=1)
