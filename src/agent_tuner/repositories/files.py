"""File-backed repositories."""

import json
from pathlib import Path
from typing import List

from loguru import logger

from ..errors import ConfigurationError
from ..models import DatasetFilter, DatasetSample
from .base import DatasetRepository
from .memory import matches_filter


def load_samples(dataset_path: Path) -> List[DatasetSample]:
    """Load dataset samples from a JSONL file."""
    if not dataset_path.exists():
        raise ConfigurationError(f"Dataset file not found: {dataset_path}")

    samples: List[DatasetSample] = []
    with open(dataset_path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                samples.append(DatasetSample.model_validate(json.loads(line)))

    logger.info(f"Loaded {len(samples)} samples from {dataset_path}")
    return samples


class JsonlDatasetRepository(DatasetRepository):
    """Reads samples from a JSONL file on every query."""

    def __init__(self, dataset_path: Path):
        self.dataset_path = Path(dataset_path)

    async def find_many(self, filters: DatasetFilter) -> List[DatasetSample]:
        samples = load_samples(self.dataset_path)
        matched = [s for s in samples if matches_filter(s, filters)]
        return matched[:filters.limit]
