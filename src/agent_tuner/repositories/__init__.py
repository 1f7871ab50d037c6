"""Configuration, dataset and prompt repositories."""

from .base import ConfigurationRepository, DatasetRepository, PromptRepository
from .files import JsonlDatasetRepository, load_samples
from .memory import (
    InMemoryConfigurationRepository,
    InMemoryDatasetRepository,
    InMemoryPromptRepository,
)

__all__ = [
    "ConfigurationRepository",
    "DatasetRepository",
    "PromptRepository",
    "JsonlDatasetRepository",
    "load_samples",
    "InMemoryConfigurationRepository",
    "InMemoryDatasetRepository",
    "InMemoryPromptRepository",
]
