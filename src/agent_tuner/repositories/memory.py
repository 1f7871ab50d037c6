"""In-memory repository implementations."""

from typing import Dict, Iterable, List, Optional

from ..errors import ConfigurationError
from ..models import Configuration, DatasetFilter, DatasetSample
from .base import ConfigurationRepository, DatasetRepository, PromptRepository


def matches_filter(sample: DatasetSample, filters: DatasetFilter) -> bool:
    """Check sample metadata against version and split filters."""
    if filters.version is not None and str(sample.metadata.get("version")) != filters.version:
        return False
    if filters.split is not None and sample.metadata.get("split") != filters.split:
        return False
    return True


class InMemoryConfigurationRepository(ConfigurationRepository):
    """Dictionary-backed configuration store."""

    def __init__(self, configurations: Optional[Iterable[Configuration]] = None):
        self._items: Dict[str, Configuration] = {}
        for configuration in configurations or []:
            if not configuration.key:
                raise ConfigurationError(f"Configuration without key: {configuration}")
            self._items[configuration.key] = configuration

    async def find_by_key(self, key: str) -> Optional[Configuration]:
        return self._items.get(key)

    async def create(self, configuration: Configuration) -> Configuration:
        if not configuration.key:
            raise ConfigurationError("Cannot store configuration without key")
        if configuration.key in self._items:
            raise ConfigurationError(f"Configuration '{configuration.key}' already exists")
        self._items[configuration.key] = configuration
        return configuration

    async def update(self, key: str, configuration: Configuration) -> Configuration:
        if key not in self._items:
            raise ConfigurationError(f"Configuration '{key}' not found")
        stored = configuration.with_overrides(key=key)
        self._items[key] = stored
        return stored

    async def delete_by_key(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class InMemoryDatasetRepository(DatasetRepository):
    """List-backed dataset store."""

    def __init__(self, samples: Iterable[DatasetSample]):
        self._samples = list(samples)

    async def find_many(self, filters: DatasetFilter) -> List[DatasetSample]:
        matched = [s for s in self._samples if matches_filter(s, filters)]
        return matched[:filters.limit]


class InMemoryPromptRepository(PromptRepository):
    """Dictionary-backed prompt store with sequential ids for derived prompts."""

    def __init__(self, prompts: Optional[Dict[str, str]] = None):
        self._prompts: Dict[str, str] = dict(prompts or {})
        self._counter = 0

    async def get(self, prompt_id: str) -> Optional[str]:
        return self._prompts.get(prompt_id)

    async def create(self, text: str, parent_id: Optional[str] = None) -> str:
        self._counter += 1
        base = parent_id or "prompt"
        prompt_id = f"{base}_v{self._counter}"
        while prompt_id in self._prompts:
            self._counter += 1
            prompt_id = f"{base}_v{self._counter}"
        self._prompts[prompt_id] = text
        return prompt_id

    def as_dict(self) -> Dict[str, str]:
        return dict(self._prompts)
