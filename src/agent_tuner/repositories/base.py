"""Persistence interfaces consumed by the tuning engine."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import Configuration, DatasetFilter, DatasetSample


class ConfigurationRepository(ABC):
    """Stores agent configurations by key."""

    @abstractmethod
    async def find_by_key(self, key: str) -> Optional[Configuration]:
        """Return configuration for key, or None."""
        pass

    @abstractmethod
    async def create(self, configuration: Configuration) -> Configuration:
        """Store a configuration; its key must be set."""
        pass

    @abstractmethod
    async def update(self, key: str, configuration: Configuration) -> Configuration:
        """Replace configuration stored under key."""
        pass

    @abstractmethod
    async def delete_by_key(self, key: str) -> None:
        """Remove configuration stored under key."""
        pass


class DatasetRepository(ABC):
    """Serves ground-truth samples."""

    @abstractmethod
    async def find_many(self, filters: DatasetFilter) -> List[DatasetSample]:
        """Return samples matching version/split filters, up to limit."""
        pass


class PromptRepository(ABC):
    """Stores prompt templates by id."""

    @abstractmethod
    async def get(self, prompt_id: str) -> Optional[str]:
        """Return prompt template text, or None."""
        pass

    @abstractmethod
    async def create(self, text: str, parent_id: Optional[str] = None) -> str:
        """Store a new prompt template and return its id."""
        pass
