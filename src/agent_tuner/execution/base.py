"""Agent execution interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict

from pydantic import BaseModel, Field


class AgentOutput(BaseModel):
    """Raw agent output with execution metadata."""

    output: Any
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AgentRunner(ABC):
    """Runs an input through the agent stored under a configuration key."""

    @abstractmethod
    async def run(self, input: Any, configuration_key: str) -> AgentOutput:
        """Execute the agent; retries are the implementation's concern."""
        pass
