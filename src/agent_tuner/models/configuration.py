"""Agent configuration models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_TOKENS = 1000


class Configuration(BaseModel):
    """Immutable snapshot of one way to run a scoring agent."""

    model_config = ConfigDict(frozen=True)

    key: Optional[str] = Field(default=None, description="Repository identity")
    model: str
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    prompt_id: str
    output_type: str = "structured"
    output_schema: Optional[Dict[str, Any]] = None

    def with_overrides(self, **changes: Any) -> "Configuration":
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=changes)

    def __str__(self) -> str:
        return (
            f"{self.model} t={self.temperature} "
            f"prompt={self.prompt_id} max_tokens={self.max_tokens}"
        )
