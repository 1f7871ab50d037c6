"""Runtime settings for LLM access and run output."""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.grid import DEFAULT_COST_PER_TOKEN

DEFAULT_JUDGE_CONFIGURATION_KEY = "system_llm_judge"


class Settings(BaseSettings):
    """LLM connection and run settings from environment or direct initialization."""

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "AGENT_TUNER_API_KEY", "OPENAI_API_KEY", "API_KEY", "api_key"
        ),
    )
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    base_url: Optional[str] = None
    judge_configuration_key: str = DEFAULT_JUDGE_CONFIGURATION_KEY
    runs_dir: str = "runs"
    default_cost_per_token: float = DEFAULT_COST_PER_TOKEN

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AGENT_TUNER_",
        case_sensitive=False,
        extra="ignore"
    )


def get_settings() -> Settings:
    """Load settings from environment."""
    return Settings()
