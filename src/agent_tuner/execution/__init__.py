"""Agent execution collaborators."""

from .base import AgentOutput, AgentRunner
from .llm_runner import (
    DEFAULT_JUDGE_PROMPT,
    JUDGE_OUTPUT_SCHEMA,
    LLMAgentRunner,
    render_prompt,
)

__all__ = [
    "AgentOutput",
    "AgentRunner",
    "LLMAgentRunner",
    "DEFAULT_JUDGE_PROMPT",
    "JUDGE_OUTPUT_SCHEMA",
    "render_prompt",
]
