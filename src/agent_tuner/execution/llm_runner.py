"""Agent runner backed by an LLM chat client."""

import json
import time
from typing import Any, Dict, List

from loguru import logger

from ..clients import BaseLLMClient
from ..errors import ConfigurationError
from ..repositories import ConfigurationRepository, PromptRepository
from .base import AgentOutput, AgentRunner

INPUT_PLACEHOLDER = "{input}"

SCHEMA_INSTRUCTION = (
    "Respond with a single JSON object matching this schema:\n{schema}"
)

DEFAULT_JUDGE_PROMPT = """You compare an agent's output against the expected output.

INPUT (JSON with "actual" and "expected"):
{input}

Rate how closely "actual" agrees with "expected" on a scale from 0.0 (unrelated) to 1.0 (equivalent).
Reply with JSON: {"similarity": <number between 0 and 1>, "reasoning": "<one sentence>"}"""

JUDGE_OUTPUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "similarity": {"type": "number", "minimum": 0, "maximum": 1},
        "reasoning": {"type": "string"},
    },
    "required": ["similarity", "reasoning"],
}


def render_prompt(template: str, input: Any) -> str:
    """Substitute input into template, appending it when no placeholder exists."""
    text = input if isinstance(input, str) else json.dumps(input, ensure_ascii=False)
    if INPUT_PLACEHOLDER in template:
        return template.replace(INPUT_PLACEHOLDER, text)
    return f"{template}\n\n{text}"


class LLMAgentRunner(AgentRunner):
    """Resolves configuration and prompt, then calls the LLM."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        configurations: ConfigurationRepository,
        prompts: PromptRepository
    ):
        """Initialize runner with LLM client and repositories."""
        self.llm = llm_client
        self.configurations = configurations
        self.prompts = prompts

    async def run(self, input: Any, configuration_key: str) -> AgentOutput:
        """Render the configured prompt for input and return the LLM reply."""
        configuration = await self.configurations.find_by_key(configuration_key)
        if configuration is None:
            raise ConfigurationError(f"Configuration '{configuration_key}' not found")

        template = await self.prompts.get(configuration.prompt_id)
        if template is None:
            raise ConfigurationError(f"Prompt '{configuration.prompt_id}' not found")

        messages: List[Dict[str, str]] = [
            {"role": "user", "content": render_prompt(template, input)}
        ]
        json_mode = configuration.output_schema is not None
        if json_mode:
            messages.insert(0, {
                "role": "system",
                "content": SCHEMA_INSTRUCTION.format(
                    schema=json.dumps(configuration.output_schema, ensure_ascii=False)
                ),
            })

        start_time = time.time()
        content = await self.llm.achat_completion(
            messages=messages,
            model=configuration.model,
            temperature=configuration.temperature,
            max_tokens=configuration.max_tokens,
            json_mode=json_mode
        )
        latency_ms = (time.time() - start_time) * 1000
        logger.debug(f"Agent '{configuration_key}' answered in {latency_ms:.0f}ms")

        return AgentOutput(
            output=content.strip(),
            metadata={"model": configuration.model, "latency_ms": latency_ms}
        )
