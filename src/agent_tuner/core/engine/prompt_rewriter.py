"""Prompt rewriting via LLM reflection on failed samples."""

import json
from typing import Callable, List, Optional

from loguru import logger

from ...clients import BaseLLMClient
from ...models import ResearchInsight, SampleResult
from ...repositories import PromptRepository

MAX_FAILURES_FOR_REFLECTION = 5
REFLECTION_TEMPERATURE = 0.5
REWRITE_TEMPERATURE = 0.7

DEFAULT_REWRITE_SYSTEM_PROMPT = (
    "You are an expert in prompt engineering and optimization."
)

DEFAULT_REFLECTION_TEMPLATE = """You are an expert in prompt optimization.

CURRENT PROMPT:
{prompt_text}

SAMPLES WHERE THE AGENT DISAGREED WITH THE EXPECTED OUTPUT:
{failures_text}

KNOWN IMPROVEMENT IDEAS:
{insights_text}

Analyze why the prompt failed:
1. What error patterns do you see?
2. What is missing from the prompt?
3. Which instructions are too vague?

Reply concisely (2-3 points) with specific suggestions for improvement."""

DEFAULT_IMPROVEMENT_TEMPLATE = """You are an expert in prompt engineering.

ORIGINAL PROMPT:
{original_prompt}

ERROR ANALYSIS:
{reflection}

Create an IMPROVED version of the prompt that:
1. Fixes the identified problems
2. Adds clearer instructions
3. Includes examples or clarifications for difficult cases
4. Keeps the {{input}} placeholder and the required output format

IMPORTANT: Preserve the structure and style of the original prompt. Improve, don't rewrite from scratch.

Return ONLY the improved prompt text, without additional comments."""

FailureFormatFn = Callable[[SampleResult], str]


def default_failure_format_fn(sample: SampleResult) -> str:
    """Format a failed sample as input, expected and actual output."""
    return (
        f"Input: {json.dumps(sample.input, ensure_ascii=False, default=str)}\n"
        f"Expected: {json.dumps(sample.expected, ensure_ascii=False, default=str)}\n"
        f"Actual: {json.dumps(sample.actual, ensure_ascii=False, default=str)}"
    )


class PromptRewriter:
    """Generates improved prompt versions and stores them as children of the original."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        prompts: PromptRepository,
        system_prompt: str = DEFAULT_REWRITE_SYSTEM_PROMPT,
        reflection_template: str = DEFAULT_REFLECTION_TEMPLATE,
        improvement_template: str = DEFAULT_IMPROVEMENT_TEMPLATE,
        failure_format_fn: Optional[FailureFormatFn] = None
    ):
        """Initialize rewriter with LLM client, prompt storage and templates."""
        self.llm = llm_client
        self.prompts = prompts
        self.system_prompt = system_prompt
        self.reflection_template = reflection_template
        self.improvement_template = improvement_template
        self.failure_format_fn = failure_format_fn or default_failure_format_fn

    async def rewrite(
        self,
        prompt_id: str,
        failures: List[SampleResult],
        insights: List[ResearchInsight]
    ) -> Optional[str]:
        """Create an improved version of prompt_id; returns the new id."""
        prompt_text = await self.prompts.get(prompt_id)
        if prompt_text is None:
            logger.warning(f"Prompt '{prompt_id}' not found, skipping rewrite")
            return None

        logger.debug(f"Rewriting prompt {prompt_id} with {len(failures)} failures")
        reflection = await self._reflect(prompt_text, failures, insights)
        improved = await self._improve(prompt_text, reflection)
        if not improved or improved == prompt_text:
            logger.info(f"Rewrite of {prompt_id} produced no change")
            return None

        new_id = await self.prompts.create(improved, parent_id=prompt_id)
        logger.debug(f"Stored prompt {new_id} ({len(improved)} chars)")
        return new_id

    async def _reflect(
        self,
        prompt_text: str,
        failures: List[SampleResult],
        insights: List[ResearchInsight]
    ) -> str:
        """Analyze why the prompt failed using LLM meta-reasoning."""
        reflection_prompt = self.reflection_template.format(
            prompt_text=prompt_text,
            failures_text=self._format_failures(failures) or "(no failed samples)",
            insights_text="\n".join(f"- {i.strategy}" for i in insights) or "(none)"
        )
        response = await self.llm.achat_completion(
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": reflection_prompt}
            ],
            temperature=REFLECTION_TEMPERATURE
        )
        logger.debug(f"Reflection: {response[:200]}...")
        return response

    async def _improve(self, original_prompt: str, reflection: str) -> str:
        mutation_prompt = self.improvement_template.format(
            original_prompt=original_prompt,
            reflection=reflection
        )
        improved = await self.llm.achat_completion(
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": mutation_prompt}
            ],
            temperature=REWRITE_TEMPERATURE
        )
        return improved.strip()

    def _format_failures(self, failures: List[SampleResult]) -> str:
        parts = []
        for i, sample in enumerate(failures[:MAX_FAILURES_FOR_REFLECTION], 1):
            parts.append(f"--- Example {i} ---\n{self.failure_format_fn(sample)}")
        return "\n\n".join(parts)
