"""Similarity between actual and expected agent outputs."""

import json
import math
from typing import Any, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from ..config import DEFAULT_JUDGE_CONFIGURATION_KEY
from ..errors import ConfigurationError, JudgeFailure
from ..execution import AgentRunner
from ..models import ComparisonConfig
from ..parsing import canonical_json, extract_number, parse_output, select_field

NUMERIC_DECAY = 2.0


def numeric_similarity(a: float, b: float) -> float:
    """Exponential decay over relative difference; 1.0 when equal."""
    if a == b:
        return 1.0
    relative_diff = abs(a - b) / max(abs(a), abs(b))
    return math.exp(-NUMERIC_DECAY * relative_diff)


class ComparisonOutcome(BaseModel):
    """Similarity verdict for one actual/expected pair."""

    similarity: float = Field(ge=0.0, le=1.0)
    reasoning: Optional[str] = None
    method: str = ""


class OutputComparator:
    """Compares outputs numerically, exactly, or through an external judge."""

    def __init__(
        self,
        judge: Optional[AgentRunner] = None,
        judge_configuration_key: str = DEFAULT_JUDGE_CONFIGURATION_KEY
    ):
        """Initialize comparator with optional judge runner."""
        self.judge = judge
        self.judge_configuration_key = judge_configuration_key

    async def compare(
        self,
        actual: Any,
        expected: Any,
        comparison: Optional[ComparisonConfig]
    ) -> ComparisonOutcome:
        """Compare actual against expected using the configured method."""
        if comparison is None:
            raise ConfigurationError(
                "Comparison method must be configured explicitly (numeric|exact|llm|auto)"
            )

        actual_value = select_field(actual, comparison.field)
        expected_value = select_field(expected, comparison.field)

        method = comparison.method
        if method == "auto":
            both_numeric = (
                extract_number(actual_value) is not None
                and extract_number(expected_value) is not None
            )
            method = "numeric" if both_numeric else "llm"

        if method == "numeric":
            return self._compare_numeric(actual_value, expected_value)
        if method == "exact":
            return self._compare_exact(actual_value, expected_value)
        return await self._compare_with_judge(actual_value, expected_value)

    def _compare_numeric(self, actual: Any, expected: Any) -> ComparisonOutcome:
        a = extract_number(actual)
        b = extract_number(expected)
        if a is None or b is None:
            return ComparisonOutcome(
                similarity=0.0,
                reasoning="Could not parse numeric values",
                method="numeric"
            )
        return ComparisonOutcome(similarity=numeric_similarity(a, b), method="numeric")

    def _compare_exact(self, actual: Any, expected: Any) -> ComparisonOutcome:
        equal = canonical_json(actual) == canonical_json(expected)
        return ComparisonOutcome(similarity=1.0 if equal else 0.0, method="exact")

    async def _compare_with_judge(self, actual: Any, expected: Any) -> ComparisonOutcome:
        if self.judge is None:
            raise ConfigurationError("LLM comparison requires a judge runner")

        try:
            similarity, reasoning = await self._judge(actual, expected)
        except JudgeFailure as e:
            logger.warning(f"{e}; falling back to exact match")
            fallback = self._compare_exact(actual, expected)
            return fallback.model_copy(update={"reasoning": f"Judge fallback: {e}"})

        return ComparisonOutcome(similarity=similarity, reasoning=reasoning, method="llm")

    async def _judge(self, actual: Any, expected: Any) -> Tuple[float, str]:
        """Ask the judge for a similarity verdict; raise JudgeFailure on bad output."""
        payload = json.dumps(
            {"actual": actual, "expected": expected},
            ensure_ascii=False,
            default=str
        )
        try:
            response = await self.judge.run(payload, self.judge_configuration_key)
        except Exception as e:
            raise JudgeFailure(f"Judge call failed: {e}") from e

        judgement = parse_output(response.output)
        if not isinstance(judgement, dict):
            raise JudgeFailure("Judge returned non-object output")

        similarity = judgement.get("similarity")
        if isinstance(similarity, bool) or not isinstance(similarity, (int, float)):
            raise JudgeFailure(f"Judge similarity is not a number: {similarity!r}")
        if not 0.0 <= similarity <= 1.0:
            raise JudgeFailure(f"Judge similarity out of range: {similarity}")

        return float(similarity), str(judgement.get("reasoning", ""))
