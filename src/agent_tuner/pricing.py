"""Model pricing table and pricing-based cost estimates."""

import re
from typing import Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from .models import CostEstimate, ModelCostBreakdown

DEFAULT_TOKENS_PER_REQUEST = 500
COST_RANGE_FACTOR = 0.25
ESTIMATE_CONFIDENCE = 0.8
SECONDS_PER_OPERATION = 3.0
DEFAULT_INPUT_TOKENS = 600
DEFAULT_OUTPUT_TOKENS = 250
DATE_SUFFIX_PATTERN = re.compile(r"-\d{8}")

# Flat per-request token estimates used for per-configuration cost.
MODEL_TOKEN_ESTIMATES: Dict[str, int] = {
    "gpt-4": 800,
    "gpt-4-turbo": 600,
    "gpt-4o": 500,
    "gpt-4o-mini": 400,
    "gpt-3.5-turbo": 400,
    "claude-3-opus": 700,
    "claude-3-sonnet": 500,
    "claude-3-haiku": 300,
}

INPUT_TOKEN_ESTIMATES: Dict[str, int] = {
    "gpt-4o": 800,
    "gpt-4o-mini": 600,
    "gpt-4-turbo": 800,
    "gpt-4": 700,
    "gpt-3.5-turbo": 500,
    "o1-preview": 1000,
    "o1-mini": 800,
    "claude-3-5-sonnet-20241022": 900,
    "claude-3-5-haiku-20241022": 600,
    "claude-3-opus-20240229": 1000,
    "claude-3-sonnet-20240229": 800,
    "claude-3-haiku-20240307": 500,
}

OUTPUT_TOKEN_ESTIMATES: Dict[str, int] = {
    "gpt-4o": 300,
    "gpt-4o-mini": 250,
    "gpt-4-turbo": 350,
    "gpt-4": 300,
    "gpt-3.5-turbo": 200,
    "o1-preview": 500,
    "o1-mini": 400,
    "claude-3-5-sonnet-20241022": 350,
    "claude-3-5-haiku-20241022": 250,
    "claude-3-opus-20240229": 400,
    "claude-3-sonnet-20240229": 300,
    "claude-3-haiku-20240307": 200,
}


class ModelPricing(BaseModel):
    """Price per 1K tokens for one model."""

    input_price_per_1k: float = Field(ge=0.0)
    output_price_per_1k: float = Field(ge=0.0)


DEFAULT_MODEL_PRICING: Dict[str, ModelPricing] = {
    "gpt-4o": ModelPricing(input_price_per_1k=0.0025, output_price_per_1k=0.01),
    "gpt-4o-mini": ModelPricing(input_price_per_1k=0.00015, output_price_per_1k=0.0006),
    "gpt-4-turbo": ModelPricing(input_price_per_1k=0.01, output_price_per_1k=0.03),
    "gpt-4": ModelPricing(input_price_per_1k=0.03, output_price_per_1k=0.06),
    "gpt-3.5-turbo": ModelPricing(input_price_per_1k=0.0005, output_price_per_1k=0.0015),
    "o1-preview": ModelPricing(input_price_per_1k=0.015, output_price_per_1k=0.06),
    "o1-mini": ModelPricing(input_price_per_1k=0.003, output_price_per_1k=0.012),
    "claude-3-5-sonnet-20241022": ModelPricing(input_price_per_1k=0.003, output_price_per_1k=0.015),
    "claude-3-5-haiku-20241022": ModelPricing(input_price_per_1k=0.0008, output_price_per_1k=0.004),
    "claude-3-opus-20240229": ModelPricing(input_price_per_1k=0.015, output_price_per_1k=0.075),
    "claude-3-sonnet-20240229": ModelPricing(input_price_per_1k=0.003, output_price_per_1k=0.015),
    "claude-3-haiku-20240307": ModelPricing(input_price_per_1k=0.00025, output_price_per_1k=0.00125),
}


def match_model_name(model: str, names: Iterable[str]) -> Optional[str]:
    """Resolve model to a table name: exact, dated variant of a name, or alias of a dated name."""
    if not model:
        return None
    names = list(names)
    if model in names:
        return model
    bases = [name for name in names if model.startswith(f"{name}-")]
    if bases:
        return max(bases, key=len)
    for name in names:
        if name.startswith(model) and DATE_SUFFIX_PATTERN.fullmatch(name[len(model):]):
            return name
    return None


def tokens_per_request(model: str) -> int:
    """Flat token estimate for one request to model."""
    return MODEL_TOKEN_ESTIMATES.get(model, DEFAULT_TOKENS_PER_REQUEST)


class PricingTable:
    """Per-model token prices, constructed once and injected where needed."""

    def __init__(self, pricing: Optional[Dict[str, ModelPricing]] = None):
        """Initialize with a pricing map, defaulting to the built-in table."""
        self._pricing = dict(DEFAULT_MODEL_PRICING if pricing is None else pricing)

    def get_pricing(self, model: str) -> Optional[ModelPricing]:
        """Return pricing for model, resolving dated variants and aliases of dated names."""
        name = match_model_name(model, self._pricing)
        return self._pricing[name] if name else None

    def set_pricing(self, model: str, pricing: ModelPricing) -> None:
        self._pricing[model] = pricing

    def models(self) -> List[str]:
        return list(self._pricing)


class CostEstimator:
    """Estimates grid search spend from the pricing table."""

    def __init__(self, pricing_table: PricingTable):
        self.pricing_table = pricing_table

    def estimate_grid_search(
        self,
        models: List[str],
        configuration_count: int,
        sample_count: int,
        parallelism: int = 1
    ) -> CostEstimate:
        """Break down estimated cost per model; models without pricing are skipped."""
        total_operations = configuration_count * sample_count
        breakdown: Dict[str, ModelCostBreakdown] = {}
        total_cost = 0.0
        input_tokens: List[int] = []
        output_tokens: List[int] = []

        for model in models:
            pricing = self.pricing_table.get_pricing(model)
            if pricing is None:
                logger.warning(f"No pricing information for model: {model}")
                continue

            model_input = self._lookup(INPUT_TOKEN_ESTIMATES, model, DEFAULT_INPUT_TOKENS)
            model_output = self._lookup(OUTPUT_TOKEN_ESTIMATES, model, DEFAULT_OUTPUT_TOKENS)
            operations = total_operations // len(models)
            input_tokens.append(model_input)
            output_tokens.append(model_output)

            cost = (
                model_input * operations / 1000 * pricing.input_price_per_1k
                + model_output * operations / 1000 * pricing.output_price_per_1k
            )
            breakdown[model] = ModelCostBreakdown(
                estimated_tokens=(model_input + model_output) * operations,
                estimated_cost=cost,
                operations=operations
            )
            total_cost += cost

        avg_input = sum(input_tokens) // len(input_tokens) if input_tokens else 0
        avg_output = sum(output_tokens) // len(output_tokens) if output_tokens else 0

        return CostEstimate(
            total_cost=total_cost,
            cost_range={
                "min": total_cost * (1 - COST_RANGE_FACTOR),
                "max": total_cost * (1 + COST_RANGE_FACTOR),
            },
            model_breakdown=breakdown,
            estimated_duration_seconds=total_operations * SECONDS_PER_OPERATION / max(parallelism, 1),
            confidence=ESTIMATE_CONFIDENCE,
            assumptions=[
                f"~{avg_input} input tokens per request",
                f"~{avg_output} output tokens per request",
                f"{total_operations} total operations",
                "Costs may vary with actual prompt length",
            ],
        )

    def _lookup(self, table: Dict[str, int], model: str, default: int) -> int:
        name = match_model_name(model, table)
        return table[name] if name else default
