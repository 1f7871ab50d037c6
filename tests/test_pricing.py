"""Tests for the pricing table and cost estimator."""

import pytest

from agent_tuner.pricing import (
    CostEstimator,
    ModelPricing,
    PricingTable,
    match_model_name,
    tokens_per_request,
)


class TestPricingTable:
    """PricingTable"""

    def test_exact_match(self):
        assert PricingTable().get_pricing("gpt-4o").input_price_per_1k == 0.0025

    def test_prefix_match_for_dated_models(self):
        pricing = PricingTable().get_pricing("claude-3-5-haiku")
        assert pricing.output_price_per_1k == 0.004

    def test_dated_variant_uses_longest_base_name(self):
        assert PricingTable().get_pricing("gpt-4o-mini-2024-07-18").input_price_per_1k == 0.00015
        assert PricingTable().get_pricing("gpt-4o-2024-08-06").input_price_per_1k == 0.0025

    def test_unknown_model(self):
        assert PricingTable().get_pricing("llama-3") is None

    @pytest.mark.parametrize("model", ["", "gpt", "claude-3", "o1"])
    def test_partial_names_do_not_match(self, model):
        assert PricingTable().get_pricing(model) is None

    def test_match_model_name(self):
        names = ["gpt-4", "gpt-4-turbo", "claude-3-haiku-20240307"]
        assert match_model_name("gpt-4-turbo-preview", names) == "gpt-4-turbo"
        assert match_model_name("claude-3-haiku", names) == "claude-3-haiku-20240307"
        assert match_model_name("gpt-", names) is None

    def test_custom_pricing(self):
        table = PricingTable({})
        table.set_pricing("local", ModelPricing(input_price_per_1k=0.0, output_price_per_1k=0.0))
        assert table.models() == ["local"]

    def test_tokens_per_request(self):
        assert tokens_per_request("gpt-4") == 800
        assert tokens_per_request("unknown") == 500


class TestCostEstimator:
    """CostEstimator.estimate_grid_search"""

    def test_single_model(self):
        estimate = CostEstimator(PricingTable()).estimate_grid_search(["gpt-4o-mini"], 2, 10)
        expected = 600 * 20 / 1000 * 0.00015 + 250 * 20 / 1000 * 0.0006

        assert estimate.total_cost == pytest.approx(expected)
        assert estimate.model_breakdown["gpt-4o-mini"].operations == 20
        assert estimate.model_breakdown["gpt-4o-mini"].estimated_tokens == 850 * 20
        assert estimate.cost_range["min"] == pytest.approx(expected * 0.75)
        assert estimate.estimated_duration_seconds == pytest.approx(60.0)
        assert estimate.assumptions[0] == "~600 input tokens per request"

    def test_operations_split_across_models(self):
        estimate = CostEstimator(PricingTable()).estimate_grid_search(["gpt-4o", "gpt-4o-mini"], 4, 5, parallelism=2)
        assert estimate.model_breakdown["gpt-4o"].operations == 10
        assert estimate.estimated_duration_seconds == pytest.approx(30.0)

    def test_unpriced_models_are_skipped(self):
        estimate = CostEstimator(PricingTable()).estimate_grid_search(["llama-3"], 1, 10)
        assert estimate.total_cost == 0.0
        assert estimate.model_breakdown == {}
