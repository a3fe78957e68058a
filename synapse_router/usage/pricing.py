"""
Synapse Router - Pricing Catalog

Per-model token pricing used to estimate request cost.
Prices are USD per 1 million tokens.

Models missing from the catalog are charged the fallback rate of
$10 input / $30 output per 1M tokens ($0.01 / $0.03 per 1K).

Updated: January 2025
"""

from dataclasses import dataclass
from typing import Dict, Optional

FALLBACK_INPUT_PER_1M = 10.00
FALLBACK_OUTPUT_PER_1M = 30.00


@dataclass(frozen=True)
class ModelPrice:
    """Pricing for a single model, USD per 1M tokens."""
    model_id: str
    input_per_1m: float
    output_per_1m: float

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        input_cost = (input_tokens / 1_000_000) * self.input_per_1m
        output_cost = (output_tokens / 1_000_000) * self.output_per_1m
        return round(input_cost + output_cost, 8)


FALLBACK_PRICE = ModelPrice("*", FALLBACK_INPUT_PER_1M, FALLBACK_OUTPUT_PER_1M)


class PricingCatalog:
    """Catalog of model prices with a fallback rate for unknown models."""

    def __init__(self, fallback: ModelPrice = FALLBACK_PRICE):
        self.fallback = fallback
        self._prices: Dict[str, ModelPrice] = {}
        self._load_default_pricing()

    def _load_default_pricing(self):
        # Anthropic
        self.add_price(ModelPrice("claude-3-5-sonnet-20241022", 3.00, 15.00))
        self.add_price(ModelPrice("claude-3-5-haiku-20241022", 0.80, 4.00))
        self.add_price(ModelPrice("claude-3-opus-20240229", 15.00, 75.00))

        # DeepSeek
        self.add_price(ModelPrice("deepseek-chat", 0.27, 1.10))
        self.add_price(ModelPrice("deepseek-reasoner", 0.55, 2.19))

        # Qwen
        self.add_price(ModelPrice("qwen-max-2025-01-25", 1.60, 6.40))

        # OpenAI
        self.add_price(ModelPrice("gpt-4o", 2.50, 10.00))
        self.add_price(ModelPrice("gpt-4o-mini", 0.15, 0.60))

    def add_price(self, price: ModelPrice):
        self._prices[price.model_id] = price

    def get_price(self, model_id: str) -> Optional[ModelPrice]:
        """
        Look up a model.

        Accepts bare ids and vendor-prefixed ids ("anthropic/claude-...").
        Returns None when the model is not in the catalog.
        """
        if model_id in self._prices:
            return self._prices[model_id]

        if "/" in model_id:
            return self._prices.get(model_id.rsplit("/", 1)[1])

        return None

    def price_for(self, model_id: str) -> ModelPrice:
        """Catalog price, or the fallback rate."""
        return self.get_price(model_id) or self.fallback

    def calculate_cost(self, model_id: str, input_tokens: int, output_tokens: int) -> float:
        return self.price_for(model_id).calculate_cost(input_tokens, output_tokens)


_catalog: Optional[PricingCatalog] = None


def get_pricing_catalog() -> PricingCatalog:
    """Get the process-wide pricing catalog."""
    global _catalog
    if _catalog is None:
        _catalog = PricingCatalog()
    return _catalog


def calculate_cost(model_id: str, input_tokens: int, output_tokens: int) -> float:
    """Calculate cost with the process-wide catalog."""
    return get_pricing_catalog().calculate_cost(model_id, input_tokens, output_tokens)
