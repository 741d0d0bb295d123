from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from halu.llm.types import UsageCounter

# USD per million tokens.
DEFAULT_PRICES: Dict[str, Dict[str, float]] = {
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
}


@dataclass
class PriceTable:
    prices: Dict[str, Dict[str, float]] = field(default_factory=lambda: dict(DEFAULT_PRICES))

    def with_overrides(self, overrides: Dict[str, Dict[str, float]]) -> "PriceTable":
        merged = dict(self.prices)
        merged.update(overrides)
        return PriceTable(prices=merged)

    def lookup(self, model: str) -> Optional[Dict[str, float]]:
        if model in self.prices:
            return self.prices[model]
        # OpenRouter-style "vendor/model" names
        short = model.rsplit("/", 1)[-1]
        return self.prices.get(short)

    def estimate_cost(self, model: str, usage: UsageCounter) -> Optional[float]:
        """Return the estimated USD cost, or None when the model has no price entry."""
        entry = self.lookup(model)
        if entry is None:
            return None
        return (
            usage.input_tokens * entry.get("input", 0.0)
            + usage.output_tokens * entry.get("output", 0.0)
        ) / 1_000_000


__all__ = ["PriceTable", "DEFAULT_PRICES"]
