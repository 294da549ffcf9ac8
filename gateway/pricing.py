"""
Inference Gateway - Cost Calculation

The engine only sees the CostCalculator interface; the default
implementation prices usage from the model catalogue.
All prices are in USD per 1 million tokens.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .core.models import Usage
from .registry import AvailableModels


class CostCalculator(ABC):
    """Prices one request's usage for a caller-facing model name."""

    @abstractmethod
    def calculate_cost(self, model: str, usage: Usage) -> Optional[float]:
        """Return the cost in USD, or None when the model has no pricing."""
        pass


class CatalogCostCalculator(CostCalculator):
    """Cost calculator backed by catalogue pricing."""

    def __init__(self, available_models: AvailableModels):
        self.available_models = available_models

    def calculate_cost(self, model: str, usage: Usage) -> Optional[float]:
        definition = self.available_models.get(model)
        if definition is None:
            return None

        pricing = definition.info.pricing
        if not pricing.input_per_1m_tokens and not pricing.output_per_1m_tokens:
            return None

        input_cost = (usage.prompt_tokens / 1_000_000) * pricing.input_per_1m_tokens
        output_cost = (usage.completion_tokens / 1_000_000) * pricing.output_per_1m_tokens
        return round(input_cost + output_cost, 8)
