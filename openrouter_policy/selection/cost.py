"""Cost estimation over catalog pricing."""

from __future__ import annotations

from openrouter_policy.catalog.catalog import ModelCatalog
from openrouter_policy.catalog.types import ModelRecord


def estimate_cost(record: ModelRecord, input_tokens: int, output_tokens: int) -> float:
    """Estimated USD cost of a request. No rounding is applied."""
    if input_tokens < 0 or output_tokens < 0:
        raise ValueError("Token counts must be non-negative")
    return (input_tokens / 1000.0) * record.cost_per_1k.input + (
        output_tokens / 1000.0
    ) * record.cost_per_1k.output


class CostEstimator:
    """Estimates request cost for models in a catalog."""

    def __init__(self, catalog: ModelCatalog) -> None:
        self._catalog = catalog

    def estimate(self, model_id: str, *, input_tokens: int, output_tokens: int) -> float:
        """Estimate the cost of a request against *model_id*.

        Raises:
            UnknownModelError: If the model is not in the catalog.
        """
        record = self._catalog.get(model_id)
        return estimate_cost(record, input_tokens, output_tokens)
