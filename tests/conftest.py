"""Shared fixtures for openrouter-policy tests."""

from typing import Any

import pytest

from openrouter_policy.catalog import ModelCatalog, ModelRecord, PerformanceTier, TokenCost


def make_record(
    model_id: str,
    input_cost: float,
    output_cost: float | None = None,
    capabilities: tuple[str, ...] = ("chat",),
    context_length: int | None = 8192,
    tier: PerformanceTier = PerformanceTier.STANDARD,
    created_at: int | None = None,
) -> ModelRecord:
    """Build a ModelRecord with sensible defaults."""
    return ModelRecord(
        id=model_id,
        capabilities=capabilities,
        cost_per_1k=TokenCost(
            input=input_cost,
            output=output_cost if output_cost is not None else input_cost,
        ),
        context_length=context_length,
        performance_tier=tier,
        created_at=created_at,
    )


@pytest.fixture
def sample_records() -> list[ModelRecord]:
    """A small but varied set of models."""
    return [
        make_record(
            "openai/gpt-4o-mini",
            0.00015,
            0.0006,
            ("chat", "function_calling", "structured_outputs", "vision", "long_context"),
            context_length=128000,
            created_at=1721260800,
        ),
        make_record(
            "anthropic/claude-3.5-sonnet",
            0.003,
            0.015,
            ("chat", "function_calling", "vision", "long_context"),
            context_length=200000,
            tier=PerformanceTier.PREMIUM,
            created_at=1718841600,
        ),
        make_record(
            "meta-llama/llama-3-8b-instruct:free",
            0.0,
            0.0,
            ("chat",),
            context_length=8192,
            tier=PerformanceTier.ECONOMY,
            created_at=None,
        ),
        make_record(
            "google/gemini-flash-1.5",
            0.000075,
            0.0003,
            ("chat", "structured_outputs", "vision", "long_context"),
            context_length=1000000,
            created_at=1715644800,
        ),
        make_record(
            "mistralai/mistral-large",
            0.002,
            0.006,
            ("chat", "function_calling", "structured_outputs", "long_context"),
            context_length=128000,
            tier=PerformanceTier.PREMIUM,
            created_at=1708905600,
        ),
    ]


@pytest.fixture
def sample_catalog(sample_records: list[ModelRecord]) -> ModelCatalog:
    """Catalog over the sample records."""
    return ModelCatalog.from_records(sample_records)


@pytest.fixture
def api_rows() -> list[dict[str, Any]]:
    """Raw rows as returned by the OpenRouter /models endpoint."""
    return [
        {
            "id": "openai/gpt-4o",
            "name": "OpenAI: GPT-4o",
            "created": 1715367049,
            "description": "GPT-4o multimodal flagship",
            "context_length": 128000,
            "architecture": {"input_modalities": ["text", "image"]},
            "pricing": {"prompt": "0.0000025", "completion": "0.00001"},
            "supported_parameters": [
                "tools",
                "tool_choice",
                "response_format",
                "structured_outputs",
                "temperature",
            ],
        },
        {
            "id": "meta-llama/llama-3-8b-instruct:free",
            "name": "Meta: Llama 3 8B Instruct (free)",
            "created": 1713398400,
            "context_length": 8192,
            "architecture": {"input_modalities": ["text"]},
            "pricing": {"prompt": "0", "completion": "0"},
            "supported_parameters": ["temperature", "top_p"],
        },
        {
            "id": "openrouter/auto",
            "name": "Auto Router",
            "context_length": 2000000,
            "pricing": {"prompt": "-1", "completion": "-1"},
        },
    ]
