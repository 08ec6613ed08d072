"""Model catalog types."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Context windows above this many tokens earn the long_context tag
LONG_CONTEXT_THRESHOLD = 100_000

# USD per 1k input tokens above which a model counts as premium
PREMIUM_INPUT_COST_PER_1K = 0.001


class Capability(str, Enum):
    """Feature tags a model may support."""

    CHAT = "chat"
    FUNCTION_CALLING = "function_calling"
    STRUCTURED_OUTPUTS = "structured_outputs"
    VISION = "vision"
    LONG_CONTEXT = "long_context"


class PerformanceTier(str, Enum):
    """Coarse ranking signal derived from pricing."""

    ECONOMY = "economy"
    STANDARD = "standard"
    PREMIUM = "premium"


def capability_value(capability: Capability | str) -> str:
    """Normalize a capability enum member or plain string to its tag."""
    if isinstance(capability, Capability):
        return capability.value
    return str(capability).strip().lower()


class TokenCost(BaseModel):
    """USD cost per 1k tokens."""

    model_config = ConfigDict(frozen=True)

    input: float = Field(default=0.0, ge=0.0)
    output: float = Field(default=0.0, ge=0.0)


class ModelRecord(BaseModel):
    """Immutable metadata about one model in the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Model id in provider/name form")
    name: str | None = Field(default=None, description="Human-readable name")
    capabilities: frozenset[str] = Field(default_factory=frozenset)
    cost_per_1k: TokenCost = Field(default_factory=TokenCost)
    context_length: int | None = Field(default=None, ge=0)
    performance_tier: PerformanceTier = PerformanceTier.STANDARD
    created_at: int | None = Field(default=None, description="Unix timestamp")
    description: str | None = None
    supported_parameters: tuple[str, ...] = ()
    input_modalities: tuple[str, ...] = ()

    @field_validator("capabilities", mode="before")
    @classmethod
    def _normalize_capabilities(cls, value: Any) -> frozenset[str]:
        if isinstance(value, (str, Capability)):
            value = [value]
        return frozenset(capability_value(c) for c in value or ())

    @property
    def provider(self) -> str:
        """Provider prefix of the id (``anthropic/claude-3`` -> ``anthropic``)."""
        return self.id.split("/", 1)[0]

    def has_capability(self, capability: Capability | str) -> bool:
        return capability_value(capability) in self.capabilities

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ModelRecord:
        """Build a record from one row of the OpenRouter ``/models`` payload.

        OpenRouter prices are USD per token encoded as strings; they are
        converted to USD per 1k tokens here.
        """
        pricing = data.get("pricing") or {}
        cost = TokenCost(
            input=_per_token_to_per_1k(pricing.get("prompt")),
            output=_per_token_to_per_1k(pricing.get("completion")),
        )
        architecture = data.get("architecture") or {}
        modalities = tuple(architecture.get("input_modalities") or ())
        supported = tuple(data.get("supported_parameters") or ())
        context_length = data.get("context_length")
        created = data.get("created")

        return cls(
            id=data["id"],
            name=data.get("name"),
            capabilities=extract_capabilities(supported, modalities, context_length),
            cost_per_1k=cost,
            context_length=context_length,
            performance_tier=determine_performance_tier(cost.input),
            created_at=int(created) if created is not None else None,
            description=data.get("description"),
            supported_parameters=supported,
            input_modalities=modalities,
        )


def _per_token_to_per_1k(value: Any) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    # OpenRouter reports -1 for dynamically priced routers
    return price * 1000 if price > 0 else 0.0


def extract_capabilities(
    supported_parameters: tuple[str, ...],
    input_modalities: tuple[str, ...],
    context_length: int | None,
) -> frozenset[str]:
    """Derive capability tags from the raw model metadata."""
    caps = {Capability.CHAT.value}
    params = set(supported_parameters)

    if "tools" in params and "tool_choice" in params:
        caps.add(Capability.FUNCTION_CALLING.value)
    if "structured_outputs" in params or "response_format" in params:
        caps.add(Capability.STRUCTURED_OUTPUTS.value)
    if "image" in input_modalities:
        caps.add(Capability.VISION.value)
    if (context_length or 0) > LONG_CONTEXT_THRESHOLD:
        caps.add(Capability.LONG_CONTEXT.value)

    return frozenset(caps)


def determine_performance_tier(input_cost_per_1k: float) -> PerformanceTier:
    """Free models are economy; expensive input pricing indicates premium."""
    if input_cost_per_1k <= 0:
        return PerformanceTier.ECONOMY
    if input_cost_per_1k > PREMIUM_INPUT_COST_PER_1K:
        return PerformanceTier.PREMIUM
    return PerformanceTier.STANDARD
