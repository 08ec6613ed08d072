"""Requirement value object used by the model selector."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any

from openrouter_policy.catalog.types import Capability, PerformanceTier, capability_value


class Strategy(str, Enum):
    """Ranking rule applied to surviving candidates."""

    COST = "cost"
    PERFORMANCE = "performance"
    LATEST = "latest"
    CONTEXT = "context"

    @classmethod
    def parse(cls, value: Strategy | str) -> Strategy:
        try:
            return cls(value)
        except ValueError:
            available = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Unknown strategy: {value}. Available: {available}"
            ) from None


def to_timestamp(value: date | datetime | int | float) -> int:
    """Convert a date, datetime or unix timestamp to an integer timestamp.

    Dates mean midnight UTC; naive datetimes are taken as UTC.
    """
    if isinstance(value, bool):
        raise TypeError("newer_than() expects a date, datetime or timestamp")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    if isinstance(value, date):
        return int(datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp())
    if isinstance(value, (int, float)):
        return int(value)
    raise TypeError(
        f"newer_than() expects a date, datetime or timestamp, got {type(value).__name__}"
    )


def flatten_names(values: Iterable[Any]) -> tuple[str, ...]:
    """Flatten varargs that may contain nested lists into unique strings."""
    result: list[str] = []
    for value in values:
        if isinstance(value, (list, tuple, set, frozenset)):
            items: Iterable[Any] = value
        else:
            items = (value,)
        for item in items:
            name = str(item)
            if name not in result:
                result.append(name)
    return tuple(result)


@dataclass(frozen=True)
class RequirementSet:
    """Immutable set of hard constraints plus the ranking strategy.

    Every builder operation returns a new instance; an existing instance is
    never modified, so a base requirement set can be shared and extended
    from several places at once.
    """

    capabilities: frozenset[str] = frozenset()
    max_input_cost: float | None = None
    max_output_cost: float | None = None
    min_context_length: int | None = None
    performance_tier: PerformanceTier | None = None
    required_providers: frozenset[str] | None = None
    avoided_providers: frozenset[str] = frozenset()
    avoided_patterns: tuple[str, ...] = ()
    released_after: int | None = None
    strategy: Strategy = Strategy.COST
    preferred_providers: tuple[str, ...] = ()

    def replace(self, **changes: Any) -> RequirementSet:
        return dataclasses.replace(self, **changes)

    def with_capabilities(self, *capabilities: Capability | str) -> RequirementSet:
        added = frozenset(capability_value(c) for c in flatten_names(capabilities))
        return self.replace(capabilities=self.capabilities | added)

    def without(self, name: str) -> RequirementSet:
        """Drop a single optional constraint (reset to its default)."""
        defaults = {f.name: f.default for f in dataclasses.fields(self)}
        if name not in defaults:
            raise ValueError(f"Unknown requirement: {name}")
        return self.replace(**{name: defaults[name]})

    def to_dict(self) -> dict[str, Any]:
        return {
            "capabilities": sorted(self.capabilities),
            "max_input_cost": self.max_input_cost,
            "max_output_cost": self.max_output_cost,
            "min_context_length": self.min_context_length,
            "performance_tier": self.performance_tier.value if self.performance_tier else None,
            "required_providers": (
                sorted(self.required_providers) if self.required_providers is not None else None
            ),
            "avoided_providers": sorted(self.avoided_providers),
            "avoided_patterns": list(self.avoided_patterns),
            "released_after": self.released_after,
            "strategy": self.strategy.value,
            "preferred_providers": list(self.preferred_providers),
        }
