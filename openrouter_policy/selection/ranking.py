"""Strategy-based ordering of candidate models."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from openrouter_policy.catalog.types import ModelRecord, PerformanceTier
from openrouter_policy.selection.requirements import Strategy


def _cost_key(record: ModelRecord) -> tuple[Any, ...]:
    return (record.cost_per_1k.input,)


def _performance_key(record: ModelRecord) -> tuple[Any, ...]:
    tier_rank = 0 if record.performance_tier == PerformanceTier.PREMIUM else 1
    return (tier_rank, record.cost_per_1k.input)


def _latest_key(record: ModelRecord) -> tuple[Any, ...]:
    # Missing timestamps count as 0 and therefore sort last
    return (-(record.created_at or 0),)


def _context_key(record: ModelRecord) -> tuple[Any, ...]:
    return (-(record.context_length or 0),)


STRATEGY_KEYS: dict[Strategy, Callable[[ModelRecord], tuple[Any, ...]]] = {
    Strategy.COST: _cost_key,
    Strategy.PERFORMANCE: _performance_key,
    Strategy.LATEST: _latest_key,
    Strategy.CONTEXT: _context_key,
}


def sort_by_strategy(
    records: Iterable[ModelRecord],
    strategy: Strategy = Strategy.COST,
    preferred_providers: Sequence[str] = (),
) -> list[ModelRecord]:
    """Order *records* best-first.

    The sort is stable: records with equal keys keep their catalog order.
    Preferred providers only break ties left by the strategy key, earlier
    entries in *preferred_providers* winning.
    """
    key = STRATEGY_KEYS[strategy]
    if not preferred_providers:
        return sorted(records, key=key)

    rank = {name: i for i, name in enumerate(preferred_providers)}
    fallback = len(rank)
    return sorted(records, key=lambda r: key(r) + (rank.get(r.provider, fallback),))
