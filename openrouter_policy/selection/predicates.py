"""Pure predicate engine deciding whether a model satisfies requirements."""

from __future__ import annotations

from collections.abc import Callable
from fnmatch import fnmatchcase

from openrouter_policy.catalog.types import ModelRecord, PerformanceTier
from openrouter_policy.selection.requirements import RequirementSet

Check = Callable[[ModelRecord, RequirementSet], bool]

# Tiers that satisfy a hard tier requirement
_ACCEPTED_TIERS: dict[PerformanceTier, frozenset[PerformanceTier]] = {
    PerformanceTier.PREMIUM: frozenset({PerformanceTier.PREMIUM}),
    PerformanceTier.STANDARD: frozenset({PerformanceTier.STANDARD, PerformanceTier.PREMIUM}),
    PerformanceTier.ECONOMY: frozenset(PerformanceTier),
}


def check_capabilities(record: ModelRecord, req: RequirementSet) -> bool:
    return req.capabilities <= record.capabilities


def check_cost(record: ModelRecord, req: RequirementSet) -> bool:
    if req.max_input_cost is not None and record.cost_per_1k.input > req.max_input_cost:
        return False
    if req.max_output_cost is not None and record.cost_per_1k.output > req.max_output_cost:
        return False
    return True


def check_context(record: ModelRecord, req: RequirementSet) -> bool:
    if req.min_context_length is None:
        return True
    if record.context_length is None:
        # Unknown context cannot satisfy a positive floor
        return req.min_context_length <= 0
    return record.context_length >= req.min_context_length


def check_tier(record: ModelRecord, req: RequirementSet) -> bool:
    if req.performance_tier is None:
        return True
    return record.performance_tier in _ACCEPTED_TIERS[req.performance_tier]


def check_providers(record: ModelRecord, req: RequirementSet) -> bool:
    provider = record.provider
    if req.required_providers is not None and provider not in req.required_providers:
        return False
    return provider not in req.avoided_providers


def check_patterns(record: ModelRecord, req: RequirementSet) -> bool:
    return not any(fnmatchcase(record.id, pattern) for pattern in req.avoided_patterns)


def check_release_date(record: ModelRecord, req: RequirementSet) -> bool:
    if req.released_after is None:
        return True
    if record.created_at is None:
        # Recency cannot be proven
        return False
    return record.created_at >= req.released_after


CHECKS: tuple[tuple[str, Check], ...] = (
    ("capabilities", check_capabilities),
    ("cost", check_cost),
    ("context", check_context),
    ("tier", check_tier),
    ("providers", check_providers),
    ("patterns", check_patterns),
    ("released_after", check_release_date),
)


def first_failed_check(record: ModelRecord, req: RequirementSet) -> str | None:
    """Name of the first failing check, or ``None`` when all pass."""
    for name, check in CHECKS:
        if not check(record, req):
            return name
    return None


def matches(record: ModelRecord, req: RequirementSet) -> bool:
    """True if *record* satisfies every constraint in *req*."""
    return first_failed_check(record, req) is None
