"""Fluent model selection with ranking and graceful degradation."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import structlog

from openrouter_policy.catalog.catalog import ModelCatalog
from openrouter_policy.catalog.types import Capability, ModelRecord, PerformanceTier
from openrouter_policy.selection.cost import CostEstimator
from openrouter_policy.selection.predicates import matches
from openrouter_policy.selection.ranking import sort_by_strategy
from openrouter_policy.selection.requirements import (
    RequirementSet,
    Strategy,
    flatten_names,
    to_timestamp,
)

logger = structlog.get_logger()

# Requirements relaxed by choose_with_fallback(), least essential first
DEGRADATION_ORDER: tuple[str, ...] = (
    "released_after",
    "performance_tier",
    "max_output_cost",
    "min_context_length",
    "max_input_cost",
)


class ModelSelector:
    """Selects the best model from a catalog for a set of requirements.

    Every builder method returns a new selector; the receiver is left
    untouched, so a partially configured selector can be reused as a base.

    Example:
        model = (
            ModelSelector(catalog)
            .require("function_calling")
            .within_budget(max_cost=0.01)
            .optimize_for("cost")
            .choose()
        )
    """

    def __init__(
        self,
        catalog: ModelCatalog,
        requirements: RequirementSet | None = None,
    ) -> None:
        self._catalog = catalog
        self._requirements = requirements or RequirementSet()

    @property
    def requirements(self) -> RequirementSet:
        return self._requirements

    @property
    def catalog(self) -> ModelCatalog:
        return self._catalog

    def _derive(self, **changes: Any) -> ModelSelector:
        return ModelSelector(self._catalog, self._requirements.replace(**changes))

    # ------------------------------------------------------------------
    # Builder
    # ------------------------------------------------------------------

    def require(self, *capabilities: Capability | str) -> ModelSelector:
        """Require every given capability (added to those already required)."""
        return ModelSelector(
            self._catalog, self._requirements.with_capabilities(*capabilities)
        )

    def within_budget(
        self,
        *,
        max_cost: float | None = None,
        max_output_cost: float | None = None,
    ) -> ModelSelector:
        """Set ceilings on the USD cost per 1k input / output tokens."""
        changes: dict[str, float] = {}
        for name, value in (("max_input_cost", max_cost), ("max_output_cost", max_output_cost)):
            if value is None:
                continue
            if value < 0:
                raise ValueError(f"{name} must be non-negative")
            changes[name] = float(value)
        return self._derive(**changes)

    def min_context(self, tokens: int) -> ModelSelector:
        if tokens < 0:
            raise ValueError("min_context must be non-negative")
        return self._derive(min_context_length=int(tokens))

    def require_tier(self, tier: PerformanceTier | str) -> ModelSelector:
        """Hard-filter by performance tier (premium satisfies standard)."""
        return self._derive(performance_tier=PerformanceTier(tier))

    def require_providers(self, *providers: str | list[str]) -> ModelSelector:
        return self._derive(required_providers=frozenset(flatten_names(providers)))

    def avoid_providers(self, *providers: str | list[str]) -> ModelSelector:
        return self._derive(avoided_providers=frozenset(flatten_names(providers)))

    def avoid_patterns(self, *patterns: str | list[str]) -> ModelSelector:
        """Exclude models whose id matches any of the glob patterns."""
        return self._derive(avoided_patterns=flatten_names(patterns))

    def prefer_providers(self, *providers: str | list[str]) -> ModelSelector:
        """Soft preference: breaks ranking ties, never excludes a model."""
        return self._derive(preferred_providers=flatten_names(providers))

    def newer_than(self, when: date | datetime | int | float) -> ModelSelector:
        return self._derive(released_after=to_timestamp(when))

    def optimize_for(self, strategy: Strategy | str) -> ModelSelector:
        return self._derive(strategy=Strategy.parse(strategy))

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _rank(self, requirements: RequirementSet) -> list[ModelRecord]:
        survivors = self._catalog.filter(lambda r: matches(r, requirements))
        return sort_by_strategy(
            survivors,
            requirements.strategy,
            requirements.preferred_providers,
        )

    def candidates(self) -> list[ModelRecord]:
        """All models meeting the requirements, best first."""
        return self._rank(self._requirements)

    def choose(self, return_specs: bool = False) -> str | tuple[str, ModelRecord] | None:
        """Return the best matching model id, or ``None`` when nothing matches.

        Args:
            return_specs: Return ``(model_id, record)`` instead of the id.
        """
        ranked = self.candidates()
        if not ranked:
            logger.debug("No model matches requirements", **self._requirements.to_dict())
            return None

        best = ranked[0]
        logger.debug(
            "Model selected",
            model=best.id,
            strategy=self._requirements.strategy.value,
            candidates=len(ranked),
        )
        return (best.id, best) if return_specs else best.id

    def choose_with_fallbacks(self, limit: int = 3) -> list[str]:
        """Up to *limit* matching model ids, best first."""
        if limit <= 0:
            return []
        return [r.id for r in self.candidates()[:limit]]

    def degradation_steps(self) -> list[tuple[str, RequirementSet]]:
        """The successively relaxed requirement sets tried by the fallback.

        Only constraints that are actually set produce a step. Once every
        field in :data:`DEGRADATION_ORDER` is gone, what remains is the
        capabilities-only set (capabilities plus provider and pattern
        filters), so the last step already covers that stage.
        """
        steps: list[tuple[str, RequirementSet]] = []
        relaxed = self._requirements
        for name in DEGRADATION_ORDER:
            if getattr(relaxed, name) is None:
                continue
            relaxed = relaxed.without(name)
            steps.append((name, relaxed))
        return steps

    def choose_with_fallback(self) -> str | None:
        """Best model id, relaxing requirements until something matches.

        Requirements are dropped one at a time in :data:`DEGRADATION_ORDER`,
        which leaves capabilities and provider filters, and are finally
        ignored entirely in favour of the cheapest model in the catalog.
        Returns ``None`` only when the catalog is empty.
        """
        chosen = self.choose()
        if chosen is not None:
            return chosen

        for dropped, relaxed in self.degradation_steps():
            ranked = self._rank(relaxed)
            if ranked:
                logger.warning(
                    "Requirements relaxed to find a model",
                    dropped=dropped,
                    model=ranked[0].id,
                )
                return ranked[0].id

        cheapest = min(
            self._catalog.all().values(),
            key=lambda r: r.cost_per_1k.input,
            default=None,
        )
        if cheapest is None:
            logger.warning("Model catalog is empty")
            return None

        logger.warning(
            "No model meets any requirement, using cheapest available",
            model=cheapest.id,
        )
        return cheapest.id

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def selection_criteria(self) -> dict[str, Any]:
        """Snapshot of the current requirements and strategy."""
        return self._requirements.to_dict()

    def estimate_cost(
        self,
        model_id: str,
        input_tokens: int = 1000,
        output_tokens: int = 1000,
    ) -> float:
        return CostEstimator(self._catalog).estimate(
            model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
