"""Requirement-driven model routing with fallback support."""

from collections.abc import Mapping
from typing import Any

import structlog

from openrouter_policy.catalog.catalog import ModelCatalog
from openrouter_policy.exceptions import AllModelsFailedError, ModelSelectionError
from openrouter_policy.executor import CompletionExecutor, Messages
from openrouter_policy.llm.capabilities import CapabilityGuard
from openrouter_policy.llm.client import OpenRouterClient
from openrouter_policy.selection.selector import ModelSelector

logger = structlog.get_logger()


def _required_capabilities(requirements: Mapping[str, Any] | None) -> list[str]:
    capabilities = (requirements or {}).get("capabilities") or []
    if isinstance(capabilities, str):
        return [capabilities]
    return list(capabilities)


def selector_from_requirements(
    catalog: ModelCatalog,
    requirements: Mapping[str, Any] | None = None,
) -> ModelSelector:
    """Build a selector from the dict form of requirements.

    Recognized keys: ``capabilities``, ``max_cost`` / ``max_input_cost``,
    ``max_output_cost``, ``min_context_length``, ``performance_tier``,
    ``avoid_patterns``, ``newer_than`` and ``providers``. ``providers`` is
    either a list of preferred providers or a dict with ``prefer``,
    ``require`` and ``avoid`` lists.
    """
    selector = ModelSelector(catalog)
    if not requirements:
        return selector

    capabilities = _required_capabilities(requirements)
    if capabilities:
        selector = selector.require(*capabilities)

    max_cost = requirements.get("max_cost", requirements.get("max_input_cost"))
    max_output_cost = requirements.get("max_output_cost")
    if max_cost is not None or max_output_cost is not None:
        selector = selector.within_budget(max_cost=max_cost, max_output_cost=max_output_cost)

    if requirements.get("min_context_length") is not None:
        selector = selector.min_context(requirements["min_context_length"])
    if requirements.get("performance_tier"):
        selector = selector.require_tier(requirements["performance_tier"])
    if requirements.get("avoid_patterns"):
        selector = selector.avoid_patterns(requirements["avoid_patterns"])
    if requirements.get("newer_than") is not None:
        selector = selector.newer_than(requirements["newer_than"])

    providers = requirements.get("providers")
    if isinstance(providers, Mapping):
        if providers.get("prefer"):
            selector = selector.prefer_providers(providers["prefer"])
        if providers.get("require"):
            selector = selector.require_providers(providers["require"])
        if providers.get("avoid"):
            selector = selector.avoid_providers(providers["avoid"])
    elif providers:
        selector = selector.prefer_providers(providers)

    return selector


class SmartRouter:
    """Routes completions to the best catalog model for the requirements."""

    def __init__(
        self,
        client: CompletionExecutor,
        catalog: ModelCatalog,
        guard: CapabilityGuard | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            client: Executor that performs the completions.
            catalog: Catalog the models are selected from.
            guard: Capability guard applied before selection. Defaults to
                the guard of an :class:`OpenRouterClient`, if any.
        """
        self._client = client
        self._catalog = catalog
        if guard is None and isinstance(client, OpenRouterClient):
            guard = client.capability_guard
        self._guard = guard

    def select(
        self,
        requirements: Mapping[str, Any] | None = None,
        optimization: str = "cost",
    ) -> ModelSelector:
        """Selector for *requirements*.

        Raises:
            CapabilityError: In strict capability mode, when no catalog model
                has every required capability.
        """
        if self._guard is not None:
            self._guard.ensure_satisfiable(_required_capabilities(requirements))
        return selector_from_requirements(self._catalog, requirements).optimize_for(optimization)

    def smart_complete(
        self,
        messages: Messages,
        requirements: Mapping[str, Any] | None = None,
        optimization: str = "cost",
        **extras: Any,
    ) -> Any:
        """Complete with the best matching model.

        Raises:
            CapabilityError: In strict capability mode, when no catalog model
                has every required capability.
            ModelSelectionError: If no model meets the requirements.
        """
        model = self.select(requirements, optimization).choose()
        if model is None:
            raise ModelSelectionError(
                f"No model found matching requirements: {dict(requirements or {})}"
            )

        logger.info("Routing completion", model=model, strategy=optimization)
        return self._client.execute(messages, model, **extras)

    def smart_complete_with_fallback(
        self,
        messages: Messages,
        requirements: Mapping[str, Any] | None = None,
        optimization: str = "cost",
        max_retries: int = 3,
        **extras: Any,
    ) -> Any:
        """Complete with the best model, falling back down the ranking.

        Up to ``max_retries + 1`` ranked models are tried in order.

        Raises:
            ModelSelectionError: If no model meets the requirements.
            AllModelsFailedError: If every tried model failed.
        """
        models = self.select(requirements, optimization).choose_with_fallbacks(
            limit=max_retries + 1
        )
        if not models:
            raise ModelSelectionError(
                f"No models found matching requirements: {dict(requirements or {})}"
            )

        errors: list[tuple[str, Exception]] = []
        for model in models:
            try:
                logger.debug("Attempting completion", model=model)
                result = self._client.execute(messages, model, **extras)
                logger.info("Completion successful", model=model, attempts=len(errors) + 1)
                return result
            except Exception as e:
                logger.warning("Model failed, trying fallback", model=model, error=str(e))
                errors.append((model, e))

        raise AllModelsFailedError(errors=errors)
