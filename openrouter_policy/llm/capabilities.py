"""Capability checks performed before a request reaches the provider."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from openrouter_policy.catalog.catalog import ModelCatalog
from openrouter_policy.catalog.types import Capability, capability_value
from openrouter_policy.config.settings import CapabilityConfig
from openrouter_policy.exceptions import CapabilityError

logger = structlog.get_logger()


class CapabilityGuard:
    """Warns about (or rejects) requests a model cannot serve.

    Models missing from the catalog are not checked; the provider is left
    to reject them.
    """

    def __init__(
        self,
        catalog: ModelCatalog,
        strict_mode: bool = False,
        auto_force_on_unsupported_models: bool = True,
    ) -> None:
        self._catalog = catalog
        self._strict = strict_mode
        self._auto_force = auto_force_on_unsupported_models
        self._warned: set[tuple[str, str]] = set()

    @classmethod
    def from_config(cls, catalog: ModelCatalog, config: CapabilityConfig) -> CapabilityGuard:
        return cls(
            catalog,
            strict_mode=config.strict_mode,
            auto_force_on_unsupported_models=config.auto_force_on_unsupported_models,
        )

    @property
    def strict_mode(self) -> bool:
        return self._strict

    def check(self, model: str, capability: Capability | str, feature: str) -> bool:
        """Return True when *model* supports *capability*.

        Raises:
            CapabilityError: In strict mode when the capability is missing.
        """
        cap = capability_value(capability)
        record = self._catalog.find(model)
        if record is None or record.has_capability(cap):
            return True

        message = f"Model {model} does not support {cap} (required for {feature})"
        if self._strict:
            raise CapabilityError(message, model_id=model, capability=cap)

        key = (model, cap)
        if key not in self._warned:
            self._warned.add(key)
            logger.warning(
                "Model lacks capability",
                model=model,
                capability=cap,
                feature=feature,
            )
        return False

    def should_force_extraction(self, model: str, force: bool | None = None) -> bool:
        """Whether structured output should be prompt-injected for *model*."""
        if force is not None:
            return force
        if not self._auto_force:
            return False
        record = self._catalog.find(model)
        if record is None:
            return False
        return not record.has_capability(Capability.STRUCTURED_OUTPUTS)

    def ensure_satisfiable(self, capabilities: Iterable[Capability | str]) -> None:
        """In strict mode, fail when no catalog model has every capability."""
        required = {capability_value(c) for c in capabilities}
        if not self._strict or not required:
            return
        for record in self._catalog:
            if required <= record.capabilities:
                return
        raise CapabilityError(
            f"No model in the catalog supports all of: {', '.join(sorted(required))}"
        )
