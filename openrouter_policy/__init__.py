"""Model selection and structured-output healing for the OpenRouter API."""

__version__ = "0.1.0"

from openrouter_policy.catalog import ModelCatalog, ModelRecord, build_catalog
from openrouter_policy.exceptions import (
    AllModelsFailedError,
    CapabilityError,
    CatalogUnavailableError,
    ConfigurationError,
    ModelSelectionError,
    OpenRouterError,
    StructuredOutputError,
    UnknownModelError,
)
from openrouter_policy.healing import HealingOrchestrator, JsonSchema, OutputMode
from openrouter_policy.selection import CostEstimator, ModelSelector, RequirementSet, Strategy

__all__ = [
    "AllModelsFailedError",
    "CapabilityError",
    "CatalogUnavailableError",
    "ConfigurationError",
    "CostEstimator",
    "HealingOrchestrator",
    "JsonSchema",
    "ModelCatalog",
    "ModelRecord",
    "ModelSelectionError",
    "ModelSelector",
    "OpenRouterError",
    "OutputMode",
    "RequirementSet",
    "Strategy",
    "StructuredOutputError",
    "UnknownModelError",
    "__version__",
    "build_catalog",
]
