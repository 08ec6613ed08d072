"""OpenRouter client, structured-output requests and routing."""

from openrouter_policy.llm.capabilities import CapabilityGuard
from openrouter_policy.llm.client import CompletionResult, OpenRouterClient
from openrouter_policy.llm.router import SmartRouter, selector_from_requirements
from openrouter_policy.llm.structured import StructuredCompleter

__all__ = [
    "CapabilityGuard",
    "CompletionResult",
    "OpenRouterClient",
    "SmartRouter",
    "StructuredCompleter",
    "selector_from_requirements",
]
