"""Exceptions for openrouter_policy."""

from typing import Any


class OpenRouterError(Exception):
    """Base exception for openrouter_policy errors."""

    pass


class ConfigurationError(OpenRouterError):
    """Raised when configuration values are missing or inconsistent."""

    pass


class CatalogUnavailableError(OpenRouterError):
    """Raised when the model catalog cannot be loaded from its data source."""

    pass


class UnknownModelError(OpenRouterError):
    """Raised when a model id is not present in the catalog."""

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Unknown model: '{model_id}'")


class ModelSelectionError(OpenRouterError):
    """Raised when no model can be selected for a request."""

    pass


class AllModelsFailedError(ModelSelectionError):
    """Raised when every ranked fallback model failed."""

    def __init__(self, errors: list[tuple[str, Exception]]) -> None:
        self.errors = errors
        models_tried = [f"{model}: {error}" for model, error in errors]
        super().__init__(
            f"All fallback models failed. Tried: {'; '.join(models_tried)}"
        )


class CapabilityError(OpenRouterError):
    """Raised when a model cannot provide a required capability in strict mode."""

    def __init__(
        self,
        message: str,
        model_id: str | None = None,
        capability: str | None = None,
    ) -> None:
        self.model_id = model_id
        self.capability = capability
        super().__init__(message)


class StructuredOutputError(OpenRouterError):
    """Raised when structured output cannot be parsed, validated or healed."""

    SNIPPET_LENGTH = 200

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        errors: list[str] | None = None,
        content: str | None = None,
        cause: Any = None,
    ) -> None:
        self.attempts = attempts
        self.errors = list(errors or [])
        self.content = content
        self.cause = cause
        super().__init__(self._build_message(message))

    def _build_message(self, message: str) -> str:
        parts = [message, f"attempts={self.attempts}"]
        if self.errors:
            parts.append(f"errors: {'; '.join(self.errors)}")
        if self.content is not None:
            snippet = self.content[: self.SNIPPET_LENGTH]
            if len(self.content) > self.SNIPPET_LENGTH:
                snippet += "..."
            parts.append(f"content: {snippet!r}")
        return " | ".join(parts)
