"""OpenRouter chat-completions client."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from openai import OpenAI
from pydantic import BaseModel, Field

from openrouter_policy.catalog.catalog import ModelCatalog
from openrouter_policy.catalog.types import Capability
from openrouter_policy.config.settings import Settings, get_settings
from openrouter_policy.executor import Messages
from openrouter_policy.healing.orchestrator import HealingOrchestrator, SchemaLike
from openrouter_policy.llm.capabilities import CapabilityGuard
from openrouter_policy.llm.structured import StructuredCompleter

logger = structlog.get_logger()

CALLBACK_EVENTS = ("before_request", "after_response", "on_error", "on_healing")

# Request options OpenRouter accepts outside the OpenAI schema
EXTRA_BODY_OPTIONS = ("plugins", "provider", "transforms", "models", "route")


class CompletionResult(BaseModel):
    """Result from a completion call."""

    content: str = Field(..., description="The generated content")
    model: str = Field(..., description="Model that generated the response")
    prompt_tokens: int = Field(default=0, description="Number of prompt tokens")
    completion_tokens: int = Field(default=0, description="Number of completion tokens")
    finish_reason: str | None = Field(default=None, description="Why generation stopped")
    raw: dict[str, Any] | None = Field(default=None, description="Provider response body")

    @property
    def total_tokens(self) -> int:
        """Total tokens used."""
        return self.prompt_tokens + self.completion_tokens


def has_images(messages: Messages) -> bool:
    """True when any message carries image content parts."""
    for message in messages:
        content = message.get("content")
        if not isinstance(content, list):
            continue
        for part in content:
            if isinstance(part, dict) and part.get("type") in ("image_url", "image"):
                return True
    return False


class OpenRouterClient:
    """Synchronous client for the OpenRouter chat-completions API.

    Implements the completion executor contract, so it can back a
    :class:`HealingOrchestrator` (as healer) and a ``SmartRouter``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        settings: Settings | None = None,
        catalog: ModelCatalog | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: OpenRouter API key. If None, uses settings.
            base_url: API base URL. If None, uses settings.
            settings: Settings to read defaults from. If None, uses the
                process-wide settings.
            catalog: Catalog used for capability checks; checks are skipped
                without one.
            client: Preconfigured OpenAI SDK client (mainly for tests).
        """
        self._settings = settings or get_settings()
        config = self._settings.openrouter
        self._api_key = api_key if api_key is not None else config.api_key.get_secret_value()
        self._base_url = base_url if base_url is not None else config.base_url
        self._default_model = config.default_model
        self._timeout = config.request_timeout
        self._headers = config.extra_headers()
        self._client = client
        self._catalog = catalog
        self._guard = (
            CapabilityGuard.from_config(catalog, self._settings.capabilities)
            if catalog is not None
            else None
        )
        self._callbacks: dict[str, list[Callable[[Any], None]]] = {
            event: [] for event in CALLBACK_EVENTS
        }
        self._structured: StructuredCompleter | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def default_model(self) -> str:
        return self._default_model

    @property
    def catalog(self) -> ModelCatalog | None:
        return self._catalog

    @property
    def capability_guard(self) -> CapabilityGuard | None:
        return self._guard

    def _get_client(self) -> OpenAI:
        """Get or create the OpenAI SDK client."""
        if self._client is None:
            self._client = OpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                default_headers=self._headers or None,
            )
        return self._client

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def on(self, event: str, callback: Callable[[Any], None]) -> OpenRouterClient:
        """Register *callback* for *event*; returns self for chaining."""
        if event not in self._callbacks:
            raise ValueError(
                f"Invalid event: {event}. Valid events: {', '.join(CALLBACK_EVENTS)}"
            )
        self._callbacks[event].append(callback)
        return self

    def clear_callbacks(self, event: str | None = None) -> OpenRouterClient:
        if event is None:
            for callbacks in self._callbacks.values():
                callbacks.clear()
        elif event in self._callbacks:
            self._callbacks[event].clear()
        return self

    def trigger(self, event: str, payload: Any) -> None:
        """Invoke every callback for *event*. Callback errors are logged only."""
        for callback in self._callbacks.get(event, []):
            try:
                callback(payload)
            except Exception as exc:
                logger.warning("Callback failed", event=event, error=str(exc))

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    def complete(
        self,
        messages: Messages,
        model: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: Any = None,
        response_format: dict[str, Any] | None = None,
        **extras: Any,
    ) -> CompletionResult:
        """Make a completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model id. Defaults to the configured default model.
            temperature: Sampling temperature (0-2).
            max_tokens: Maximum tokens to generate.
            tools: Tool definitions; requires function calling.
            tool_choice: Tool choice directive.
            response_format: OpenAI-style response format.
            **extras: OpenRouter options (``plugins``, ``provider``,
                ``transforms``, ...) go into the request body; anything
                else is passed to the SDK.

        Returns:
            CompletionResult with the generated content.

        Raises:
            CapabilityError: In strict mode when the model lacks a
                capability the request needs.
        """
        model = model or self._default_model

        if self._guard is not None:
            if tools:
                self._guard.check(model, Capability.FUNCTION_CALLING, "tool calling")
            if has_images(messages):
                self._guard.check(model, Capability.VISION, "image input")

        params: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if tools:
            params["tools"] = tools
        if tool_choice is not None:
            params["tool_choice"] = tool_choice
        if response_format is not None:
            params["response_format"] = response_format

        extra_body = {
            key: extras.pop(key)
            for key in EXTRA_BODY_OPTIONS
            if extras.get(key) is not None
        }
        if extra_body:
            params["extra_body"] = extra_body
        params.update({k: v for k, v in extras.items() if v is not None})

        self.trigger("before_request", params)
        logger.debug("Making completion request", model=model, temperature=temperature)

        try:
            response = self._get_client().chat.completions.create(**params)
        except Exception as e:
            logger.warning("Completion request failed", model=model, error=str(e))
            self.trigger("on_error", e)
            raise

        if not response.choices:
            error = ValueError(
                f"Model {model} returned empty choices "
                f"(finish_reason may indicate content filtering)"
            )
            self.trigger("on_error", error)
            raise error

        choice = response.choices[0]
        usage = response.usage
        result = CompletionResult(
            content=choice.message.content or "",
            model=getattr(response, "model", None) or model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            finish_reason=choice.finish_reason,
            raw=response.model_dump() if hasattr(response, "model_dump") else None,
        )
        self.trigger("after_response", result)
        return result

    def execute(self, messages: Messages, model: str, **options: Any) -> CompletionResult:
        """Completion executor entry point used by healing and routing."""
        return self.complete(messages, model=model, **options)

    # ------------------------------------------------------------------
    # Structured output
    # ------------------------------------------------------------------

    def structured(self) -> StructuredCompleter:
        """Structured-output completer wired to this client and its settings.

        The same client serves as healer; healing events are forwarded to
        the ``on_healing`` callbacks.
        """
        if self._structured is None:
            healing = self._settings.healing
            orchestrator = HealingOrchestrator.from_config(
                self,
                healing,
                callbacks=[lambda event: self.trigger("on_healing", event)],
            )
            self._structured = StructuredCompleter.from_config(
                self, orchestrator, self._guard, healing
            )
        return self._structured

    def complete_structured(
        self,
        messages: Messages,
        schema: SchemaLike,
        model: str | None = None,
        *,
        mode: str | None = None,
        auto_heal: bool | None = None,
        force: bool | None = None,
        **options: Any,
    ) -> Any | None:
        """Complete and return JSON data conforming to *schema*.

        See :meth:`StructuredCompleter.complete`.
        """
        return self.structured().complete(
            messages,
            schema,
            model or self._default_model,
            mode=mode,
            auto_heal=auto_heal,
            force=force,
            **options,
        )

    def close(self) -> None:
        """Close the client connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
