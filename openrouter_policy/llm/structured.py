"""Structured-output requests: native response_format or forced extraction."""

from __future__ import annotations

from typing import Any

import structlog

from openrouter_policy.catalog.types import Capability
from openrouter_policy.config.settings import HealingConfig
from openrouter_policy.executor import CompletionExecutor, Messages, extract_content
from openrouter_policy.healing.orchestrator import HealingOrchestrator, OutputMode, SchemaLike
from openrouter_policy.healing.schema import JsonSchema
from openrouter_policy.llm.capabilities import CapabilityGuard

logger = structlog.get_logger()

RESPONSE_HEALING_PLUGIN = {"id": "response-healing"}


def inject_schema_instructions(messages: Messages, schema: JsonSchema) -> Messages:
    """Copy *messages* with schema instructions added to the system prompt."""
    instructions = schema.format_instructions(forced=True)
    injected = [dict(m) for m in messages]
    if injected and injected[0].get("role") == "system" and isinstance(
        injected[0].get("content"), str
    ):
        injected[0]["content"] = f"{injected[0]['content']}\n\n{instructions}"
    else:
        injected.insert(0, {"role": "system", "content": instructions})
    return injected


def with_response_healing(plugins: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    plugins = list(plugins or [])
    if not any(p.get("id") == RESPONSE_HEALING_PLUGIN["id"] for p in plugins):
        plugins.append(dict(RESPONSE_HEALING_PLUGIN))
    return plugins


class StructuredCompleter:
    """Requests JSON output from a model and resolves it through healing.

    Models that support structured outputs get a native ``response_format``.
    Others, or any request with ``force=True``, get the schema injected into
    the prompt and the reply is extracted from free text.
    """

    def __init__(
        self,
        executor: CompletionExecutor,
        orchestrator: HealingOrchestrator,
        guard: CapabilityGuard | None = None,
        *,
        auto_heal: bool = False,
        auto_native_healing: bool = True,
    ) -> None:
        self._executor = executor
        self._orchestrator = orchestrator
        self._guard = guard
        self._auto_heal = auto_heal
        self._auto_native_healing = auto_native_healing

    @classmethod
    def from_config(
        cls,
        executor: CompletionExecutor,
        orchestrator: HealingOrchestrator,
        guard: CapabilityGuard | None,
        config: HealingConfig,
    ) -> StructuredCompleter:
        return cls(
            executor,
            orchestrator,
            guard,
            auto_heal=config.auto_heal_responses,
            auto_native_healing=config.auto_native_healing,
        )

    def complete(
        self,
        messages: Messages,
        schema: SchemaLike,
        model: str,
        *,
        mode: OutputMode | str | None = None,
        auto_heal: bool | None = None,
        force: bool | None = None,
        **options: Any,
    ) -> Any | None:
        """Return data conforming to *schema*, or None in gentle mode.

        Args:
            messages: Conversation to send.
            schema: JsonSchema, schema dict or pydantic model class.
            model: Model id.
            mode: ``strict`` or ``gentle``; defaults to the orchestrator's.
            auto_heal: Allow heal rounds; defaults to the configured value.
                When false the reply is validated but never repaired.
            force: Force (True) or forbid (False) prompt-injected
                extraction; None decides from the model's capabilities.

        Raises:
            StructuredOutputError: In strict mode when the reply cannot be
                parsed or validated.
            CapabilityError: In strict capability mode when native
                structured output is requested from a model lacking it.
        """
        json_schema = JsonSchema.coerce(schema)
        if self._guard is not None:
            forced = self._guard.should_force_extraction(model, force)
        else:
            forced = bool(force)

        if forced:
            logger.debug("Using forced JSON extraction", model=model, schema=json_schema.name)
            response = self._executor.execute(
                inject_schema_instructions(messages, json_schema), model, **options
            )
            context = "forced_extraction"
        else:
            if self._guard is not None:
                self._guard.check(model, Capability.STRUCTURED_OUTPUTS, "structured outputs")
            request = dict(options)
            request["response_format"] = json_schema.to_response_format()
            if self._auto_native_healing:
                request["plugins"] = with_response_healing(request.get("plugins"))
            response = self._executor.execute(messages, model, **request)
            context = "generic"

        heal = self._auto_heal if auto_heal is None else auto_heal
        return self._orchestrator.resolve(
            extract_content(response),
            json_schema,
            mode=mode,
            max_attempts=None if heal else 0,
            context=context,
        )
