"""Bounded repair loop for malformed or schema-invalid JSON output.

A healing session runs through these states::

    Start -> ParseAttempt -> Valid
                          -> NeedsHealing -> HealRound(1..N) -> Healed
                                                             -> ExhaustedAttempts

Each heal round sends the broken content, the target schema and the last
error to a healer model and parses its answer. The number of healer calls
never exceeds ``max_heal_attempts``. Sessions share no state: the
orchestrator keeps nothing between calls apart from its configuration.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, Field

from openrouter_policy.config.settings import HealingConfig
from openrouter_policy.exceptions import StructuredOutputError
from openrouter_policy.executor import CompletionExecutor, extract_content
from openrouter_policy.healing.extraction import parse_json_payload
from openrouter_policy.healing.prompts import (
    FORCED_EXTRACTION_HEAL_PROMPT,
    JSON_SYNTAX_HEAL_PROMPT,
    JSON_SYNTAX_WITH_SCHEMA_HEAL_PROMPT,
    SCHEMA_VALIDATION_HEAL_PROMPT,
)
from openrouter_policy.healing.schema import JsonSchema
from openrouter_policy.healing.validator import SchemaValidator, default_validator

logger = structlog.get_logger()

SchemaLike = JsonSchema | dict[str, Any] | type[BaseModel]


class OutputMode(str, Enum):
    """How a session that exhausted its heal rounds resolves.

    ``strict`` raises :class:`StructuredOutputError`. ``gentle`` returns
    ``None`` silently, so callers must check for ``None`` themselves; this
    trades safety for easy composition.
    """

    STRICT = "strict"
    GENTLE = "gentle"

    @classmethod
    def parse(cls, value: OutputMode | str) -> OutputMode:
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Invalid mode: {value}. Must be 'strict' or 'gentle'."
            ) from None


class FailureReason(str, Enum):
    SYNTAX = "syntax"
    SCHEMA = "schema"


class AttemptOutcome(str, Enum):
    HEALED = "healed"
    STILL_INVALID = "still_invalid"
    PARSE_ERROR = "parse_error"


class HealingStatus(str, Enum):
    VALID = "valid"
    HEALED = "healed"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ParseResult:
    """Outcome of a single parse-and-validate step."""

    data: Any = None
    reason: FailureReason | None = None
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class HealingAttempt:
    """One heal round within a session."""

    attempt_number: int
    input_payload: str
    schema: dict[str, Any] | None
    outcome: AttemptOutcome
    errors: tuple[str, ...] = ()
    data: Any = None


@dataclass(frozen=True)
class HealingReport:
    """Everything that happened during one healing session."""

    status: HealingStatus
    data: Any = None
    attempts: tuple[HealingAttempt, ...] = ()
    errors: tuple[str, ...] = ()
    content: str = ""

    @property
    def heal_rounds(self) -> int:
        return len(self.attempts)


class HealingEvent(BaseModel):
    """Observability payload emitted when a session ends after healing."""

    healed: bool = Field(..., description="Whether a heal round produced valid output")
    attempts: int = Field(..., ge=0, description="Heal rounds used")
    original: str = Field(..., description="Content as first received")
    healed_content: str | None = Field(default=None, description="Healer output that validated")
    errors: list[str] = Field(default_factory=list, description="Last errors on failure")
    healer_model: str = Field(..., description="Model used for healing")


HealingCallback = Callable[[HealingEvent], None]


class HealingOrchestrator:
    """Parses structured output and repairs it through a healer model."""

    def __init__(
        self,
        healer: CompletionExecutor,
        healer_model: str = "openai/gpt-4o-mini",
        max_heal_attempts: int = 2,
        *,
        validator: SchemaValidator | None = None,
        mode: OutputMode | str = OutputMode.STRICT,
        temperature: float = 0.0,
        max_tokens: int = 4000,
        callbacks: Sequence[HealingCallback] = (),
    ) -> None:
        """Initialize the orchestrator.

        Args:
            healer: Executor used for heal rounds.
            healer_model: Model id the heal rounds are sent to.
            max_heal_attempts: Hard ceiling on healer calls per session.
            validator: Schema validator; defaults to the jsonschema one.
            mode: Default resolution mode for exhausted sessions.
            temperature: Sampling temperature for heal rounds.
            max_tokens: Output token limit for heal rounds.
            callbacks: Receivers of :class:`HealingEvent`.
        """
        if max_heal_attempts < 0:
            raise ValueError("max_heal_attempts must be >= 0")
        self._healer = healer
        self._healer_model = healer_model
        self._max_attempts = max_heal_attempts
        self._validator = validator or default_validator()
        self._mode = OutputMode.parse(mode)
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._callbacks = tuple(callbacks)

    @classmethod
    def from_config(
        cls,
        healer: CompletionExecutor,
        config: HealingConfig,
        *,
        validator: SchemaValidator | None = None,
        callbacks: Sequence[HealingCallback] = (),
    ) -> HealingOrchestrator:
        return cls(
            healer,
            healer_model=config.healer_model,
            max_heal_attempts=config.max_heal_attempts,
            validator=validator,
            mode=config.default_structured_output_mode,
            temperature=config.healer_temperature,
            max_tokens=config.healer_max_tokens,
            callbacks=callbacks,
        )

    @property
    def max_heal_attempts(self) -> int:
        return self._max_attempts

    @property
    def mode(self) -> OutputMode:
        return self._mode

    @property
    def validator(self) -> SchemaValidator:
        return self._validator

    def parse(self, payload: str, schema: SchemaLike | None = None) -> ParseResult:
        """Parse *payload* and validate it when a schema and validator exist.

        Parseability is the primary signal; schema errors only count when
        the validator is actually available.
        """
        definition = _schema_definition(schema)
        try:
            data = parse_json_payload(payload)
        except json.JSONDecodeError as e:
            return ParseResult(reason=FailureReason.SYNTAX, errors=(str(e),))

        if definition is not None and self._validator.is_available():
            errors = self._validator.errors(definition, data)
            if errors:
                return ParseResult(data=data, reason=FailureReason.SCHEMA, errors=tuple(errors))
        return ParseResult(data=data)

    def heal(
        self,
        payload: str,
        schema: SchemaLike | None = None,
        *,
        max_attempts: int | None = None,
        context: str = "generic",
    ) -> HealingReport:
        """Run one healing session and report how it ended.

        Args:
            payload: Raw model output.
            schema: Target schema, or None to require parseable JSON only.
            max_attempts: Override for the heal-round ceiling (0 disables
                healing for this session).
            context: ``"forced_extraction"`` when the payload came from a
                prompt-injected schema and may contain prose.

        Raises:
            Exception: Whatever the healer executor raises (timeouts,
                cancellation, transport errors) ends the session at once.
        """
        limit = self._max_attempts if max_attempts is None else max(0, max_attempts)
        definition = _schema_definition(schema)

        first = self.parse(payload, definition)
        if first.ok:
            return HealingReport(status=HealingStatus.VALID, data=first.data, content=payload)

        logger.info(
            "Structured output needs healing",
            reason=first.reason.value if first.reason else None,
            max_attempts=limit,
        )

        candidate = payload
        last = first
        attempts: list[HealingAttempt] = []

        for n in range(1, limit + 1):
            prompt = self._build_prompt(candidate, definition, last, payload, context)
            logger.debug("Heal round", attempt=n, healer_model=self._healer_model)
            try:
                response = self._healer.execute(
                    [{"role": "user", "content": prompt}],
                    self._healer_model,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
            except Exception as e:
                logger.warning("Healer request failed", attempt=n, error=str(e))
                raise

            healed_text = extract_content(response)
            result = self.parse(healed_text, definition)

            if result.ok:
                attempts.append(
                    HealingAttempt(n, candidate, definition, AttemptOutcome.HEALED, data=result.data)
                )
                logger.info("Structured output healed", attempts=n)
                self._emit(
                    HealingEvent(
                        healed=True,
                        attempts=n,
                        original=payload,
                        healed_content=healed_text,
                        healer_model=self._healer_model,
                    )
                )
                return HealingReport(
                    status=HealingStatus.HEALED,
                    data=result.data,
                    attempts=tuple(attempts),
                    content=healed_text,
                )

            outcome = (
                AttemptOutcome.PARSE_ERROR
                if result.reason == FailureReason.SYNTAX
                else AttemptOutcome.STILL_INVALID
            )
            attempts.append(HealingAttempt(n, candidate, definition, outcome, errors=result.errors))
            # The healer's answer becomes the next candidate when it said anything
            candidate = healed_text or candidate
            last = result

        if attempts:
            logger.warning("Structured output healing exhausted", attempts=len(attempts))
            self._emit(
                HealingEvent(
                    healed=False,
                    attempts=len(attempts),
                    original=payload,
                    errors=list(last.errors),
                    healer_model=self._healer_model,
                )
            )

        return HealingReport(
            status=HealingStatus.EXHAUSTED,
            attempts=tuple(attempts),
            errors=last.errors,
            content=candidate,
        )

    def resolve(
        self,
        payload: str,
        schema: SchemaLike | None = None,
        *,
        mode: OutputMode | str | None = None,
        max_attempts: int | None = None,
        context: str = "generic",
    ) -> Any | None:
        """Return parsed (possibly healed) data, applying the output mode.

        Raises:
            StructuredOutputError: In strict mode when healing is exhausted.
        """
        resolved_mode = self._mode if mode is None else OutputMode.parse(mode)
        report = self.heal(payload, schema, max_attempts=max_attempts, context=context)

        if report.status != HealingStatus.EXHAUSTED:
            return report.data

        if resolved_mode == OutputMode.GENTLE:
            return None

        if report.heal_rounds:
            message = f"Failed to heal JSON after {report.heal_rounds} healing attempts"
        else:
            message = "Structured output is invalid and no healing was attempted"
        raise StructuredOutputError(
            message,
            attempts=report.heal_rounds,
            errors=list(report.errors),
            content=report.content,
        )

    def _build_prompt(
        self,
        candidate: str,
        schema: dict[str, Any] | None,
        last: ParseResult,
        original: str,
        context: str,
    ) -> str:
        error = "; ".join(last.errors) or "unknown error"
        schema_json = json.dumps(schema) if schema is not None else None

        if last.reason == FailureReason.SCHEMA and schema_json is not None:
            if _is_forced_extraction(context, original, candidate):
                return FORCED_EXTRACTION_HEAL_PROMPT.format(
                    error=error, original=original, schema=schema_json
                )
            return SCHEMA_VALIDATION_HEAL_PROMPT.format(
                error=error, content=candidate, schema=schema_json
            )

        if schema_json is not None:
            return JSON_SYNTAX_WITH_SCHEMA_HEAL_PROMPT.format(
                error=error, content=candidate, schema=schema_json
            )
        return JSON_SYNTAX_HEAL_PROMPT.format(error=error, content=candidate)

    def _emit(self, event: HealingEvent) -> None:
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as exc:
                logger.warning("Healing callback failed", error=str(exc))


def _schema_definition(schema: SchemaLike | None) -> dict[str, Any] | None:
    if schema is None:
        return None
    return JsonSchema.coerce(schema).definition


def _is_forced_extraction(context: str, original: str, candidate: str) -> bool:
    if context == "forced_extraction":
        return True
    return original != candidate and (
        "```" in original or len(original) > 200 or "\n" in original
    )
