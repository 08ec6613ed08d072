"""Structured-output validation and healing."""

from openrouter_policy.healing.extraction import (
    cleanup_syntax,
    extract_json_candidate,
    loads_lenient,
    parse_json_payload,
)
from openrouter_policy.healing.orchestrator import (
    AttemptOutcome,
    FailureReason,
    HealingAttempt,
    HealingCallback,
    HealingEvent,
    HealingOrchestrator,
    HealingReport,
    HealingStatus,
    OutputMode,
    ParseResult,
)
from openrouter_policy.healing.schema import JsonSchema
from openrouter_policy.healing.validator import (
    JsonSchemaValidator,
    SchemaValidator,
    UnavailableSchemaValidator,
    default_validator,
)

__all__ = [
    "AttemptOutcome",
    "FailureReason",
    "HealingAttempt",
    "HealingCallback",
    "HealingEvent",
    "HealingOrchestrator",
    "HealingReport",
    "HealingStatus",
    "JsonSchema",
    "JsonSchemaValidator",
    "OutputMode",
    "ParseResult",
    "SchemaValidator",
    "UnavailableSchemaValidator",
    "cleanup_syntax",
    "default_validator",
    "extract_json_candidate",
    "loads_lenient",
    "parse_json_payload",
]
