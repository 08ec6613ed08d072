"""JSON Schema validation adapter."""

from __future__ import annotations

import importlib.util
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SchemaValidator(Protocol):
    """Validates parsed JSON against a JSON Schema.

    When :meth:`is_available` is false, validity is unknown and callers
    must not treat ``is_valid`` as a verdict.
    """

    def is_available(self) -> bool:
        ...

    def is_valid(self, schema: dict[str, Any], data: Any) -> bool:
        ...

    def errors(self, schema: dict[str, Any], data: Any) -> list[str]:
        ...


class JsonSchemaValidator:
    """Validator backed by the ``jsonschema`` package."""

    def is_available(self) -> bool:
        return True

    def _validator(self, schema: dict[str, Any]) -> Any:
        import jsonschema

        cls = jsonschema.validators.validator_for(schema)
        cls.check_schema(schema)
        return cls(schema)

    def is_valid(self, schema: dict[str, Any], data: Any) -> bool:
        return self._validator(schema).is_valid(data)

    def errors(self, schema: dict[str, Any], data: Any) -> list[str]:
        """Human-readable errors, ordered by location in the document."""
        found = sorted(
            self._validator(schema).iter_errors(data),
            key=lambda e: [str(p) for p in e.absolute_path],
        )
        messages = []
        for error in found:
            location = "/".join(str(p) for p in error.absolute_path)
            messages.append(f"{location}: {error.message}" if location else error.message)
        return messages


class UnavailableSchemaValidator:
    """Placeholder used when no schema validation library is installed."""

    def is_available(self) -> bool:
        return False

    def is_valid(self, schema: dict[str, Any], data: Any) -> bool:
        return True

    def errors(self, schema: dict[str, Any], data: Any) -> list[str]:
        return []


def default_validator() -> SchemaValidator:
    """The jsonschema-backed validator when the package is importable."""
    if importlib.util.find_spec("jsonschema") is not None:
        return JsonSchemaValidator()
    return UnavailableSchemaValidator()
