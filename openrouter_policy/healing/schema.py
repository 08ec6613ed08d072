"""JSON Schema wrapper used for structured-output requests."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JsonSchema(BaseModel):
    """A named JSON Schema, as sent in an OpenRouter ``response_format``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1, description="Schema name sent to the provider")
    definition: dict[str, Any] = Field(..., alias="schema", description="JSON Schema document")
    strict: bool = True

    @classmethod
    def from_model(cls, model: type[BaseModel], name: str | None = None, strict: bool = True) -> JsonSchema:
        """Derive the schema from a pydantic model class."""
        return cls(name=name or model.__name__, schema=model.model_json_schema(), strict=strict)

    @classmethod
    def coerce(cls, value: JsonSchema | dict[str, Any] | type[BaseModel]) -> JsonSchema:
        """Accept a JsonSchema, a bare schema dict, or a pydantic model class."""
        if isinstance(value, JsonSchema):
            return value
        if isinstance(value, type) and issubclass(value, BaseModel):
            return cls.from_model(value)
        if isinstance(value, dict):
            return cls(name=str(value.get("title") or "response"), schema=value)
        raise TypeError(f"Unsupported schema type: {type(value).__name__}")

    def to_response_format(self) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.name,
                "strict": self.strict,
                "schema": self.definition,
            },
        }

    def format_instructions(self, forced: bool = False) -> str:
        """Prompt text asking the model to answer with conforming JSON."""
        schema_json = json.dumps(self.definition, indent=2)
        lines = [
            "You must respond with valid JSON that conforms to this JSON Schema:",
            "```json",
            schema_json,
            "```",
        ]
        if forced:
            lines += [
                "",
                "Return ONLY the JSON object. Do not add explanations, markdown "
                "or any text before or after it.",
            ]
        return "\n".join(lines)
