"""Structured-output schemas.

A schema has a ``name`` (sent to the provider alongside the JSON Schema), a
``to_dict`` rendering, and a ``decode`` step applied to the final text.
"""

from __future__ import annotations

from copy import deepcopy
import json
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError

from castor.errors import ConfigurationError, StructuredDecodeError

DEFAULT_SCHEMA_NAME = "output"

# Keys whose values map *names* to subschemas. The names themselves are data,
# so a property called "title" must survive title stripping.
_NAMED_SUBSCHEMA_KEYS = frozenset(
    {"properties", "patternProperties", "$defs", "definitions"}
)


@runtime_checkable
class Schema(Protocol):
    """Schema provider consumed by the structured-output path."""

    def name(self) -> str: ...  # noqa: D102
    def to_dict(self) -> dict[str, Any]: ...  # noqa: D102
    def decode(self, text: str) -> Any: ...  # noqa: D102


def strip_titles(node: Any) -> Any:
    """Return a copy of *node* without ``title`` annotations at any depth."""
    if isinstance(node, list):
        return [strip_titles(item) for item in node]
    if not isinstance(node, dict):
        return node

    out: dict[str, Any] = {}
    for key, value in node.items():
        if key == "title":
            continue
        if key in _NAMED_SUBSCHEMA_KEYS and isinstance(value, dict):
            out[key] = {name: strip_titles(sub) for name, sub in value.items()}
        else:
            out[key] = strip_titles(value)
    return out


def _decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise StructuredDecodeError(
            f"Structured output is not valid JSON: {e}",
            text=text,
            hint="Check the final step's text; the model may have ignored the schema.",
        ) from e


class DictSchema:
    """Schema backed by a plain JSON Schema dict."""

    def __init__(self, name: str, schema: dict[str, Any]) -> None:
        if not isinstance(schema, dict):
            raise ConfigurationError(
                "schema must be a dict following JSON Schema",
                hint="Pass {'type': 'object', 'properties': {...}}.",
            )
        self._name = name
        self._schema = deepcopy(schema)

    def name(self) -> str:
        return self._name

    def to_dict(self) -> dict[str, Any]:
        schema = deepcopy(self._schema)
        # Best-effort normalization when a top-level type is not provided.
        if "type" not in schema:
            if "properties" in schema:
                schema["type"] = "object"
            elif "items" in schema:
                schema["type"] = "array"
        return strip_titles(schema)

    def decode(self, text: str) -> Any:
        return _decode_json(text)

    def __repr__(self) -> str:
        return f"DictSchema(name={self._name!r})"


class ModelSchema:
    """Schema backed by a Pydantic model class; decodes into model instances."""

    def __init__(self, model: type[BaseModel], name: str | None = None) -> None:
        self.model = model
        self._name = name or model.__name__

    def name(self) -> str:
        return self._name

    def to_dict(self) -> dict[str, Any]:
        return strip_titles(self.model.model_json_schema())

    def decode(self, text: str) -> Any:
        data = _decode_json(text)
        try:
            return self.model.model_validate(data)
        except ValidationError as e:
            raise StructuredDecodeError(
                f"Structured output does not match {self.model.__name__}: {e}",
                text=text,
            ) from e

    def __repr__(self) -> str:
        return f"ModelSchema(model={self.model.__name__}, name={self._name!r})"


def as_schema(value: Any, name: str | None = None) -> Schema:
    """Coerce the accepted schema inputs into a ``Schema``.

    Accepts a ``Schema`` instance, a Pydantic model class, a JSON Schema dict,
    or a compound ``{"name": ..., "schema": {...}}`` dict. Dicts without a
    name default to ``"output"``.
    """
    if isinstance(value, type) and issubclass(value, BaseModel):
        return ModelSchema(value, name)
    if isinstance(value, dict):
        if (
            name is None
            and "name" in value
            and isinstance(value.get("schema"), dict)
        ):
            return DictSchema(str(value["name"]), value["schema"])
        return DictSchema(name or DEFAULT_SCHEMA_NAME, value)
    if isinstance(value, Schema):
        return value
    raise ConfigurationError(
        f"Unsupported response_schema type: {type(value).__name__}",
        hint="Pass a Pydantic model class, a JSON Schema dict, or a Schema object.",
    )


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a JSON schema for strict structured-output requirements.

    Ensures that for all 'object' types:
    1. additionalProperties is False
    2. All defined properties are listed in 'required'
    """

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node

        updated = {key: walk(value) for key, value in node.items()}
        if updated.get("type") == "object" or "properties" in updated:
            properties = updated.get("properties", {})
            if isinstance(properties, dict):
                updated["additionalProperties"] = False
                if "required" not in updated:
                    updated["required"] = list(properties.keys())
        return updated

    result = walk(deepcopy(schema))
    if not isinstance(result, dict):
        raise ConfigurationError(
            "Invalid response_schema: expected object schema",
            hint="Strict mode requires a JSON Schema object at the top level.",
        )
    return result
