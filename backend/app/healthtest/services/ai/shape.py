"""HealthTest - Response Shapes

Declarative description of the JSON a completion call must return.

A shape is plain data: {field -> FieldSpec(type, required, enum, description)}.
The prompt builder attaches one to every request, the backend receives it as
JSON Schema, and the gateway validates parsed responses against it. It is the
only thing standing between a structurally wrong response and the rest of the
pipeline, so every field downstream code relies on must be declared here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from jsonschema import Draft7Validator

ENVELOPE_KEY = "items"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class FieldSpec:
    type: FieldType
    description: str = ""
    required: bool = True
    enum: Optional[tuple[str, ...]] = None
    items: Optional["FieldSpec"] = None
    properties: dict[str, "FieldSpec"] = field(default_factory=dict)
    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True)
class ResponseShape:
    """Named root spec handed to the completion backend."""
    name: str
    root: FieldSpec

    def to_json_schema(self) -> dict[str, Any]:
        return _spec_to_schema(self.root)

    def to_wire_schema(self) -> dict[str, Any]:
        """Schema sent to the backend; non-object roots travel inside an object envelope."""
        schema = self.to_json_schema()
        if self.root.type is FieldType.OBJECT:
            return schema
        return {"type": "object", "properties": {ENVELOPE_KEY: schema}, "required": [ENVELOPE_KEY]}

    def unwrap(self, data: Any) -> Any:
        """Strip the wire envelope from parsed data; bare values pass through."""
        if self.root.type is not FieldType.OBJECT and isinstance(data, dict) and set(data) == {ENVELOPE_KEY}:
            return data[ENVELOPE_KEY]
        return data

    def validate(self, data: Any) -> list[str]:
        """Return human-readable violations; an empty list means valid."""
        return _validate(self.to_json_schema(), data)


# ================== builders ==================

def string(description: str = "", *, required: bool = True, enum: Optional[list[str]] = None) -> FieldSpec:
    return FieldSpec(
        type=FieldType.STRING,
        description=description,
        required=required,
        enum=tuple(enum) if enum is not None else None,
    )


def number(description: str = "", *, required: bool = True, minimum: float | None = None, maximum: float | None = None) -> FieldSpec:
    return FieldSpec(type=FieldType.NUMBER, description=description, required=required, minimum=minimum, maximum=maximum)


def array_of(items: FieldSpec, description: str = "", *, required: bool = True) -> FieldSpec:
    return FieldSpec(type=FieldType.ARRAY, description=description, required=required, items=items)


def string_list(description: str = "", *, required: bool = True) -> FieldSpec:
    return array_of(string(), description, required=required)


def obj(properties: dict[str, FieldSpec], description: str = "", *, required: bool = True) -> FieldSpec:
    return FieldSpec(type=FieldType.OBJECT, description=description, required=required, properties=dict(properties))


# ================== JSON Schema rendering ==================

def _spec_to_schema(spec: FieldSpec) -> dict[str, Any]:
    # Optional fields may come back as null
    schema: dict[str, Any] = {"type": spec.type.value if spec.required else [spec.type.value, "null"]}
    if spec.description:
        schema["description"] = spec.description
    if spec.enum is not None:
        schema["enum"] = list(spec.enum) if spec.required else [*spec.enum, None]
    if spec.minimum is not None:
        schema["minimum"] = spec.minimum
    if spec.maximum is not None:
        schema["maximum"] = spec.maximum
    if spec.type is FieldType.ARRAY and spec.items is not None:
        schema["items"] = _spec_to_schema(spec.items)
    if spec.type is FieldType.OBJECT:
        schema["properties"] = {name: _spec_to_schema(sub) for name, sub in spec.properties.items()}
        schema["required"] = [name for name, sub in spec.properties.items() if sub.required]
    return schema


# ================== validation ==================

def _json_path(path: Iterable[str | int]) -> str:
    return "$" + "".join(f"[{p}]" if isinstance(p, int) else f".{p}" for p in path)


def _validate(schema: dict[str, Any], data: Any) -> list[str]:
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    return [f"{_json_path(e.absolute_path)}: {e.message}" for e in errors]
