"""
Declarative argument schemas for RPC methods.

Each method declares an ordered tuple of ``Field`` entries. ``validate`` keeps
the fields that are present and carry the declared type; everything else is
dropped, so a field of the wrong type behaves exactly like a missing one.
Required-ness is checked separately by ``require`` so the dispatcher can
reject a request before the handler (and any side effect) runs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Tuple

from .exceptions import InvalidArgumentError


class FieldType(str, enum.Enum):
    INT = "int"
    STRING = "string"
    BOOL = "bool"
    ARRAY = "array"
    TABLE = "table"

    def matches(self, value: Any) -> bool:
        if self is FieldType.INT:
            # bool is an int subclass; JSON true/false is not a number here
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FieldType.STRING:
            return isinstance(value, str)
        if self is FieldType.BOOL:
            return isinstance(value, bool)
        if self is FieldType.ARRAY:
            return isinstance(value, list)
        return isinstance(value, dict)


@dataclass(frozen=True)
class Field:
    name: str
    type: FieldType
    required: bool = False


Schema = Tuple[Field, ...]


def validate(payload: Any, schema: Schema) -> Dict[str, Any]:
    """Return the schema fields present in ``payload`` with the right type."""
    if not isinstance(payload, Mapping):
        return {}
    result: Dict[str, Any] = {}
    for field in schema:
        if field.name not in payload:
            continue
        value = payload[field.name]
        if field.type.matches(value):
            result[field.name] = value
    return result


def require(args: Mapping[str, Any], names: Iterable[str]) -> None:
    missing = [name for name in names if name not in args]
    if missing:
        raise InvalidArgumentError(
            f"Missing or invalid required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )


def required_names(schema: Schema) -> Tuple[str, ...]:
    return tuple(field.name for field in schema if field.required)


def signature(schema: Schema) -> Dict[str, str]:
    """Render a schema the way the ``list`` verb reports it."""
    return {field.name: field.type.value for field in schema}
