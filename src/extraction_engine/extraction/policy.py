"""
extraction-engine — emission policy

File: src/extraction_engine/extraction/policy.py

Purpose
- Decide, per node, whether the walker emits an observation, recurses, or skips.

Functional requirements
- Primitives and null emit; empty arrays emit as-is.
- Arrays of primitives and arrays holding nested containers recurse element-wise,
  unless ``emit_primitive_arrays`` restores whole-array emission for primitive and
  nested-array contents.
- Mappings recurse; every other runtime type is skipped.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

from extraction_engine.domain.models import ValueType


class NodeAction(StrEnum):
    EMIT = "emit"
    RECURSE_ARRAY = "recurse_array"
    RECURSE_OBJECT = "recurse_object"
    SKIP = "skip"


def value_type_of(value: object) -> ValueType | None:
    """Map a Python value onto the JSON type lattice; ``None`` for non-JSON values."""

    if value is None:
        return ValueType.NULL
    # bool subclasses int, so it must be checked first.
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, int | float):
        return ValueType.NUMBER
    if isinstance(value, str):
        return ValueType.STRING
    if isinstance(value, list | tuple):
        return ValueType.ARRAY
    if isinstance(value, Mapping):
        return ValueType.OBJECT
    return None


def is_primitive(value: object) -> bool:
    return value_type_of(value) in {
        ValueType.NULL,
        ValueType.BOOLEAN,
        ValueType.NUMBER,
        ValueType.STRING,
    }


def is_array_of_primitives(value: list[object] | tuple[object, ...]) -> bool:
    return all(is_primitive(item) for item in value)


def is_nested_array(value: list[object] | tuple[object, ...]) -> bool:
    return any(isinstance(item, list | tuple) for item in value)


def classify_value(value: object, *, emit_primitive_arrays: bool = False) -> NodeAction:
    value_type = value_type_of(value)
    if value_type is None:
        return NodeAction.SKIP
    if value_type is ValueType.OBJECT:
        return NodeAction.RECURSE_OBJECT
    if value_type is not ValueType.ARRAY:
        return NodeAction.EMIT

    assert isinstance(value, list | tuple)
    if not value:
        return NodeAction.EMIT
    if emit_primitive_arrays and (is_array_of_primitives(value) or is_nested_array(value)):
        return NodeAction.EMIT
    return NodeAction.RECURSE_ARRAY


def should_emit(value: object, *, emit_primitive_arrays: bool = False) -> bool:
    return (
        classify_value(value, emit_primitive_arrays=emit_primitive_arrays) is NodeAction.EMIT
    )


__all__ = [
    "NodeAction",
    "classify_value",
    "is_array_of_primitives",
    "is_nested_array",
    "is_primitive",
    "should_emit",
    "value_type_of",
]
