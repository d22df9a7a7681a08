"""Observation construction: value encoding, provenance rendering, and per-value metadata."""

from __future__ import annotations

import json

from extraction_engine.domain import paths
from extraction_engine.domain.models import (
    Observation,
    RowKeyFrame,
    ScopeKeys,
    ValueMetadata,
    ValueType,
)
from extraction_engine.extraction.policy import value_type_of
from extraction_engine.extraction.row_keys import compute_row_key_id

SERIALIZATION_CIRCULAR = "circular"
SERIALIZATION_UNSERIALIZABLE = "unserializable"


def encode_value(value: object) -> tuple[str, str | None]:
    """Return ``(value_json, serialization_error)``; the error is ``None`` on success."""

    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False, separators=(",", ":")), None
    except ValueError as exc:
        if "circular" in str(exc).lower():
            return json.dumps("[Circular]"), SERIALIZATION_CIRCULAR
        return _unserializable(exc)
    except (TypeError, RecursionError) as exc:
        return _unserializable(exc)


def _unserializable(exc: Exception) -> tuple[str, str]:
    return json.dumps(f"[Unserializable: {exc}]", ensure_ascii=False), SERIALIZATION_UNSERIALIZABLE


def value_metadata_for(
    value: object,
    value_type: ValueType,
    *,
    max_distinct_tracking: int,
) -> ValueMetadata | None:
    """Capture length and distinct-tracking inputs for string and array leaves only."""

    if value_type is ValueType.STRING:
        assert isinstance(value, str)
        return ValueMetadata(length=len(value), string_value=value)
    if value_type is not ValueType.ARRAY:
        return None

    assert isinstance(value, list | tuple)
    if not value:
        return ValueMetadata(length=0)
    element_types = [value_type_of(item) for item in value]
    first = element_types[0]
    if any(item_type != first for item_type in element_types):
        return ValueMetadata(length=len(value), array_element_kind="mixed")
    string_values: tuple[str, ...] = ()
    if first is ValueType.STRING:
        string_values = tuple(item for item in value if isinstance(item, str))[
            :max_distinct_tracking
        ]
    return ValueMetadata(
        length=len(value),
        array_element_kind="uniform",
        array_element_type=first.value if first is not None else "unknown",
        array_string_values=string_values,
    )


def emit_observation(
    path: paths.JsonPath,
    value: object,
    value_type: ValueType,
    row_key: tuple[RowKeyFrame, ...],
    scope_keys: ScopeKeys,
    scope_key_id: str,
    *,
    max_distinct_tracking: int,
    render_options: paths.RenderOptions = paths.DEFAULT_RENDER_OPTIONS,
) -> Observation:
    metadata = value_metadata_for(value, value_type, max_distinct_tracking=max_distinct_tracking)
    value_json, serialization_error = encode_value(value)
    if serialization_error is not None:
        base = metadata if metadata is not None else ValueMetadata()
        metadata = ValueMetadata(
            length=base.length,
            string_value=base.string_value,
            array_element_kind=base.array_element_kind,
            array_element_type=base.array_element_type,
            array_string_values=base.array_string_values,
            serialization_error=serialization_error,
        )

    key_path = paths.to_key_path(path)
    return Observation(
        variable_key=paths.to_variable_key(path, render_options),
        path=paths.to_source_path(path, render_options),
        key_path=key_path,
        value_type=value_type,
        value_json=value_json,
        row_key=row_key,
        row_key_id=compute_row_key_id(row_key),
        scope_keys=scope_keys,
        scope_key_id=scope_key_id,
        depth=paths.depth(path),
        key_path_string=paths.key_path_string(key_path),
        has_array_indices=paths.has_array_indices(path),
        value_metadata=metadata,
    )


__all__ = [
    "SERIALIZATION_CIRCULAR",
    "SERIALIZATION_UNSERIALIZABLE",
    "emit_observation",
    "encode_value",
    "value_metadata_for",
]
