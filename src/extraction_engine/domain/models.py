"""Frozen domain records: observations, diagnostics, variables, and their closed code sets."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from extraction_engine.constants import ROOT_ROW_KEY_ID
from extraction_engine.domain.paths import KeyPath

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

ComponentId = int | str


class ValueType(StrEnum):
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class DiagnosticCode(StrEnum):
    # variable
    TYPE_DRIFT = "TYPE_DRIFT"
    HIGH_NULL_RATE = "HIGH_NULL_RATE"
    MANY_NULLS = "MANY_NULLS"
    HIGH_OCCURRENCE = "HIGH_OCCURRENCE"
    HIGH_CARDINALITY = "HIGH_CARDINALITY"
    LARGE_VALUES = "LARGE_VALUES"
    MIXED_ARRAY_ELEMENT_TYPES = "MIXED_ARRAY_ELEMENT_TYPES"
    UNEXPECTED_OBJECT_ARRAY_LEAF = "UNEXPECTED_OBJECT_ARRAY_LEAF"
    DUPLICATE_OBSERVATION = "DUPLICATE_OBSERVATION"
    VARIABLE_KEY_COLLISION = "VARIABLE_KEY_COLLISION"
    ROW_KEY_ID_ANOMALY = "ROW_KEY_ID_ANOMALY"
    VALUE_JSON_UNSERIALIZABLE_FALLBACK_USED = "VALUE_JSON_UNSERIALIZABLE_FALLBACK_USED"
    # component
    EMPTY_OR_NO_DATA = "EMPTY_OR_NO_DATA"
    PARSE_ERROR = "PARSE_ERROR"
    TEXT_FORMAT_NOT_SUPPORTED = "TEXT_FORMAT_NOT_SUPPORTED"
    UNKNOWN_FORMAT = "UNKNOWN_FORMAT"
    # run
    MAX_DEPTH_EXCEEDED = "MAX_DEPTH_EXCEEDED"
    MAX_NODES_EXCEEDED = "MAX_NODES_EXCEEDED"
    MAX_OBSERVATIONS_EXCEEDED = "MAX_OBSERVATIONS_EXCEEDED"
    TRUNCATED_EXTRACTION = "TRUNCATED_EXTRACTION"
    DEEP_NESTING = "DEEP_NESTING"
    SKIPPED_NON_JSON_TYPE = "SKIPPED_NON_JSON_TYPE"
    # cross-run
    CROSS_RUN_TRUNCATED_EXTRACTION = "CROSS_RUN_TRUNCATED_EXTRACTION"
    CROSS_RUN_COMPONENT_MISSING = "CROSS_RUN_COMPONENT_MISSING"
    CROSS_RUN_COMPONENT_FORMAT_MISMATCH = "CROSS_RUN_COMPONENT_FORMAT_MISMATCH"
    CROSS_RUN_VARIABLE_MISSING = "CROSS_RUN_VARIABLE_MISSING"
    CROSS_RUN_VARIABLE_TYPE_DRIFT = "CROSS_RUN_VARIABLE_TYPE_DRIFT"
    CROSS_RUN_VARIABLE_NULL_ONLY = "CROSS_RUN_VARIABLE_NULL_ONLY"


class LimitKind(StrEnum):
    MAX_DEPTH = "MAX_DEPTH_EXCEEDED"
    MAX_NODES = "MAX_NODES_EXCEEDED"
    MAX_OBSERVATIONS = "MAX_OBSERVATIONS_EXCEEDED"


class VariableFlag(StrEnum):
    TYPE_DRIFT = "TYPE_DRIFT"
    MANY_NULLS = "MANY_NULLS"
    MIXED_ARRAY_ELEMENT_TYPES = "MIXED_ARRAY_ELEMENT_TYPES"
    HIGH_OCCURRENCE = "HIGH_OCCURRENCE"
    HIGH_CARDINALITY = "HIGH_CARDINALITY"
    LARGE_VALUES = "LARGE_VALUES"
    UNEXPECTED_OBJECT_ARRAY_LEAF = "UNEXPECTED_OBJECT_ARRAY_LEAF"


class DataStructure(StrEnum):
    ARRAY = "array"
    OBJECT = "object"


class ScopeKeysError(ValueError):
    """Raised when scope keys are missing a component id or carry invalid values."""


@dataclass(frozen=True, slots=True)
class RowKeyFrame:
    array_key: str
    index: int

    def to_dict(self) -> dict[str, JSONValue]:
        return {"array_key": self.array_key, "index": self.index}


@dataclass(frozen=True, slots=True)
class ScopeKeys:
    """Identity of the container an observation came from."""

    component_id: ComponentId
    run_id: str | None = None
    worker_id: str | None = None
    batch_id: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.component_id, bool) or not isinstance(self.component_id, int | str):
            raise ScopeKeysError(
                f"component_id must be int or str, got {type(self.component_id).__name__}"
            )
        if isinstance(self.component_id, str) and not self.component_id:
            raise ScopeKeysError("component_id must be non-empty")
        for name in ("run_id", "worker_id", "batch_id"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ScopeKeysError(f"{name} must be a string, got {type(value).__name__}")

    def items(self) -> list[tuple[str, str]]:
        present = [("component_id", str(self.component_id))]
        for name in ("run_id", "worker_id", "batch_id"):
            value = getattr(self, name)
            if value is not None:
                present.append((name, value))
        return sorted(present)

    @property
    def scope_key_id(self) -> str:
        return "|".join(f"{name}:{value}" for name, value in self.items())

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {"component_id": self.component_id}
        for name in ("run_id", "worker_id", "batch_id"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> ScopeKeys:
        unknown = sorted(set(raw) - {"component_id", "run_id", "worker_id", "batch_id"})
        if unknown:
            raise ScopeKeysError(f"unknown scope keys: {', '.join(unknown)}")
        if "component_id" not in raw:
            raise ScopeKeysError("component_id is required")
        return cls(
            component_id=raw["component_id"],  # type: ignore[arg-type]
            run_id=raw.get("run_id"),  # type: ignore[arg-type]
            worker_id=raw.get("worker_id"),  # type: ignore[arg-type]
            batch_id=raw.get("batch_id"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True, slots=True)
class ValueMetadata:
    length: int | None = None
    string_value: str | None = None
    array_element_kind: str | None = None
    array_element_type: str | None = None
    array_string_values: tuple[str, ...] = ()
    serialization_error: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {}
        if self.length is not None:
            payload["length"] = self.length
        if self.string_value is not None:
            payload["string_value"] = self.string_value
        if self.array_element_kind is not None:
            payload["array_element_kind"] = self.array_element_kind
        if self.array_element_type is not None:
            payload["array_element_type"] = self.array_element_type
        if self.array_string_values:
            payload["array_string_values"] = list(self.array_string_values)
        if self.serialization_error is not None:
            payload["serialization_error"] = self.serialization_error
        return payload


@dataclass(frozen=True, slots=True)
class Observation:
    """One emitted leaf value with its full provenance."""

    variable_key: str
    path: str
    key_path: KeyPath
    value_type: ValueType
    value_json: str
    row_key: tuple[RowKeyFrame, ...]
    row_key_id: str
    scope_keys: ScopeKeys
    scope_key_id: str
    depth: int
    key_path_string: str
    has_array_indices: bool
    value_metadata: ValueMetadata | None = None

    def __post_init__(self) -> None:
        if self.depth < 0:
            raise ValueError("observation depth must be >= 0")

    @property
    def is_root_row(self) -> bool:
        return self.row_key_id == ROOT_ROW_KEY_ID

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.scope_key_id, self.row_key_id, self.variable_key)

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "variable_key": self.variable_key,
            "path": self.path,
            "key_path": list(self.key_path),
            "value_type": self.value_type.value,
            "value_json": self.value_json,
            "row_key": [frame.to_dict() for frame in self.row_key],
            "row_key_id": self.row_key_id,
            "scope_keys": self.scope_keys.to_dict(),
            "scope_key_id": self.scope_key_id,
            "depth": self.depth,
            "key_path_string": self.key_path_string,
            "has_array_indices": self.has_array_indices,
        }
        if self.value_metadata is not None:
            payload["value_metadata"] = self.value_metadata.to_dict()
        return payload


@dataclass(frozen=True, slots=True)
class Diagnostic:
    severity: Severity
    code: DiagnosticCode
    message: str
    metadata: Mapping[str, JSONValue] = field(default_factory=dict)

    @property
    def dedupe_key(self) -> tuple[str, str]:
        return (self.code.value, self.message)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "message": self.message,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class VariableExample:
    value_json: str
    source_path: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"value_json": self.value_json, "source_path": self.source_path}


@dataclass(frozen=True, slots=True)
class ExtractedVariable:
    """Aggregated view of every observation sharing one variable key."""

    variable_key: str
    variable_name: str
    examples: tuple[VariableExample, ...]
    type: ValueType
    occurrences: int
    data_structure: DataStructure
    component_ids: tuple[ComponentId, ...]
    run_ids: tuple[str, ...]
    flags: tuple[VariableFlag, ...]
    depth: int
    is_top_level: bool
    diagnostics: tuple[Diagnostic, ...] | None = None

    def public(self) -> ExtractedVariable:
        """Copy without diagnostics, as exposed to non-debug consumers."""

        return ExtractedVariable(
            variable_key=self.variable_key,
            variable_name=self.variable_name,
            examples=self.examples,
            type=self.type,
            occurrences=self.occurrences,
            data_structure=self.data_structure,
            component_ids=self.component_ids,
            run_ids=self.run_ids,
            flags=self.flags,
            depth=self.depth,
            is_top_level=self.is_top_level,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "variable_key": self.variable_key,
            "variable_name": self.variable_name,
            "examples": [example.to_dict() for example in self.examples],
            "type": self.type.value,
            "occurrences": self.occurrences,
            "data_structure": self.data_structure.value,
            "component_ids": list(self.component_ids),
            "run_ids": list(self.run_ids),
            "flags": [flag.value for flag in self.flags],
            "depth": self.depth,
            "is_top_level": self.is_top_level,
        }
        if self.diagnostics is not None:
            payload["diagnostics"] = [diagnostic.to_dict() for diagnostic in self.diagnostics]
        return payload


@dataclass(frozen=True, slots=True)
class ExtractionStats:
    node_count: int = 0
    observation_count: int = 0
    max_depth: int = 0

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "node_count": self.node_count,
            "observation_count": self.observation_count,
            "max_depth": self.max_depth,
        }


def dedupe_diagnostics(diagnostics: list[Diagnostic]) -> list[Diagnostic]:
    """Drop repeated ``(code, message)`` pairs while keeping first-seen order."""

    seen: set[tuple[str, str]] = set()
    out: list[Diagnostic] = []
    for diagnostic in diagnostics:
        if diagnostic.dedupe_key in seen:
            continue
        seen.add(diagnostic.dedupe_key)
        out.append(diagnostic)
    return out


__all__ = [
    "ComponentId",
    "DataStructure",
    "Diagnostic",
    "DiagnosticCode",
    "ExtractedVariable",
    "ExtractionStats",
    "JSONScalar",
    "JSONValue",
    "LimitKind",
    "Observation",
    "RowKeyFrame",
    "ScopeKeys",
    "ScopeKeysError",
    "Severity",
    "ValueMetadata",
    "ValueType",
    "VariableExample",
    "VariableFlag",
    "dedupe_diagnostics",
]
