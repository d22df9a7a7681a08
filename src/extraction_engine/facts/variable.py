"""
extraction-engine — variable facts

File: src/extraction_engine/facts/variable.py

Purpose
- Accumulate bounded, per-variable facts while a run is being walked: counts,
  type histogram, shapes, distinct values, and structural invariants
  (duplicates, key-path collisions, row-key anomalies).

Non-functional requirements
- Memory per variable is bounded by the configured caps; the only unbounded
  structure is duplicate tracking, which grows with distinct row slots.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from extraction_engine.domain.models import JSONValue, Observation, ValueType
from extraction_engine.facts.capped import CappedList, CappedSet


@dataclass(slots=True)
class TypeStats:
    count: int
    example_paths: CappedList[str]

    def copy(self) -> TypeStats:
        return TypeStats(count=self.count, example_paths=self.example_paths.copy())

    def to_dict(self) -> dict[str, JSONValue]:
        return {"count": self.count, "example_paths": list(self.example_paths)}


@dataclass(frozen=True, slots=True)
class DuplicateExample:
    scope_key_id: str
    row_key_id: str
    path: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"scope_key_id": self.scope_key_id, "row_key_id": self.row_key_id, "path": self.path}


@dataclass(frozen=True, slots=True)
class RowKeyAnomalyExample:
    row_key_id: str
    path: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"row_key_id": self.row_key_id, "path": self.path}


@dataclass(frozen=True, slots=True)
class CollisionPair:
    first: str
    second: str


@dataclass(slots=True)
class VariableFactsEntry:
    """Everything recorded about one variable key within one run."""

    max_example_paths: int
    max_distinct_tracking: int
    total_count: int = 0
    null_count: int = 0
    unserializable_fallbacks: int = 0
    types: dict[ValueType, TypeStats] = field(default_factory=dict)
    has_object_array_leaf: bool = False
    length_min: int | None = None
    length_max: int | None = None
    has_mixed_array_elements: bool = False
    distinct_strings: CappedSet[str] = field(init=False)
    distinct_options: CappedSet[str] = field(init=False)
    seen_rows: dict[str, set[str]] = field(default_factory=dict)
    duplicate_count: int = 0
    duplicate_example: DuplicateExample | None = None
    first_key_path: str | None = None
    key_path_counts: dict[str, int] = field(default_factory=dict)
    collision_count: int = 0
    collision_pair: CollisionPair | None = None
    row_key_anomaly_count: int = 0
    row_key_anomaly_example: RowKeyAnomalyExample | None = None

    def __post_init__(self) -> None:
        self.distinct_strings = CappedSet(self.max_distinct_tracking)
        self.distinct_options = CappedSet(self.max_distinct_tracking)

    def non_null_types(self) -> list[tuple[ValueType, int]]:
        """Observed non-null types in first-seen order with their counts."""

        return [
            (value_type, stats.count)
            for value_type, stats in self.types.items()
            if value_type is not ValueType.NULL and stats.count > 0
        ]

    @property
    def null_rate(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.null_count / self.total_count

    def copy(self) -> VariableFactsEntry:
        clone = VariableFactsEntry(
            max_example_paths=self.max_example_paths,
            max_distinct_tracking=self.max_distinct_tracking,
            total_count=self.total_count,
            null_count=self.null_count,
            unserializable_fallbacks=self.unserializable_fallbacks,
            types={value_type: stats.copy() for value_type, stats in self.types.items()},
            has_object_array_leaf=self.has_object_array_leaf,
            length_min=self.length_min,
            length_max=self.length_max,
            has_mixed_array_elements=self.has_mixed_array_elements,
            seen_rows={scope: set(rows) for scope, rows in self.seen_rows.items()},
            duplicate_count=self.duplicate_count,
            duplicate_example=self.duplicate_example,
            first_key_path=self.first_key_path,
            key_path_counts=dict(self.key_path_counts),
            collision_count=self.collision_count,
            collision_pair=self.collision_pair,
            row_key_anomaly_count=self.row_key_anomaly_count,
            row_key_anomaly_example=self.row_key_anomaly_example,
        )
        clone.distinct_strings = self.distinct_strings.copy()
        clone.distinct_options = self.distinct_options.copy()
        return clone

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "total_count": self.total_count,
            "null_count": self.null_count,
            "unserializable_fallbacks": self.unserializable_fallbacks,
            "types": {
                value_type.value: stats.to_dict() for value_type, stats in self.types.items()
            },
            "has_object_array_leaf": self.has_object_array_leaf,
            "has_mixed_array_elements": self.has_mixed_array_elements,
            "distinct_string_count": len(self.distinct_strings),
            "distinct_option_count": len(self.distinct_options),
            "duplicate_count": self.duplicate_count,
            "key_path_counts": dict(self.key_path_counts),
            "collision_count": self.collision_count,
            "row_key_anomaly_count": self.row_key_anomaly_count,
        }
        if self.length_min is not None and self.length_max is not None:
            payload["lengths"] = {"min": self.length_min, "max": self.length_max}
        return payload


VariableFacts = dict[str, VariableFactsEntry]


class VariableFactsCollector:
    """Mutable, single-run recorder fed once per emitted observation."""

    __slots__ = ("_entries", "max_distinct_tracking", "max_example_paths")

    def __init__(self, *, max_example_paths: int, max_distinct_tracking: int) -> None:
        self.max_example_paths = max_example_paths
        self.max_distinct_tracking = max_distinct_tracking
        self._entries: VariableFacts = {}

    @property
    def entries(self) -> VariableFacts:
        return self._entries

    def entry(self, variable_key: str) -> VariableFactsEntry:
        existing = self._entries.get(variable_key)
        if existing is None:
            existing = VariableFactsEntry(
                max_example_paths=self.max_example_paths,
                max_distinct_tracking=self.max_distinct_tracking,
            )
            self._entries[variable_key] = existing
        return existing

    def record(self, observation: Observation) -> None:
        entry = self.entry(observation.variable_key)
        self._record_counts(entry, observation)
        self._record_types(entry, observation)
        self._record_shapes(entry, observation)
        self._record_distinct(entry, observation)
        self._record_invariants(entry, observation)

    def _record_counts(self, entry: VariableFactsEntry, observation: Observation) -> None:
        entry.total_count += 1
        if observation.value_type is ValueType.NULL:
            entry.null_count += 1
        metadata = observation.value_metadata
        if metadata is not None and metadata.serialization_error is not None:
            entry.unserializable_fallbacks += 1

    def _record_types(self, entry: VariableFactsEntry, observation: Observation) -> None:
        stats = entry.types.get(observation.value_type)
        if stats is None:
            stats = TypeStats(count=1, example_paths=CappedList(self.max_example_paths))
            # Drift examples are only captured when a type appears after another one.
            if entry.types:
                stats.example_paths.append(observation.path)
            entry.types[observation.value_type] = stats
        else:
            stats.count += 1
        if observation.value_type in (ValueType.OBJECT, ValueType.ARRAY):
            entry.has_object_array_leaf = True

    def _record_shapes(self, entry: VariableFactsEntry, observation: Observation) -> None:
        if observation.value_type not in (ValueType.STRING, ValueType.ARRAY):
            return
        metadata = observation.value_metadata
        if metadata is None or metadata.length is None:
            return
        length = metadata.length
        entry.length_min = length if entry.length_min is None else min(entry.length_min, length)
        entry.length_max = length if entry.length_max is None else max(entry.length_max, length)
        if observation.value_type is ValueType.ARRAY and metadata.array_element_kind == "mixed":
            entry.has_mixed_array_elements = True

    def _record_distinct(self, entry: VariableFactsEntry, observation: Observation) -> None:
        metadata = observation.value_metadata
        if metadata is None:
            return
        if observation.value_type is ValueType.STRING and metadata.string_value is not None:
            entry.distinct_strings.add(metadata.string_value)
        elif observation.value_type is ValueType.ARRAY and metadata.array_string_values:
            entry.distinct_options.update(metadata.array_string_values)

    def _record_invariants(self, entry: VariableFactsEntry, observation: Observation) -> None:
        rows = entry.seen_rows.setdefault(observation.scope_key_id, set())
        if observation.row_key_id in rows:
            entry.duplicate_count += 1
            if entry.duplicate_example is None:
                entry.duplicate_example = DuplicateExample(
                    scope_key_id=observation.scope_key_id,
                    row_key_id=observation.row_key_id,
                    path=observation.path,
                )
        else:
            rows.add(observation.row_key_id)

        key_path = observation.key_path_string
        if entry.first_key_path is None:
            entry.first_key_path = key_path
        elif entry.first_key_path != key_path:
            entry.collision_count += 1
            if entry.collision_pair is None:
                entry.collision_pair = CollisionPair(first=entry.first_key_path, second=key_path)
        entry.key_path_counts[key_path] = entry.key_path_counts.get(key_path, 0) + 1

        if observation.is_root_row == observation.has_array_indices:
            entry.row_key_anomaly_count += 1
            if entry.row_key_anomaly_example is None:
                entry.row_key_anomaly_example = RowKeyAnomalyExample(
                    row_key_id=observation.row_key_id, path=observation.path
                )


__all__ = [
    "CollisionPair",
    "DuplicateExample",
    "RowKeyAnomalyExample",
    "TypeStats",
    "VariableFacts",
    "VariableFactsCollector",
    "VariableFactsEntry",
]
