"""
extraction-engine — observation index store

File: src/extraction_engine/index/store.py

Purpose
- Position-based indices over an immutable observation sequence: by variable
  key, by component id, by ``(component_id, variable_key)``, and by
  ``(scope_key_id, row_key_id)`` row.

Functional requirements
- Lookups yield observations lazily and never copy observation data.
- Row records decode ``value_json``; last write wins unless the multi form is used.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence

import structlog

from extraction_engine.domain.models import ComponentId, Observation

logger = structlog.get_logger(__name__)


class ExtractionIndexStore:
    __slots__ = (
        "_by_component",
        "_by_component_and_variable",
        "_by_row",
        "_by_variable",
        "_component_ids_by_variable",
        "_observations",
        "_variable_keys_by_component",
        "_warned_duplicates",
    )

    def __init__(self, observations: Sequence[Observation]) -> None:
        self._observations: tuple[Observation, ...] = tuple(observations)
        self._by_variable: dict[str, list[int]] = {}
        self._by_component: dict[ComponentId, list[int]] = {}
        self._by_component_and_variable: dict[tuple[ComponentId, str], list[int]] = {}
        self._by_row: dict[tuple[str, str], list[int]] = {}
        self._component_ids_by_variable: dict[str, dict[ComponentId, None]] = {}
        self._variable_keys_by_component: dict[ComponentId, dict[str, None]] = {}
        self._warned_duplicates: set[tuple[str, str, str]] = set()

        for position, observation in enumerate(self._observations):
            component_id = observation.scope_keys.component_id
            variable_key = observation.variable_key
            self._by_variable.setdefault(variable_key, []).append(position)
            self._by_component.setdefault(component_id, []).append(position)
            self._by_component_and_variable.setdefault((component_id, variable_key), []).append(
                position
            )
            self._by_row.setdefault(
                (observation.scope_key_id, observation.row_key_id), []
            ).append(position)
            self._component_ids_by_variable.setdefault(variable_key, {})[component_id] = None
            self._variable_keys_by_component.setdefault(component_id, {})[variable_key] = None

    # -- positions ---------------------------------------------------------

    def observation_indices_by_variable_key(self, variable_key: str) -> tuple[int, ...]:
        return tuple(self._by_variable.get(variable_key, ()))

    def observation_indices_by_component_id(self, component_id: ComponentId) -> tuple[int, ...]:
        return tuple(self._by_component.get(component_id, ()))

    # -- iteration ---------------------------------------------------------

    def iter_observations_by_variable_key(self, variable_key: str) -> Iterator[Observation]:
        for position in self._by_variable.get(variable_key, ()):
            yield self._observations[position]

    def iter_observations_by_component_id(self, component_id: ComponentId) -> Iterator[Observation]:
        for position in self._by_component.get(component_id, ()):
            yield self._observations[position]

    def iter_observations_by_component_and_variable(
        self, component_id: ComponentId, variable_key: str
    ) -> Iterator[Observation]:
        for position in self._by_component_and_variable.get((component_id, variable_key), ()):
            yield self._observations[position]

    def iter_value_json_by_variable_key(self, variable_key: str) -> Iterator[str]:
        for observation in self.iter_observations_by_variable_key(variable_key):
            yield observation.value_json

    def iter_row(self, scope_key_id: str, row_key_id: str) -> Iterator[Observation]:
        """Every observation sharing one array-element slot within one scope."""

        for position in self._by_row.get((scope_key_id, row_key_id), ()):
            yield self._observations[position]

    # -- rows --------------------------------------------------------------

    def row_record(
        self, scope_key_id: str, row_key_id: str, *, warn_on_duplicates: bool = True
    ) -> dict[str, object]:
        """``variable_key -> decoded value`` for one row; the last observation wins."""

        record: dict[str, object] = {}
        seen_paths: dict[str, list[str]] = {}
        for observation in self.iter_row(scope_key_id, row_key_id):
            if warn_on_duplicates:
                paths = seen_paths.setdefault(observation.variable_key, [])
                paths.append(observation.path)
                if len(paths) == 2:
                    self._warn_duplicate_once(
                        scope_key_id, row_key_id, observation.variable_key, paths
                    )
            record[observation.variable_key] = _decode(observation.value_json)
        return record

    def row_record_multi(self, scope_key_id: str, row_key_id: str) -> dict[str, list[object]]:
        """``variable_key -> every decoded value`` for one row, in observation order."""

        record: dict[str, list[object]] = {}
        for observation in self.iter_row(scope_key_id, row_key_id):
            record.setdefault(observation.variable_key, []).append(_decode(observation.value_json))
        return record

    def row_keys(self) -> tuple[tuple[str, str], ...]:
        return tuple(self._by_row)

    # -- derived -----------------------------------------------------------

    def component_ids_by_variable_key(self, variable_key: str) -> tuple[ComponentId, ...]:
        return tuple(self._component_ids_by_variable.get(variable_key, ()))

    def variable_keys_by_component_id(self, component_id: ComponentId) -> tuple[str, ...]:
        return tuple(self._variable_keys_by_component.get(component_id, ()))

    def observation_count(self, variable_key: str) -> int:
        return len(self._by_variable.get(variable_key, ()))

    def has_observations(self, variable_key: str) -> bool:
        return variable_key in self._by_variable

    @property
    def total_count(self) -> int:
        return len(self._observations)

    def __len__(self) -> int:
        return len(self._observations)

    def _warn_duplicate_once(
        self, scope_key_id: str, row_key_id: str, variable_key: str, paths: list[str]
    ) -> None:
        key = (scope_key_id, row_key_id, variable_key)
        if key in self._warned_duplicates:
            return
        self._warned_duplicates.add(key)
        logger.warning(
            "index_row_duplicate_variable",
            scope_key_id=scope_key_id,
            row_key_id=row_key_id,
            variable_key=variable_key,
            paths=list(paths),
        )


def _decode(value_json: str) -> object:
    try:
        return json.loads(value_json)
    except json.JSONDecodeError:
        return None


__all__ = ["ExtractionIndexStore"]
