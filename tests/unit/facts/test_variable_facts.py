"""
extraction-engine — unit tests for variable fact collection

File: tests/unit/facts/test_variable_facts.py

Purpose
- Validate counting, type histograms, shape tracking, and structural invariants
  recorded while observations stream in.

What this test file should cover
- Null and type counts with drift example paths.
- Length range, mixed array elements, and capped distinct values.
- Duplicate detection per scope and row.
- Key-path collisions and row-key anomalies.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from extraction_engine.config.schema import ExtractionConfig, PolicySettings, VariableSettings
from extraction_engine.domain.models import ScopeKeys, ValueType
from extraction_engine.domain.paths import RenderOptions
from extraction_engine.extraction.walker import WalkContext, walk
from extraction_engine.facts.variable import VariableFactsCollector, VariableFactsEntry


def _collect(
    payloads: list[object],
    config: ExtractionConfig | None = None,
    *,
    component_ids: list[int] | None = None,
) -> dict[str, VariableFactsEntry]:
    context = WalkContext.for_run(config or ExtractionConfig())
    for position, payload in enumerate(payloads):
        component_id = component_ids[position] if component_ids else position + 1
        walk(payload, ScopeKeys(component_id=component_id), context)
    return context.variable_facts.entries


@pytest.mark.unit
def test_counts_and_type_histogram_with_drift_examples() -> None:
    facts = _collect([{"rows": [{"v": 1}, {"v": "x"}, {"v": None}, {"v": 2}]}])

    entry = facts["rows[*].v"]
    assert entry.total_count == 4
    assert entry.null_count == 1
    assert entry.null_rate == pytest.approx(0.25)
    assert entry.non_null_types() == [(ValueType.NUMBER, 2), (ValueType.STRING, 1)]
    assert list(entry.types[ValueType.NUMBER].example_paths) == []
    assert list(entry.types[ValueType.STRING].example_paths) == ["rows[1].v"]
    assert list(entry.types[ValueType.NULL].example_paths) == ["rows[2].v"]


def test_string_lengths_and_distinct_values_are_capped() -> None:
    config = ExtractionConfig(variable=VariableSettings(max_distinct_tracking=2))
    facts = _collect([{"r": [{"s": "a"}, {"s": "bbb"}, {"s": "cc"}, {"s": "a"}]}], config)

    entry = facts["r[*].s"]
    assert (entry.length_min, entry.length_max) == (1, 3)
    assert entry.distinct_strings.to_list() == ["a", "bbb"]


def test_array_leaves_track_mixed_elements_and_options() -> None:
    config = ExtractionConfig(policy=PolicySettings(emit_primitive_arrays=True))
    facts = _collect([{"r": [{"o": ["x", "y"]}, {"o": [1, "z"]}, {"o": ["y", "w"]}]}], config)

    entry = facts["r[*].o"]
    assert entry.has_mixed_array_elements
    assert entry.has_object_array_leaf
    assert entry.distinct_options.to_list() == ["x", "y", "w"]


def test_duplicates_detected_within_one_scope_only() -> None:
    repeated = _collect([{"a": 1}, {"a": 2}], component_ids=[1, 1])
    separate = _collect([{"a": 1}, {"a": 2}], component_ids=[1, 2])

    assert repeated["a"].duplicate_count == 1
    assert repeated["a"].duplicate_example is not None
    assert repeated["a"].duplicate_example.row_key_id == "root"
    assert separate["a"].duplicate_count == 0


def test_key_path_collision_when_quoting_disabled() -> None:
    config = replace(ExtractionConfig(), render=RenderOptions(quote_unsafe_keys=False))
    facts = _collect([{"a.b": 1, "a": {"b": 2}}], config)

    entry = facts["a.b"]
    assert entry.collision_count == 1
    assert entry.collision_pair is not None
    assert entry.collision_pair.first == '"a.b"'
    assert entry.collision_pair.second == '"a"."b"'
    assert entry.key_path_counts == {'"a.b"': 1, '"a"."b"': 1}
    assert entry.duplicate_count == 1


def test_row_key_anomaly_is_recorded() -> None:
    context = WalkContext.for_run(ExtractionConfig())
    observation = walk({"a": [1]}, ScopeKeys(component_id=1), context).observations[0]
    broken = replace(observation, row_key=(), row_key_id="root")
    collector = VariableFactsCollector(max_example_paths=3, max_distinct_tracking=10)

    collector.record(observation)
    collector.record(broken)

    entry = collector.entries["a[*]"]
    assert entry.row_key_anomaly_count == 1
    assert entry.row_key_anomaly_example is not None
    assert entry.row_key_anomaly_example.path == "a[0]"


def test_copy_is_independent() -> None:
    entry = _collect([{"r": [{"s": "a"}, {"s": 1}]}])["r[*].s"]
    clone = entry.copy()

    clone.types[ValueType.STRING].count += 10
    clone.distinct_strings.add("zzz")
    clone.seen_rows["component_id:1"].add("new")

    assert entry.types[ValueType.STRING].count == 1
    assert "zzz" not in entry.distinct_strings
    assert "new" not in entry.seen_rows["component_id:1"]
    assert clone.to_dict()["total_count"] == entry.to_dict()["total_count"]
