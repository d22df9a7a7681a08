"""
extraction-engine — unit tests for cross-run fact merging

File: tests/unit/aggregation/test_merge_facts.py

Purpose
- Validate field-by-field merging of independently collected run facts.

What this test file should cover
- Additive counts and unioned type histograms.
- Collision totals recomputed against the globally first key path.
- Run facts: first limit per kind, deepest nesting, summed skipped types.
- Component facts: presence flags OR-ed, first errors kept.
"""

from __future__ import annotations

from dataclasses import replace

from extraction_engine.aggregation.cross_run import (
    merge_component_facts,
    merge_run_facts,
    merge_variable_facts,
)
from extraction_engine.config.schema import ExtractionConfig, WalkerLimits
from extraction_engine.domain.models import DiagnosticCode, LimitKind, ScopeKeys, ValueType
from extraction_engine.domain.paths import RenderOptions
from extraction_engine.extraction.walker import WalkContext, walk
from extraction_engine.facts.component import ComponentFactsCollector
from extraction_engine.facts.variable import VariableFacts


def _context(payload: object, run_id: str, config: ExtractionConfig | None = None) -> WalkContext:
    context = WalkContext.for_run(config or ExtractionConfig())
    walk(payload, ScopeKeys(component_id=1, run_id=run_id), context)
    return context


def _merge(*contexts: WalkContext) -> VariableFacts:
    return merge_variable_facts(
        (context.variable_facts.entries for context in contexts),
        max_example_paths=3,
        max_distinct_tracking=100,
    )


def test_counts_add_and_types_union() -> None:
    merged = _merge(_context({"a": [1, None]}, "r1"), _context({"a": ["x"]}, "r2"))

    entry = merged["a[*]"]
    assert entry.total_count == 3
    assert entry.null_count == 1
    assert entry.non_null_types() == [(ValueType.NUMBER, 1), (ValueType.STRING, 1)]
    assert entry.distinct_strings.to_list() == ["x"]
    assert set(entry.seen_rows) == {"component_id:1|run_id:r1", "component_id:1|run_id:r2"}


def test_collisions_recomputed_against_global_first_key_path() -> None:
    config = replace(ExtractionConfig(), render=RenderOptions(quote_unsafe_keys=False))
    first = _context({"a": {"b": 1}}, "r1", config)
    second = _context({"a.b": 2}, "r2", config)

    assert first.variable_facts.entries["a.b"].collision_count == 0
    assert second.variable_facts.entries["a.b"].collision_count == 0

    entry = _merge(first, second)["a.b"]
    assert entry.first_key_path == '"a"."b"'
    assert entry.collision_count == 1
    assert entry.collision_pair is not None
    assert (entry.collision_pair.first, entry.collision_pair.second) == ('"a"."b"', '"a.b"')


def test_merge_run_facts() -> None:
    capped = ExtractionConfig(walker=WalkerLimits(max_nodes=2))
    first = _context({"a": 1, "b": 2}, "r1", capped).run_facts.facts
    second = _context({"x": {"y": {"z": 1}}}, "r2").run_facts.facts

    merged = merge_run_facts([first, second], max_example_paths=3)

    assert list(merged.limits) == [LimitKind.MAX_NODES]
    assert merged.deep_nesting.max_depth == 3
    assert merged.was_truncated


def test_merge_component_facts_keeps_first_errors() -> None:
    run1 = ComponentFactsCollector()
    run1.record_component(1, detected_format="json", has_parsed_data=False, has_data_content=False)
    run2 = ComponentFactsCollector()
    run2.record_component(1, detected_format="csv", has_parsed_data=True, has_data_content=True)
    run2.record_format_error(1, DiagnosticCode.UNKNOWN_FORMAT, "bad")

    merged = merge_component_facts([run1.entries, run2.entries])

    entry = merged[1]
    assert entry.has_parsed_data
    assert entry.detected_format == "json"
    assert entry.format_error is not None
    assert run1.entries[1].format_error is None
