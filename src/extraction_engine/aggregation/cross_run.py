"""
extraction-engine — cross-run fact merging

File: src/extraction_engine/aggregation/cross_run.py

Purpose
- Merge facts collected independently per run into one bundle-wide view.

Functional requirements
- Counts add up; capped containers union up to their caps; first examples win.
- Key-path collisions are recomputed from merged per-path counts against the
  globally first-seen key path, so a path that was "first" in a later run is
  still counted as a collision.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from extraction_engine.domain.models import ComponentId
from extraction_engine.facts.capped import CappedList
from extraction_engine.facts.component import ComponentFacts, ComponentFactsEntry
from extraction_engine.facts.run import DeepNesting, RunFacts, SkippedType
from extraction_engine.facts.variable import (
    CollisionPair,
    TypeStats,
    VariableFacts,
    VariableFactsEntry,
)


def merge_run_facts(facts_by_run: Iterable[RunFacts], *, max_example_paths: int) -> RunFacts:
    threshold: int | None = None
    max_depth = 0
    merged = RunFacts(deep_nesting=DeepNesting(threshold=0))
    for facts in facts_by_run:
        for kind, event in facts.limits.items():
            merged.limits.setdefault(kind, event)
        if threshold is None:
            threshold = facts.deep_nesting.threshold
        max_depth = max(max_depth, facts.deep_nesting.max_depth)
        for type_name, skipped in facts.skipped_non_json.items():
            existing = merged.skipped_non_json.get(type_name)
            if existing is None:
                merged.skipped_non_json[type_name] = SkippedType(
                    count=skipped.count,
                    example_paths=CappedList(max_example_paths, skipped.example_paths),
                    tag=skipped.tag,
                )
                continue
            existing.count += skipped.count
            if existing.tag is None and skipped.tag is not None:
                existing.tag = skipped.tag
            existing.example_paths.extend(skipped.example_paths)
    merged.deep_nesting = DeepNesting(threshold=threshold or 0, max_depth=max_depth)
    return merged


def merge_component_facts(
    facts_by_run: Iterable[Mapping[ComponentId, ComponentFactsEntry]],
) -> ComponentFacts:
    merged: ComponentFacts = {}
    for facts in facts_by_run:
        for component_id, entry in facts.items():
            existing = merged.get(component_id)
            if existing is None:
                merged[component_id] = entry.copy()
                continue
            existing.has_parsed_data = existing.has_parsed_data or entry.has_parsed_data
            existing.has_data_content = existing.has_data_content or entry.has_data_content
            if existing.detected_format is None:
                existing.detected_format = entry.detected_format
            if existing.parse_error is None:
                existing.parse_error = entry.parse_error
            if existing.format_error is None:
                existing.format_error = entry.format_error
    return merged


def merge_variable_facts(
    facts_by_run: Iterable[Mapping[str, VariableFactsEntry]],
    *,
    max_example_paths: int,
    max_distinct_tracking: int,
) -> VariableFacts:
    merged: VariableFacts = {}
    for facts in facts_by_run:
        for variable_key, entry in facts.items():
            target = merged.get(variable_key)
            if target is None:
                target = VariableFactsEntry(
                    max_example_paths=max_example_paths,
                    max_distinct_tracking=max_distinct_tracking,
                )
                merged[variable_key] = target
            _merge_entry(target, entry)

    for entry in merged.values():
        _recompute_collisions(entry)
    return merged


def _merge_entry(target: VariableFactsEntry, source: VariableFactsEntry) -> None:
    target.total_count += source.total_count
    target.null_count += source.null_count
    target.unserializable_fallbacks += source.unserializable_fallbacks

    for value_type, stats in source.types.items():
        merged_stats = target.types.get(value_type)
        if merged_stats is None:
            merged_stats = TypeStats(count=0, example_paths=CappedList(target.max_example_paths))
            target.types[value_type] = merged_stats
        merged_stats.count += stats.count
        for path in stats.example_paths:
            if path not in merged_stats.example_paths:
                merged_stats.example_paths.append(path)

    target.has_object_array_leaf = target.has_object_array_leaf or source.has_object_array_leaf
    target.has_mixed_array_elements = (
        target.has_mixed_array_elements or source.has_mixed_array_elements
    )
    if source.length_min is not None:
        target.length_min = (
            source.length_min
            if target.length_min is None
            else min(target.length_min, source.length_min)
        )
    if source.length_max is not None:
        target.length_max = (
            source.length_max
            if target.length_max is None
            else max(target.length_max, source.length_max)
        )

    target.distinct_strings.update(source.distinct_strings)
    target.distinct_options.update(source.distinct_options)

    for scope_key_id, rows in source.seen_rows.items():
        target.seen_rows.setdefault(scope_key_id, set()).update(rows)
    target.duplicate_count += source.duplicate_count
    if target.duplicate_example is None:
        target.duplicate_example = source.duplicate_example

    if target.first_key_path is None:
        target.first_key_path = source.first_key_path
    for key_path, count in source.key_path_counts.items():
        target.key_path_counts[key_path] = target.key_path_counts.get(key_path, 0) + count

    target.row_key_anomaly_count += source.row_key_anomaly_count
    if target.row_key_anomaly_example is None:
        target.row_key_anomaly_example = source.row_key_anomaly_example


def _recompute_collisions(entry: VariableFactsEntry) -> None:
    entry.collision_count = 0
    entry.collision_pair = None
    first = entry.first_key_path
    if first is None:
        return
    second: str | None = None
    for key_path, count in entry.key_path_counts.items():
        if key_path == first:
            continue
        entry.collision_count += count
        if second is None:
            second = key_path
    if entry.collision_count > 0 and second is not None:
        entry.collision_pair = CollisionPair(first=first, second=second)


__all__ = ["merge_component_facts", "merge_run_facts", "merge_variable_facts"]
