"""
extraction-engine — variable diagnostics

File: src/extraction_engine/diagnostics/variable.py

Purpose
- Materialize variable-level diagnostics from one variable's frozen facts.

Functional requirements
- Pure over its inputs; identical ``(code, message)`` pairs are emitted once.
- Thresholds: ``HIGH_NULL_RATE`` is strict (>), ``MANY_NULLS`` inclusive (>=),
  ``HIGH_OCCURRENCE`` strict, ``HIGH_CARDINALITY`` inclusive on the distinct
  count, ``LARGE_VALUES`` strict on the maximum length.
"""

from __future__ import annotations

from extraction_engine.config.schema import HeuristicThresholds
from extraction_engine.diagnostics._builder import DiagnosticList, plural
from extraction_engine.domain.models import Diagnostic, DiagnosticCode, JSONValue, ValueType
from extraction_engine.facts.variable import VariableFactsEntry


def materialize_variable_diagnostics(
    variable_key: str,
    facts: VariableFactsEntry | None,
    variable_type: ValueType,
    thresholds: HeuristicThresholds,
    *,
    max_example_paths: int,
    include_many_nulls: bool = True,
) -> list[Diagnostic]:
    out = DiagnosticList()
    if facts is None:
        return out.to_list()

    _type_drift(out, variable_key, facts, max_example_paths)

    if facts.duplicate_count > 0:
        metadata: dict[str, JSONValue] = {
            "variable": variable_key,
            "count": facts.duplicate_count,
        }
        if facts.duplicate_example is not None:
            metadata["example"] = facts.duplicate_example.to_dict()
        out.warn(
            DiagnosticCode.DUPLICATE_OBSERVATION,
            f"Variable '{variable_key}' has {facts.duplicate_count} duplicate "
            f"{plural(facts.duplicate_count, 'observation')}",
            metadata,
        )

    if facts.collision_count > 0:
        pair = facts.collision_pair
        first = pair.first if pair is not None else facts.first_key_path
        second = pair.second if pair is not None else None
        out.warn(
            DiagnosticCode.VARIABLE_KEY_COLLISION,
            f"VariableKey '{variable_key}' maps to different keyPaths: '{first}' vs '{second}'",
            {
                "variable": variable_key,
                "first_key_path_string": first,
                "current_key_path_string": second,
                "count": facts.collision_count,
            },
        )

    if facts.row_key_anomaly_count > 0:
        count = facts.row_key_anomaly_count
        metadata = {"variable": variable_key, "count": count}
        if facts.row_key_anomaly_example is not None:
            metadata["example"] = facts.row_key_anomaly_example.to_dict()
        out.warn(
            DiagnosticCode.ROW_KEY_ID_ANOMALY,
            f"Variable '{variable_key}' has {count} rowKeyId "
            f"{plural(count, 'anomaly', 'anomalies')}",
            metadata,
        )

    _null_rates(out, variable_key, facts, thresholds, include_many_nulls)

    if facts.unserializable_fallbacks > 0:
        count = facts.unserializable_fallbacks
        out.warn(
            DiagnosticCode.VALUE_JSON_UNSERIALIZABLE_FALLBACK_USED,
            f"Variable '{variable_key}' has {count} unserializable {plural(count, 'value')} "
            "(fallback used)",
            {"variable": variable_key, "count": count},
        )

    if facts.has_object_array_leaf:
        out.warn(
            DiagnosticCode.UNEXPECTED_OBJECT_ARRAY_LEAF,
            f"Variable '{variable_key}' has valueType object or array (unexpected leaf type)",
            {"variable": variable_key},
        )

    if facts.has_mixed_array_elements:
        out.warn(
            DiagnosticCode.MIXED_ARRAY_ELEMENT_TYPES,
            f"Variable '{variable_key}' has array elements with mixed types",
            {"variable": variable_key},
        )

    if facts.total_count > thresholds.high_occurrence:
        out.warn(
            DiagnosticCode.HIGH_OCCURRENCE,
            f"Variable '{variable_key}' has high occurrence count: {facts.total_count} "
            f"(threshold: {thresholds.high_occurrence})",
            {
                "variable": variable_key,
                "observation_count": facts.total_count,
                "threshold": thresholds.high_occurrence,
            },
        )

    _cardinality(out, variable_key, facts, variable_type, thresholds)

    if facts.length_max is not None and facts.length_max > thresholds.large_value_length:
        out.warn(
            DiagnosticCode.LARGE_VALUES,
            f"Variable '{variable_key}' has large values: max length {facts.length_max} "
            f"(threshold: {thresholds.large_value_length})",
            {
                "variable": variable_key,
                "max_length": facts.length_max,
                "threshold": thresholds.large_value_length,
            },
        )

    return out.to_list()


def _type_drift(
    out: DiagnosticList, variable_key: str, facts: VariableFactsEntry, max_example_paths: int
) -> None:
    non_null = facts.non_null_types()
    if len(non_null) <= 1:
        return

    example_paths: list[str] = []
    for value_type, stats in facts.types.items():
        if value_type is ValueType.NULL or stats.count <= 0:
            continue
        for path in stats.example_paths:
            if len(example_paths) >= max_example_paths:
                break
            example_paths.append(path)
        if len(example_paths) >= max_example_paths:
            break

    rendered = ", ".join(f"{value_type.value}({count})" for value_type, count in non_null)
    metadata: dict[str, JSONValue] = {
        "variable": variable_key,
        "types": {value_type.value: count for value_type, count in non_null},
    }
    if example_paths:
        metadata["example_paths"] = list(example_paths)
    out.warn(
        DiagnosticCode.TYPE_DRIFT,
        f"Variable '{variable_key}' has multiple types: {rendered}",
        metadata,
    )


def _null_rates(
    out: DiagnosticList,
    variable_key: str,
    facts: VariableFactsEntry,
    thresholds: HeuristicThresholds,
    include_many_nulls: bool,
) -> None:
    if facts.total_count <= 0:
        return
    rate = facts.null_rate
    summary = f"{rate * 100:.1f}% ({facts.null_count}/{facts.total_count})"
    base: dict[str, JSONValue] = {
        "variable": variable_key,
        "null_rate": rate,
        "null_count": facts.null_count,
        "total_count": facts.total_count,
    }
    if rate > thresholds.high_null_rate:
        out.warn(
            DiagnosticCode.HIGH_NULL_RATE,
            f"Variable '{variable_key}' has high null rate: {summary}",
            {**base, "threshold": thresholds.high_null_rate},
        )
    if include_many_nulls and rate >= thresholds.many_nulls:
        out.warn(
            DiagnosticCode.MANY_NULLS,
            f"Variable '{variable_key}' has many nulls: {summary}",
            {**base, "threshold": thresholds.many_nulls},
        )


def _cardinality(
    out: DiagnosticList,
    variable_key: str,
    facts: VariableFactsEntry,
    variable_type: ValueType,
    thresholds: HeuristicThresholds,
) -> None:
    if variable_type is ValueType.STRING:
        distinct = len(facts.distinct_strings)
        noun = "values"
    elif variable_type is ValueType.ARRAY:
        distinct = len(facts.distinct_options)
        noun = "options"
    else:
        return
    if distinct < thresholds.high_cardinality:
        return
    out.warn(
        DiagnosticCode.HIGH_CARDINALITY,
        f"Variable '{variable_key}' has high cardinality: {distinct} distinct {noun} "
        f"(threshold: {thresholds.high_cardinality})",
        {
            "variable": variable_key,
            "distinct_count": distinct,
            "threshold": thresholds.high_cardinality,
        },
    )


__all__ = ["materialize_variable_diagnostics"]
