"""
extraction-engine — unit tests for variable diagnostics

File: tests/unit/diagnostics/test_variable_diagnostics.py

Purpose
- Validate every variable heuristic, its threshold boundary, and its message.

What this test file should cover
- Type drift with example paths.
- Null-rate heuristics (strict and inclusive boundaries).
- Occurrence, cardinality, and large-value heuristics.
- Structural invariants surfaced as warnings.
- Flag derivation from materialized diagnostics.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from extraction_engine.config.schema import ExtractionConfig, HeuristicThresholds
from extraction_engine.diagnostics.flags import derive_variable_flags
from extraction_engine.diagnostics.variable import materialize_variable_diagnostics
from extraction_engine.domain.models import (
    Diagnostic,
    DiagnosticCode,
    ScopeKeys,
    Severity,
    ValueType,
    VariableFlag,
)
from extraction_engine.domain.paths import RenderOptions
from extraction_engine.extraction.walker import WalkContext, walk
from extraction_engine.facts.variable import VariableFactsEntry

_KEY = "r[*].v"


def _facts(values: list[object], config: ExtractionConfig | None = None) -> VariableFactsEntry:
    context = WalkContext.for_run(config or ExtractionConfig())
    walk({"r": [{"v": value} for value in values]}, ScopeKeys(component_id=1), context)
    return context.variable_facts.entries[_KEY]


def _diagnose(
    entry: VariableFactsEntry | None,
    variable_type: ValueType = ValueType.STRING,
    thresholds: HeuristicThresholds | None = None,
    **kwargs: bool,
) -> list[Diagnostic]:
    return materialize_variable_diagnostics(
        _KEY,
        entry,
        variable_type,
        thresholds or HeuristicThresholds(),
        max_example_paths=3,
        **kwargs,
    )


def _codes(diagnostics: list[Diagnostic]) -> list[DiagnosticCode]:
    return [diagnostic.code for diagnostic in diagnostics]


@pytest.mark.unit
def test_type_drift_message_and_examples() -> None:
    diagnostics = _diagnose(_facts([1, "x", 2]))

    drift = diagnostics[0]
    assert drift.code is DiagnosticCode.TYPE_DRIFT
    assert drift.severity is Severity.WARNING
    assert drift.message == "Variable 'r[*].v' has multiple types: number(2), string(1)"
    assert drift.metadata["types"] == {"number": 2, "string": 1}
    assert drift.metadata["example_paths"] == ["r[1].v"]


def test_missing_facts_produce_no_diagnostics() -> None:
    assert _diagnose(None) == []


def test_high_null_rate_and_many_nulls() -> None:
    entry = _facts([None] * 17 + [1, 2, 3])
    diagnostics = _diagnose(entry, ValueType.NUMBER)

    messages = {diagnostic.code: diagnostic.message for diagnostic in diagnostics}
    assert messages[DiagnosticCode.HIGH_NULL_RATE] == (
        "Variable 'r[*].v' has high null rate: 85.0% (17/20)"
    )
    assert messages[DiagnosticCode.MANY_NULLS] == "Variable 'r[*].v' has many nulls: 85.0% (17/20)"

    without = _diagnose(entry, ValueType.NUMBER, include_many_nulls=False)
    assert DiagnosticCode.MANY_NULLS not in _codes(without)
    assert DiagnosticCode.HIGH_NULL_RATE in _codes(without)


def test_null_rate_boundaries() -> None:
    at_many = _diagnose(_facts([None, 1, 2, 3, 4]), ValueType.NUMBER)
    at_high = _diagnose(_facts([None] * 4 + [1]), ValueType.NUMBER)

    assert DiagnosticCode.MANY_NULLS in _codes(at_many)
    assert DiagnosticCode.HIGH_NULL_RATE not in _codes(at_many)
    assert DiagnosticCode.HIGH_NULL_RATE not in _codes(at_high)


def test_high_occurrence_is_strict() -> None:
    thresholds = HeuristicThresholds(high_occurrence=3)

    assert DiagnosticCode.HIGH_OCCURRENCE not in _codes(
        _diagnose(_facts([1, 2, 3]), ValueType.NUMBER, thresholds)
    )
    above = _diagnose(_facts([1, 2, 3, 4]), ValueType.NUMBER, thresholds)
    assert "has high occurrence count: 4 (threshold: 3)" in above[0].message


def test_high_cardinality_is_inclusive_for_strings_only() -> None:
    thresholds = HeuristicThresholds(high_cardinality=3)
    entry = _facts(["a", "b", "c"])

    string_codes = _codes(_diagnose(entry, ValueType.STRING, thresholds))
    number_codes = _codes(_diagnose(entry, ValueType.NUMBER, thresholds))

    assert DiagnosticCode.HIGH_CARDINALITY in string_codes
    assert DiagnosticCode.HIGH_CARDINALITY not in number_codes
    assert DiagnosticCode.HIGH_CARDINALITY not in _codes(
        _diagnose(_facts(["a", "b"]), ValueType.STRING, thresholds)
    )


def test_large_values_is_strict() -> None:
    thresholds = HeuristicThresholds(large_value_length=3)

    assert _codes(_diagnose(_facts(["abc"]), ValueType.STRING, thresholds)) == []
    large = _diagnose(_facts(["abcd"]), ValueType.STRING, thresholds)
    assert large[0].message == "Variable 'r[*].v' has large values: max length 4 (threshold: 3)"


def test_unserializable_values_warn() -> None:
    diagnostics = _diagnose(_facts([float("nan")]), ValueType.NUMBER)

    assert diagnostics[0].code is DiagnosticCode.VALUE_JSON_UNSERIALIZABLE_FALLBACK_USED
    assert diagnostics[0].message == (
        "Variable 'r[*].v' has 1 unserializable value (fallback used)"
    )


def test_duplicate_and_collision_warnings() -> None:
    config = replace(ExtractionConfig(), render=RenderOptions(quote_unsafe_keys=False))
    context = WalkContext.for_run(config)
    walk({"a.b": 1, "a": {"b": 2}}, ScopeKeys(component_id=1), context)

    diagnostics = materialize_variable_diagnostics(
        "a.b",
        context.variable_facts.entries["a.b"],
        ValueType.NUMBER,
        HeuristicThresholds(),
        max_example_paths=3,
    )

    messages = {diagnostic.code: diagnostic.message for diagnostic in diagnostics}
    assert messages[DiagnosticCode.DUPLICATE_OBSERVATION] == (
        "Variable 'a.b' has 1 duplicate observation"
    )
    assert messages[DiagnosticCode.VARIABLE_KEY_COLLISION] == (
        "VariableKey 'a.b' maps to different keyPaths: '\"a.b\"' vs '\"a\".\"b\"'"
    )
    assert derive_variable_flags(diagnostics) == ()


def test_flags_are_projected_in_first_seen_order() -> None:
    thresholds = HeuristicThresholds(high_cardinality=2, large_value_length=1)
    diagnostics = _diagnose(_facts([None, "ab", 1, "cd"]), ValueType.STRING, thresholds)

    assert derive_variable_flags(diagnostics) == (
        VariableFlag.TYPE_DRIFT,
        VariableFlag.MANY_NULLS,
        VariableFlag.HIGH_CARDINALITY,
        VariableFlag.LARGE_VALUES,
    )
