"""
extraction-engine — unit tests for per-variable aggregation

File: tests/unit/aggregation/test_aggregate_variables.py

Purpose
- Validate grouping of observations into variables with provenance, examples,
  resolved types, flags, and optional diagnostics.
"""

from __future__ import annotations

import pytest

from extraction_engine.aggregation.variables import aggregate_variables
from extraction_engine.config.schema import (
    ExtractionConfig,
    HeuristicThresholds,
    VariableSettings,
)
from extraction_engine.domain.models import (
    DataStructure,
    Diagnostic,
    DiagnosticCode,
    Observation,
    ScopeKeys,
    Severity,
    ValueType,
    VariableFlag,
)
from extraction_engine.extraction.walker import WalkContext, walk
from extraction_engine.facts.variable import VariableFacts

_CONFIG = ExtractionConfig(thresholds=HeuristicThresholds(high_occurrence=5))


def _extract() -> tuple[list[Observation], VariableFacts]:
    context = WalkContext.for_run(_CONFIG)
    observations: list[Observation] = []
    first = {"trials": [{"rt": value} for value in range(1, 8)]}
    second = {"trials": [{"rt": 8}], "name": "x"}
    observations.extend(walk(first, ScopeKeys(component_id=1, run_id="r1"), context).observations)
    observations.extend(walk(second, ScopeKeys(component_id=2, run_id="r1"), context).observations)
    return observations, context.variable_facts.entries


@pytest.mark.unit
def test_variables_keep_first_seen_order_and_provenance() -> None:
    observations, facts = _extract()

    rt, name = aggregate_variables(observations, facts, _CONFIG)

    assert rt.variable_key == "trials[*].rt"
    assert rt.variable_name == "rt"
    assert rt.type is ValueType.NUMBER
    assert rt.occurrences == 8
    assert rt.data_structure is DataStructure.ARRAY
    assert rt.component_ids == (1, 2)
    assert rt.run_ids == ("r1",)
    assert rt.depth == 3
    assert not rt.is_top_level
    assert [example.source_path for example in rt.examples] == [
        f"trials[{position}].rt" for position in range(5)
    ]
    assert [example.value_json for example in rt.examples] == ["1", "2", "3", "4", "5"]

    assert name.variable_name == "name"
    assert name.data_structure is DataStructure.OBJECT
    assert name.depth == 1
    assert not name.is_top_level
    assert name.component_ids == (2,)


def test_flags_survive_when_diagnostics_are_omitted() -> None:
    observations, facts = _extract()

    with_diagnostics = aggregate_variables(observations, facts, _CONFIG)[0]
    without = aggregate_variables(observations, facts, _CONFIG, include_diagnostics=False)[0]

    assert with_diagnostics.diagnostics is not None
    assert [item.code for item in with_diagnostics.diagnostics] == [DiagnosticCode.HIGH_OCCURRENCE]
    assert without.diagnostics is None
    assert without.flags == (VariableFlag.HIGH_OCCURRENCE,)


def test_extra_diagnostics_are_appended_and_deduplicated() -> None:
    observations, facts = _extract()
    extra = Diagnostic(
        Severity.WARNING, DiagnosticCode.CROSS_RUN_VARIABLE_MISSING, "missing in 1/2 runs"
    )

    variables = aggregate_variables(
        observations, facts, _CONFIG, extra_diagnostics={"name": [extra, extra]}
    )

    assert variables[1].diagnostics == (extra,)
    assert variables[1].flags == ()


def test_max_examples_is_configurable() -> None:
    observations, facts = _extract()
    config = ExtractionConfig(variable=VariableSettings(max_examples=2))

    assert len(aggregate_variables(observations, facts, config)[0].examples) == 2


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        (42, True),
        ([], True),
        ({"a": 1}, False),
        ([1, 2], False),
    ],
)
def test_only_root_level_values_are_top_level(payload: object, expected: bool) -> None:
    context = WalkContext.for_run(_CONFIG)
    observations = walk(payload, ScopeKeys(component_id=1), context).observations

    variables = aggregate_variables(observations, context.variable_facts.entries, _CONFIG)

    assert [variable.is_top_level for variable in variables] == [expected]
