"""
extraction-engine — cross-run diagnostics

File: src/extraction_engine/diagnostics/cross_run.py

Purpose
- Compare independently extracted runs: partial truncation, components or
  variables missing from some runs, format and type signatures that differ
  between runs, and variables that are all-null in only some runs.

Functional requirements
- ``None`` when fewer than two runs are compared.
- Run ids are reported in the order runs were supplied.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from extraction_engine.diagnostics._builder import DiagnosticList
from extraction_engine.domain.models import ComponentId, Diagnostic, DiagnosticCode, JSONValue
from extraction_engine.facts.component import ComponentFactsEntry
from extraction_engine.facts.run import RunFacts
from extraction_engine.facts.variable import VariableFactsEntry


@dataclass(frozen=True, slots=True)
class CrossRunDiagnostics:
    run: tuple[Diagnostic, ...] = ()
    component: Mapping[ComponentId, tuple[Diagnostic, ...]] = field(default_factory=dict)
    variable: Mapping[str, tuple[Diagnostic, ...]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "run": [diagnostic.to_dict() for diagnostic in self.run],
            "component": {
                str(component_id): [diagnostic.to_dict() for diagnostic in items]
                for component_id, items in self.component.items()
            },
            "variable": {
                variable_key: [diagnostic.to_dict() for diagnostic in items]
                for variable_key, items in self.variable.items()
            },
        }


def materialize_cross_run_diagnostics(
    run_facts_by_run: Mapping[str, RunFacts],
    component_facts_by_run: Mapping[str, Mapping[ComponentId, ComponentFactsEntry]],
    variable_facts_by_run: Mapping[str, Mapping[str, VariableFactsEntry]],
) -> CrossRunDiagnostics | None:
    run_ids = list(run_facts_by_run)
    run_count = len(run_ids)
    if run_count <= 1:
        return None

    return CrossRunDiagnostics(
        run=tuple(_run_level(run_facts_by_run, run_ids)),
        component=_component_level(component_facts_by_run, run_ids),
        variable=_variable_level(variable_facts_by_run, run_ids),
    )


def _run_level(run_facts_by_run: Mapping[str, RunFacts], run_ids: list[str]) -> list[Diagnostic]:
    out = DiagnosticList()
    run_count = len(run_ids)
    truncated = [run_id for run_id in run_ids if run_facts_by_run[run_id].was_truncated]
    if truncated and len(truncated) < run_count:
        out.warn(
            DiagnosticCode.CROSS_RUN_TRUNCATED_EXTRACTION,
            f"Extraction was truncated in {len(truncated)}/{run_count} runs",
            {
                "run_count": run_count,
                "present_run_count": len(truncated),
                "missing_run_count": run_count - len(truncated),
                "run_ids": list(truncated),
            },
        )
    return out.to_list()


def _component_level(
    component_facts_by_run: Mapping[str, Mapping[ComponentId, ComponentFactsEntry]],
    run_ids: list[str],
) -> dict[ComponentId, tuple[Diagnostic, ...]]:
    run_count = len(run_ids)
    presence: dict[ComponentId, set[str]] = {}
    formats: dict[ComponentId, dict[str, list[str]]] = {}
    for run_id, facts in component_facts_by_run.items():
        for component_id, entry in facts.items():
            presence.setdefault(component_id, set()).add(run_id)
            if entry.detected_format:
                by_format = formats.setdefault(component_id, {})
                by_format.setdefault(entry.detected_format, []).append(run_id)

    result: dict[ComponentId, tuple[Diagnostic, ...]] = {}
    for component_id, present in presence.items():
        out = DiagnosticList()
        if len(present) < run_count:
            missing = [run_id for run_id in run_ids if run_id not in present]
            out.warn(
                DiagnosticCode.CROSS_RUN_COMPONENT_MISSING,
                f"Component {component_id} is missing in {len(missing)}/{run_count} runs",
                {
                    "component_id": component_id,
                    "run_count": run_count,
                    "present_run_count": len(present),
                    "missing_run_count": len(missing),
                    "missing_run_ids": list(missing),
                },
            )
        by_format = formats.get(component_id, {})
        if len(by_format) > 1:
            names = list(by_format)
            out.warn(
                DiagnosticCode.CROSS_RUN_COMPONENT_FORMAT_MISMATCH,
                f"Component {component_id} has multiple formats across runs: {', '.join(names)}",
                {"component_id": component_id, "run_count": run_count, "formats": list(names)},
            )
        if len(out):
            result[component_id] = tuple(out.to_list())
    return result


def _variable_level(
    variable_facts_by_run: Mapping[str, Mapping[str, VariableFactsEntry]],
    run_ids: list[str],
) -> dict[str, tuple[Diagnostic, ...]]:
    run_count = len(run_ids)
    presence: dict[str, set[str]] = {}
    types_by_run: dict[str, dict[str, list[str]]] = {}
    null_rates_by_run: dict[str, dict[str, float]] = {}

    for run_id, facts in variable_facts_by_run.items():
        for variable_key, entry in facts.items():
            if entry.total_count <= 0:
                continue
            presence.setdefault(variable_key, set()).add(run_id)
            signature = sorted(value_type.value for value_type, _ in entry.non_null_types())
            types_by_run.setdefault(variable_key, {})[run_id] = signature
            null_rates_by_run.setdefault(variable_key, {})[run_id] = entry.null_rate

    result: dict[str, tuple[Diagnostic, ...]] = {}
    for variable_key, present in presence.items():
        out = DiagnosticList()
        if len(present) < run_count:
            missing = [run_id for run_id in run_ids if run_id not in present]
            out.warn(
                DiagnosticCode.CROSS_RUN_VARIABLE_MISSING,
                f"Variable '{variable_key}' is missing in {len(missing)}/{run_count} runs",
                {
                    "variable": variable_key,
                    "run_count": run_count,
                    "present_run_count": len(present),
                    "missing_run_count": len(missing),
                    "missing_run_ids": list(missing),
                },
            )

        signatures = types_by_run.get(variable_key, {})
        if len(signatures) > 1 and len({"|".join(types) for types in signatures.values()}) > 1:
            out.warn(
                DiagnosticCode.CROSS_RUN_VARIABLE_TYPE_DRIFT,
                f"Variable '{variable_key}' has different types across runs",
                {
                    "variable": variable_key,
                    "run_count": run_count,
                    "types_by_run": {run_id: list(types) for run_id, types in signatures.items()},
                },
            )

        rates = null_rates_by_run.get(variable_key, {})
        if len(rates) > 1:
            all_null = any(rate >= 1 for rate in rates.values())
            non_null = any(rate < 1 for rate in rates.values())
            if all_null and non_null:
                out.warn(
                    DiagnosticCode.CROSS_RUN_VARIABLE_NULL_ONLY,
                    f"Variable '{variable_key}' is all null in some runs and non-null in others",
                    {
                        "variable": variable_key,
                        "run_count": run_count,
                        "null_rates_by_run": dict(rates),
                    },
                )
        if len(out):
            result[variable_key] = tuple(out.to_list())
    return result


__all__ = ["CrossRunDiagnostics", "materialize_cross_run_diagnostics"]
